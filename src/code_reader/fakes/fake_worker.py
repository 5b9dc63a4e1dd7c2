# src/code_reader/fakes/fake_worker.py
from __future__ import annotations

from typing import Any, Dict, List


def _file_list(basic: Dict[str, Any]) -> List[str]:
    structure = basic.get("file_structure") or []
    if isinstance(structure, str):
        return [line.strip() for line in structure.splitlines() if line.strip()]
    return [str(item) for item in structure]


class FakeAnalysisWorker:
    """
    Walks `basic.file_structure` in order, one file per analysis.

    Asks for more information while `main_goal` is missing. Every call is
    recorded in `calls` so tests can assert on what the nodes sent.
    """

    def __init__(self, files: Dict[str, str] | None = None):
        self.files = dict(files or {})
        self.calls: List[tuple[str, Any]] = []

    async def get_entry_file(self, basic: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("get_entry_file", dict(basic)))
        files = _file_list(basic)
        if not basic.get("main_goal") or not files:
            return {"decision": "need_more_info", "ask_user": "What is the main goal of the analysis?"}
        return {
            "decision": "entry_file_found",
            "next_file": {"name": files[0], "reason": "first file in the structure"},
        }

    async def read_file(self, path: str, basic: Dict[str, Any]) -> str:  # noqa: ARG002
        self.calls.append(("read_file", path))
        return self.files.get(path, f"# {path}\n")

    async def analyze_file(self, context: Dict[str, Any], content: str, memory: List[str]) -> Dict[str, Any]:
        self.calls.append(("analyze_file", {"target": context.get("target"), "memory": list(memory)}))
        files = _file_list(context.get("basic") or {})
        target = context.get("target") or ""
        if target not in files:
            return {"analysis_complete": True}
        index = files.index(target)
        next_name = files[index + 1] if index + 1 < len(files) else ""
        return {
            "current_analysis": {
                "filename": target,
                "summary": f"{target}: {len(content.splitlines())} lines",
            },
            "next_focus_proposal": {"next_filename": next_name, "reason": "next file in the structure"},
        }

    async def reduce_history(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("reduce_history", len(payload.get("summaries_buffer") or [])))
        lines = [payload.get("reduced_output") or ""]
        lines.extend(f"- {item['filename']}: {item['summary']}" for item in payload.get("summaries_buffer") or [])
        return {"reduced_output": "\n".join(line for line in lines if line)}

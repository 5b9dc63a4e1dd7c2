from __future__ import annotations

from typing import Any, Dict, List, Protocol


class AnalysisWorker(Protocol):
    """
    Domain work behind the code-reader nodes (model calls, file access).

    Return shapes:
    - get_entry_file -> {"decision": "need_more_info", "ask_user": str}
                     or {"decision": "entry_file_found", "next_file": {"name", "reason"}}
    - analyze_file   -> {"analysis_complete": True}
                     or {"current_analysis": {"filename", "summary"},
                         "next_focus_proposal": {"next_filename", "reason"}}
    - reduce_history -> {"reduced_output": str}
    """

    async def get_entry_file(self, basic: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def read_file(self, path: str, basic: Dict[str, Any]) -> str:
        ...

    async def analyze_file(self, context: Dict[str, Any], content: str, memory: List[str]) -> Dict[str, Any]:
        ...

    async def reduce_history(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

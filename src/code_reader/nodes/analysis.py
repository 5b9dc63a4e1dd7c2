from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from code_reader.graphs.node import Node
from code_reader.graphs.state import CALL_TO_ACTION, InputKind, summaries_as_prior_index
from code_reader.nodes.actions import Actions
from code_reader.nodes.worker import AnalysisWorker
from code_reader.rag.retriever import ContextRetriever

REDUCE_BUFFER_SIZE = 5


def _run_tags(params: Dict[str, Any]) -> Dict[str, Any]:
    run_id = params.get("run_id")
    return {"run_id": run_id} if run_id else {}


def _memory_id(params: Dict[str, Any], filename: str) -> str:
    run_id = params.get("run_id")
    return f"{run_id}:{filename}" if run_id else filename


class AnalyzeFileNode(Node):
    """
    Analyze the next file (or re-analyze the current one after a rejection).

    Prior summaries relevant to the file are recalled through the retriever
    and handed to the worker as memory. Pauses for user feedback unless the
    worker reports that the analysis is complete.
    """

    def __init__(
        self,
        worker: AnalysisWorker,
        retriever: ContextRetriever,
        max_retries: int = 1,
        wait: float = 0.0,
    ):
        super().__init__(max_retries=max_retries, wait=wait)
        self.worker = worker
        self.retriever = retriever

    async def prep(self, shared: Dict[str, Any]) -> Dict[str, Any]:
        feedback = shared.get("user_feedback") or {}
        if feedback.get("action") == "reject":
            target = (shared.get("current_file") or {}).get("name")
        else:
            target = (shared.get("next_file") or {}).get("name")
        return {
            "target": target or "",
            "basic": dict(shared.get("basic") or {}),
            "current_file": shared.get("current_file"),
            "next_file": shared.get("next_file"),
            "user_feedback": shared.get("user_feedback"),
            "all_summaries": list(shared.get("all_summaries") or []),
            "prior_index": summaries_as_prior_index(shared),
        }

    async def exec(self, prep_res: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        target = prep_res["target"]
        content = await self.worker.read_file(target, prep_res["basic"])
        memory = await self.retriever.retrieve(
            target,
            content,
            prep_res["prior_index"],
            tags=_run_tags(self.params),
        )
        context = {key: value for key, value in prep_res.items() if key != "prior_index"}
        result = await self.worker.analyze_file(context, content, memory)

        if result.get("analysis_complete"):
            return None

        current = result["current_analysis"]
        proposal = result["next_focus_proposal"]
        return {
            "current_file": {"name": current["filename"], "analysis": {"summary": current["summary"]}},
            "next_file": {"name": proposal["next_filename"], "reason": proposal.get("reason", "")},
        }

    async def post(self, shared: Dict[str, Any], prep_res: Any, exec_res: Optional[Dict[str, Any]]) -> Optional[str]:
        if exec_res is None:
            shared["analysis_complete"] = True
            return Actions.DO_REDUCE

        shared["current_file"] = exec_res["current_file"]
        shared["next_file"] = exec_res["next_file"]
        shared["user_feedback"] = None
        shared[CALL_TO_ACTION] = InputKind.USER_FEEDBACK
        return Actions.ASK_USER_FEEDBACK


class UserFeedbackNode(Node):
    async def prep(self, shared: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return shared.get("user_feedback")

    async def exec(self, prep_res: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if not prep_res:
            raise ValueError("user feedback is missing")
        return prep_res

    async def post(self, shared: Dict[str, Any], prep_res: Any, exec_res: Dict[str, Any]) -> Optional[str]:
        if exec_res.get("action") == "reject":
            return Actions.DO_ANALYZE
        return Actions.DO_REDUCE


class ReduceHistoryNode(Node):
    """
    Fold the accepted (or user-refined) summary into the run history.

    Summaries are buffered and condensed by the worker every
    REDUCE_BUFFER_SIZE files and once more when the analysis completes.
    """

    def __init__(
        self,
        worker: AnalysisWorker,
        retriever: ContextRetriever,
        max_retries: int = 1,
        wait: float = 0.0,
    ):
        super().__init__(max_retries=max_retries, wait=wait)
        self.worker = worker
        self.retriever = retriever

    async def prep(self, shared: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "basic": dict(shared.get("basic") or {}),
            "current_file": shared.get("current_file"),
            "user_feedback": shared.get("user_feedback"),
            "all_summaries": list(shared.get("all_summaries") or []),
            "summaries_buffer": list(shared.get("summaries_buffer") or []),
            "reduced_output": shared.get("reduced_output") or "",
            "analysis_complete": bool(shared.get("analysis_complete")),
        }

    @staticmethod
    def _current_summary(prep_res: Dict[str, Any]) -> str:
        feedback = prep_res.get("user_feedback")
        if not feedback:
            return ""
        action = feedback.get("action")
        if action == "refined":
            return feedback.get("user_summary") or ""
        if action == "accept":
            return ((prep_res.get("current_file") or {}).get("analysis") or {}).get("summary") or ""
        raise ValueError(f"unexpected user feedback action: {action}")

    async def exec(self, prep_res: Dict[str, Any]) -> Dict[str, Any]:
        summary = self._current_summary(prep_res)
        all_summaries: List[Dict[str, str]] = prep_res["all_summaries"]
        buffer: List[Dict[str, str]] = prep_res["summaries_buffer"]
        filename = (prep_res.get("current_file") or {}).get("name")

        if filename and summary:
            entry = {"filename": filename, "summary": summary}
            all_summaries.append(entry)
            buffer.append(dict(entry))
            await self.retriever.set(
                filename,
                summary,
                tags=_run_tags(self.params),
                entry_id=_memory_id(self.params, filename),
            )

        if len(buffer) < REDUCE_BUFFER_SIZE and not prep_res["analysis_complete"]:
            return {
                "all_summaries": all_summaries,
                "summaries_buffer": buffer,
                "reduced_output": prep_res["reduced_output"],
            }

        result = await self.worker.reduce_history(
            {
                "basic": prep_res["basic"],
                "all_summaries": all_summaries,
                "summaries_buffer": buffer,
                "reduced_output": prep_res["reduced_output"],
                "user_feedback": prep_res.get("user_feedback"),
            }
        )
        logging.getLogger(__name__).info(
            "history_reduced",
            extra={
                "event": "history_reduced",
                "run_id": self.params.get("run_id"),
                "buffered": len(buffer),
                "total": len(all_summaries),
            },
        )
        return {
            "all_summaries": all_summaries,
            "summaries_buffer": [],
            "reduced_output": result.get("reduced_output", prep_res["reduced_output"]),
        }

    async def post(self, shared: Dict[str, Any], prep_res: Dict[str, Any], exec_res: Dict[str, Any]) -> Optional[str]:
        shared["all_summaries"] = exec_res["all_summaries"]
        shared["summaries_buffer"] = exec_res["summaries_buffer"]
        shared["reduced_output"] = exec_res["reduced_output"]
        # Consumed; a stale accept would append the same summary again.
        shared["user_feedback"] = None
        if prep_res["analysis_complete"]:
            return Actions.ALL_FILES_ANALYZED
        return Actions.DO_ANALYZE


class FinishNode(Node):
    async def post(self, shared: Dict[str, Any], prep_res: Any, exec_res: Any) -> Optional[str]:
        shared["completed"] = True
        shared[CALL_TO_ACTION] = InputKind.FINISH
        return None

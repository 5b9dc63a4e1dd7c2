from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from code_reader.graphs.node import Node
from code_reader.graphs.state import CALL_TO_ACTION, InputKind
from code_reader.nodes.actions import Actions
from code_reader.nodes.worker import AnalysisWorker


class GetEntryFileNode(Node):
    """Ask the worker where to start reading; pause for more input when it cannot tell."""

    def __init__(self, worker: AnalysisWorker, max_retries: int = 1, wait: float = 0.0):
        super().__init__(max_retries=max_retries, wait=wait)
        self.worker = worker

    async def prep(self, shared: Dict[str, Any]) -> Dict[str, Any]:
        return dict(shared.get("basic") or {})

    async def exec(self, prep_res: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.worker.get_entry_file(prep_res)
        decision = result.get("decision")
        if decision == "need_more_info":
            return {"ask_user": result.get("ask_user") or "Please provide more information."}
        next_file = result.get("next_file")
        if decision == "entry_file_found" and next_file:
            return {"next_file": dict(next_file)}
        raise ValueError(f"unexpected entry file decision: {decision}")

    async def post(self, shared: Dict[str, Any], prep_res: Any, exec_res: Dict[str, Any]) -> Optional[str]:
        if "ask_user" in exec_res:
            shared["basic"]["ask_user"] = exec_res["ask_user"]
            shared[CALL_TO_ACTION] = InputKind.IMPROVE_BASIC_INPUT
            return Actions.IMPROVE_BASIC_INPUT
        shared["next_file"] = exec_res["next_file"]
        logging.getLogger(__name__).info(
            "entry_file_found",
            extra={
                "event": "entry_file_found",
                "run_id": self.params.get("run_id"),
                "file": exec_res["next_file"].get("name"),
            },
        )
        return Actions.DO_ANALYZE


class ImproveBasicInputNode(Node):
    # The user's answer is merged into `basic` before this node runs.
    async def post(self, shared: Dict[str, Any], prep_res: Any, exec_res: Any) -> Optional[str]:
        shared.get("basic", {}).pop("ask_user", None)
        return Actions.GET_ENTRY_FILE

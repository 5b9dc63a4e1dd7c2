from __future__ import annotations


class FlowError(Exception):
    """Base error of the flow engine."""
    code: str = "FLOW_ERROR"

    def __init__(self, message: str, *, run_id: str | None = None):
        super().__init__(message)
        self.run_id = run_id


class FlowNotFound(FlowError):
    code = "FLOW_NOT_FOUND"


class CorruptFlowRecord(FlowError):
    code = "FLOW_RECORD_CORRUPT"

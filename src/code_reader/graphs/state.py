# src/code_reader/graphs/state.py
from typing import Any, Dict, List, Optional

CALL_TO_ACTION = "call_to_action"
LAST_HEARTBEAT = "last_heartbeat"


class InputKind:
    IMPROVE_BASIC_INPUT = "improve_basic_input"
    USER_FEEDBACK = "user_feedback"
    FINISH = "finish"


def new_shared_state(basic: Dict[str, Any]) -> Dict[str, Any]:
    """Initial shared document for a code-reader run."""
    return {
        "basic": dict(basic),
        "current_file": None,
        "next_file": None,
        "user_feedback": None,
        "all_summaries": [],
        "summaries_buffer": [],
        "reduced_output": "",
        "analysis_complete": False,
        "completed": False,
        CALL_TO_ACTION: None,
        LAST_HEARTBEAT: None,
    }


def call_to_action(shared: Optional[Dict[str, Any]]) -> Optional[str]:
    if not shared:
        return None
    return shared.get(CALL_TO_ACTION) or None


def last_heartbeat(shared: Optional[Dict[str, Any]]) -> Optional[float]:
    if not shared:
        return None
    value = shared.get(LAST_HEARTBEAT)
    if value is None:
        return None
    return float(value)


def summaries_as_prior_index(shared: Dict[str, Any]) -> List[Dict[str, str]]:
    return [
        {"key": item["filename"], "text": item["summary"]}
        for item in shared.get("all_summaries") or []
        if item.get("filename") and item.get("summary")
    ]

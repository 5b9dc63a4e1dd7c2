from code_reader.flow.errors import CorruptFlowRecord, FlowError, FlowNotFound
from code_reader.flow.persisted import FLOW_KEY_PREFIX, PersistedFlow, flow_key

__all__ = [
    "CorruptFlowRecord",
    "FlowError",
    "FlowNotFound",
    "FLOW_KEY_PREFIX",
    "PersistedFlow",
    "flow_key",
]

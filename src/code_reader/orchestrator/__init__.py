from code_reader.orchestrator.coordinator import (
    CoordinatorError,
    FlowCoordinator,
    InputResult,
    TriggerOutcome,
)
from code_reader.orchestrator.registry import RunRegistry

__all__ = ["CoordinatorError", "FlowCoordinator", "InputResult", "RunRegistry", "TriggerOutcome"]

from code_reader.nodes.actions import Actions
from code_reader.nodes.analysis import AnalyzeFileNode, FinishNode, ReduceHistoryNode, UserFeedbackNode
from code_reader.nodes.discovery import GetEntryFileNode, ImproveBasicInputNode
from code_reader.nodes.worker import AnalysisWorker

__all__ = [
    "Actions",
    "AnalysisWorker",
    "AnalyzeFileNode",
    "FinishNode",
    "GetEntryFileNode",
    "ImproveBasicInputNode",
    "ReduceHistoryNode",
    "UserFeedbackNode",
]

from __future__ import annotations

from code_reader.graphs.graph import CompiledGraph, Graph
from code_reader.nodes.actions import Actions
from code_reader.nodes.analysis import AnalyzeFileNode, FinishNode, ReduceHistoryNode, UserFeedbackNode
from code_reader.nodes.discovery import GetEntryFileNode, ImproveBasicInputNode
from code_reader.nodes.worker import AnalysisWorker
from code_reader.rag.retriever import ContextRetriever

CODE_READER_GRAPH = "code_reader"


def build_code_reader_graph(
    worker: AnalysisWorker,
    retriever: ContextRetriever,
    *,
    max_retries: int = 3,
    wait: float = 0.0,
) -> CompiledGraph:
    graph = Graph(CODE_READER_GRAPH)

    graph.add_node("get_entry_file", GetEntryFileNode(worker, max_retries=max_retries, wait=wait))
    graph.add_node("improve_basic_input", ImproveBasicInputNode())
    graph.add_node("analyze_file", AnalyzeFileNode(worker, retriever, max_retries=max_retries, wait=wait))
    graph.add_node("user_feedback", UserFeedbackNode())
    graph.add_node("reduce_history", ReduceHistoryNode(worker, retriever, max_retries=max_retries, wait=wait))
    graph.add_node("finish", FinishNode())

    graph.set_entry_point("get_entry_file")

    graph.add_edges(
        "get_entry_file",
        {
            Actions.DO_ANALYZE: "analyze_file",
            Actions.IMPROVE_BASIC_INPUT: "improve_basic_input",
        },
    )
    graph.add_edge("improve_basic_input", Actions.GET_ENTRY_FILE, "get_entry_file")
    graph.add_edges(
        "analyze_file",
        {
            Actions.ASK_USER_FEEDBACK: "user_feedback",
            Actions.DO_REDUCE: "reduce_history",
        },
    )
    graph.add_edges(
        "user_feedback",
        {
            Actions.DO_ANALYZE: "analyze_file",
            Actions.DO_REDUCE: "reduce_history",
        },
    )
    graph.add_edges(
        "reduce_history",
        {
            Actions.DO_ANALYZE: "analyze_file",
            Actions.ALL_FILES_ANALYZED: "finish",
        },
    )

    return graph.compile()

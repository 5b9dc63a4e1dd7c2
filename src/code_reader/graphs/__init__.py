from code_reader.graphs.graph import DEFAULT_ACTION, CompiledGraph, Graph, GraphError
from code_reader.graphs.node import Node

__all__ = ["DEFAULT_ACTION", "CompiledGraph", "Graph", "GraphError", "Node"]

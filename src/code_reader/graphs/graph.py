from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from code_reader.graphs.node import Node

DEFAULT_ACTION = "default"


class GraphError(ValueError):
    pass


def _edge_key(action: Optional[str]) -> str:
    return action or DEFAULT_ACTION


class Graph:
    """
    Builder for a static flow graph: named nodes plus labeled transitions
    `(node_name, action) -> node_name`. Cycles are allowed.

        g = Graph("code_reader")
        g.add_node("analyze", AnalyzeNode())
        g.add_node("reduce", ReduceNode())
        g.set_entry_point("analyze")
        g.add_edges("analyze", {"doReduce": "reduce"})
        g.add_edges("reduce", {"doAnalyze": "analyze"})
        compiled = g.compile()
    """

    def __init__(self, name: str):
        self.name = name
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[Tuple[str, str], str] = {}
        self._entry: Optional[str] = None

    def add_node(self, name: str, node: Node) -> "Graph":
        if name in self._nodes:
            raise GraphError(f"Node already exists: {name}")
        self._nodes[name] = node
        return self

    def set_entry_point(self, name: str) -> "Graph":
        self._entry = name
        return self

    def add_edge(self, source: str, action: Optional[str], target: str) -> "Graph":
        key = (source, _edge_key(action))
        if key in self._edges and self._edges[key] != target:
            raise GraphError(f"Conflicting edge for {source!r} on action {key[1]!r}")
        self._edges[key] = target
        return self

    def add_edges(self, source: str, mapping: Mapping[str, str]) -> "Graph":
        for action, target in mapping.items():
            self.add_edge(source, action, target)
        return self

    def compile(self) -> "CompiledGraph":
        if self._entry is None:
            raise GraphError("Entry point is not set")
        if self._entry not in self._nodes:
            raise GraphError(f"Unknown entry point: {self._entry}")
        for (source, action), target in self._edges.items():
            if source not in self._nodes:
                raise GraphError(f"Edge from unknown node {source!r} ({action})")
            if target not in self._nodes:
                raise GraphError(f"Edge {source!r} --{action}--> unknown node {target!r}")
        return CompiledGraph(
            name=self.name,
            entry=self._entry,
            nodes=MappingProxyType(dict(self._nodes)),
            edges=MappingProxyType(dict(self._edges)),
        )


@dataclass(frozen=True)
class CompiledGraph:
    name: str
    entry: str
    nodes: Mapping[str, Node]
    edges: Mapping[Tuple[str, str], str]

    def node(self, name: str) -> Node:
        try:
            return self.nodes[name]
        except KeyError as exc:
            raise GraphError(f"Unknown node: {name}") from exc

    def next_node(self, name: str, action: Optional[str]) -> Optional[str]:
        return self.edges.get((name, _edge_key(action)))

    def resolve_position(self, actions: Iterable[Optional[str]]) -> Optional[str]:
        """
        Fold recorded actions over the graph starting at the entry node.

        Returns the name of the node to execute next, or None when some
        recorded action has no outgoing edge (the run is terminal).
        """
        current: Optional[str] = self.entry
        for action in actions:
            if current is None:
                return None
            current = self.next_node(current, action)
        return current

    def actions_from(self, name: str) -> Sequence[str]:
        return sorted(action for (source, action) in self.edges if source == name)

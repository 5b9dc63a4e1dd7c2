import pytest

from code_reader.graphs.graph import DEFAULT_ACTION, Graph, GraphError
from code_reader.graphs.node import Node


class Noop(Node):
    pass


def _graph():
    g = Graph("g")
    g.add_node("a", Noop())
    g.add_node("b", Noop())
    g.add_node("c", Noop())
    g.set_entry_point("a")
    g.add_edges("a", {"go": "b", "skip": "c"})
    g.add_edge("b", None, "c")
    g.add_edge("c", "again", "a")
    return g.compile()


def test_resolve_position_folds_actions_from_entry():
    graph = _graph()

    assert graph.resolve_position([]) == "a"
    assert graph.resolve_position(["go"]) == "b"
    assert graph.resolve_position(["go", None]) == "c"
    assert graph.resolve_position(["go", None, "again", "skip"]) == "c"


def test_none_action_uses_default_edge():
    graph = _graph()

    assert graph.next_node("b", None) == "c"
    assert graph.next_node("b", DEFAULT_ACTION) == "c"


def test_unknown_action_is_terminal():
    graph = _graph()

    assert graph.resolve_position(["nope"]) is None
    assert graph.resolve_position(["nope", "go"]) is None


def test_compile_rejects_unknown_targets_and_missing_entry():
    g = Graph("bad")
    g.add_node("a", Noop())
    with pytest.raises(GraphError):
        g.compile()

    g.set_entry_point("a")
    g.add_edge("a", "go", "missing")
    with pytest.raises(GraphError):
        g.compile()


def test_conflicting_edge_is_rejected():
    g = Graph("g")
    g.add_edge("a", "go", "b")
    g.add_edge("a", "go", "b")
    with pytest.raises(GraphError):
        g.add_edge("a", "go", "c")


def test_actions_from_lists_outgoing_labels():
    assert list(_graph().actions_from("a")) == ["go", "skip"]


@pytest.mark.asyncio
async def test_node_exec_is_retried_until_success():
    class Flaky(Node):
        def __init__(self):
            super().__init__(max_retries=3)
            self.attempts = 0

        async def exec(self, prep_res):
            self.attempts += 1
            if self.attempts < 3:
                raise RuntimeError("transient")
            return "ok"

        async def post(self, shared, prep_res, exec_res):
            shared["result"] = exec_res
            return "done"

    node = Flaky()
    shared = {}

    assert await node.run(shared) == "done"
    assert node.attempts == 3
    assert shared == {"result": "ok"}


@pytest.mark.asyncio
async def test_node_exec_failure_reaches_fallback_after_last_attempt():
    class AlwaysFails(Node):
        async def exec(self, prep_res):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await AlwaysFails(max_retries=2).run({})

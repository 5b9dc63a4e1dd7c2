import pytest

from code_reader.fakes.fake_embedder import FailingEmbedder, HashingEmbedder
from code_reader.rag.providers import VectorMatch
from code_reader.rag.retriever import (
    ContextRetriever,
    RecentStrategy,
    RetrieverConfig,
    SemanticStrategy,
    estimate_tokens,
    strategies_from_config,
)
from code_reader.rag.vector_store import NumpyVectorStore


class StubVectorStore:
    def __init__(self, matches=None):
        self.matches = list(matches or [])
        self.search_calls = []
        self.stored = []

    async def store(self, id, vector, metadata):
        self.stored.append((id, metadata))

    async def search(self, vector, *, top_k, where=None):
        self.search_calls.append({"top_k": top_k, "where": where})
        return self.matches[:top_k]

    async def delete(self, id):
        return None


def match(key, text, score):
    return VectorMatch(id=key, score=score, metadata={"key": key, "text": text, "timestamp": 1.0})


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


@pytest.mark.asyncio
async def test_budget_prefers_higher_priority_and_skips_items_that_do_not_fit():
    store = StubVectorStore([match("c.py", "C" * 8, 0.9)])
    config = RetrieverConfig(
        strategies=(RecentStrategy(count=2, priority=1000), SemanticStrategy(count=2, priority=500)),
        max_tokens=20,
    )
    retriever = ContextRetriever(HashingEmbedder(), store, config)
    prior = [{"key": "a.py", "text": "A" * 40}, {"key": "b.py", "text": "B" * 400}]

    result = await retriever.retrieve("main.py", "content", prior)

    # b.py is the most recent but too large; smaller items behind it still fit.
    assert result == ["File: a.py\n" + "A" * 40, "File: c.py\n" + "C" * 8]


@pytest.mark.asyncio
async def test_recent_items_are_most_recent_first_and_exclude_current():
    config = RetrieverConfig(strategies=(RecentStrategy(count=2, priority=10),), max_tokens=1000)
    retriever = ContextRetriever(HashingEmbedder(), StubVectorStore(), config)
    prior = [
        {"key": "a.py", "text": "a"},
        {"key": "b.py", "text": "b"},
        {"key": "cur.py", "text": "c"},
        {"key": "d.py", "text": "d"},
    ]

    result = await retriever.retrieve("cur.py", "x", prior)

    assert result == ["File: d.py\nd", "File: b.py\nb"]


@pytest.mark.asyncio
async def test_same_text_from_two_strategies_appears_once():
    store = StubVectorStore([match("a.py", "alpha", 0.8), match("b.py", "beta", 0.7)])
    config = RetrieverConfig(
        strategies=(RecentStrategy(count=3, priority=1000), SemanticStrategy(count=3, priority=500)),
        max_tokens=1000,
    )
    retriever = ContextRetriever(HashingEmbedder(), store, config)

    result = await retriever.retrieve("x.py", "x", [{"key": "a.py", "text": "alpha"}])

    assert result == ["File: a.py\nalpha", "File: b.py\nbeta"]


@pytest.mark.asyncio
async def test_search_filters_score_and_excluded_key():
    store = StubVectorStore(
        [match("self.py", "me", 0.99), match("a.py", "a", 0.5), match("b.py", "b", 0.05)]
    )
    retriever = ContextRetriever(HashingEmbedder(), store)

    hits = await retriever.search(
        "q", max_results=2, min_score=0.1, exclude_key="self.py", tag_filter={"run_id": "r1"}
    )

    assert [h.key for h in hits] == ["a.py"]
    assert hits[0].timestamp == 1.0
    assert store.search_calls == [{"top_k": 4, "where": {"run_id": "r1"}}]


@pytest.mark.asyncio
async def test_provider_failures_are_swallowed():
    store = StubVectorStore()
    retriever = ContextRetriever(FailingEmbedder(), store)

    await retriever.set("a.py", "alpha", tags={"run_id": "r1"})
    assert store.stored == []
    assert await retriever.search("q") == []

    result = await retriever.retrieve("x.py", "x", [{"key": "a.py", "text": "alpha"}])
    assert result == ["File: a.py\nalpha"]


@pytest.mark.asyncio
async def test_set_then_search_round_trip_is_scoped_by_tags():
    retriever = ContextRetriever(HashingEmbedder(), NumpyVectorStore())
    await retriever.set("router.py", "request routing and url dispatch", tags={"run_id": "r1"})
    await retriever.set("db.py", "request routing and url dispatch", tags={"run_id": "r2"})

    hits = await retriever.search("url routing", tag_filter={"run_id": "r1"})

    assert [h.key for h in hits] == ["router.py"]
    assert hits[0].text == "request routing and url dispatch"


@pytest.mark.asyncio
async def test_same_key_in_two_runs_keeps_both_entries():
    retriever = ContextRetriever(HashingEmbedder(), NumpyVectorStore())
    await retriever.set("app.py", "flask app factory", tags={"run_id": "r1"}, entry_id="r1:app.py")
    await retriever.set("app.py", "flask app factory and cli", tags={"run_id": "r2"}, entry_id="r2:app.py")

    first = await retriever.search("flask app", tag_filter={"run_id": "r1"})
    second = await retriever.search("flask app", tag_filter={"run_id": "r2"})

    assert [(h.key, h.text) for h in first] == [("app.py", "flask app factory")]
    assert [(h.key, h.text) for h in second] == [("app.py", "flask app factory and cli")]


@pytest.mark.asyncio
async def test_unknown_strategy_objects_are_ignored():
    class Bogus:
        type = "bogus"
        priority = 1

    config = RetrieverConfig(strategies=(Bogus(), RecentStrategy(count=1, priority=5)), max_tokens=100)
    retriever = ContextRetriever(HashingEmbedder(), StubVectorStore(), config)

    assert await retriever.retrieve("x", "x", [{"key": "a", "text": "t"}]) == ["File: a\nt"]


def test_strategies_from_config_skips_unknown_types():
    strategies = strategies_from_config(
        [
            {"type": "recent", "count": 3, "priority": 1000},
            {"type": "keyword", "count": 1, "priority": 1},
            {"type": "semantic", "count": 5, "priority": 500, "min_score": 0.2},
        ]
    )

    assert strategies == [
        RecentStrategy(count=3, priority=1000),
        SemanticStrategy(count=5, priority=500, min_score=0.2),
    ]

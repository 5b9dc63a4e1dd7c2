import pytest

from code_reader.rag.vector_store import NumpyVectorStore


@pytest.mark.asyncio
async def test_numpy_store_ranks_by_cosine_and_filters():
    store = NumpyVectorStore()
    await store.store("x", [1.0, 0.0], {"run_id": "r1"})
    await store.store("y", [0.6, 0.8], {"run_id": "r1"})
    await store.store("z", [1.0, 0.0], {"run_id": "r2"})

    matches = await store.search([1.0, 0.0], top_k=5, where={"run_id": "r1"})

    assert [m.id for m in matches] == ["x", "y"]
    assert matches[0].score == pytest.approx(1.0)
    assert matches[1].score == pytest.approx(0.6)


@pytest.mark.asyncio
async def test_numpy_store_overwrite_and_delete():
    store = NumpyVectorStore()
    await store.store("x", [1.0, 0.0], {"text": "old"})
    await store.store("x", [0.0, 1.0], {"text": "new"})

    matches = await store.search([0.0, 1.0], top_k=1)
    assert matches[0].metadata["text"] == "new"
    assert len(store) == 1

    await store.delete("x")
    assert await store.search([0.0, 1.0], top_k=1) == []


@pytest.mark.asyncio
async def test_numpy_store_rejects_dimension_mismatch():
    store = NumpyVectorStore()
    await store.store("x", [1.0, 0.0], {})

    with pytest.raises(ValueError):
        await store.search([1.0, 0.0, 0.0], top_k=1)


@pytest.mark.asyncio
async def test_faiss_store_matches_numpy_semantics():
    pytest.importorskip("faiss")
    from code_reader.rag.vector_store import FaissVectorStore

    store = FaissVectorStore()
    await store.store("x", [1.0, 0.0], {"run_id": "r1"})
    await store.store("y", [0.6, 0.8], {"run_id": "r1"})
    await store.store("z", [1.0, 0.0], {"run_id": "r2"})

    matches = await store.search([1.0, 0.0], top_k=5, where={"run_id": "r1"})
    assert [m.id for m in matches] == ["x", "y"]

    await store.store("x", [0.0, 1.0], {"run_id": "r1"})
    assert len(store) == 3
    top = await store.search([0.0, 1.0], top_k=1)
    assert top[0].id == "x"

    await store.delete("y")
    ids = [m.id for m in await store.search([1.0, 0.0], top_k=5)]
    assert "y" not in ids

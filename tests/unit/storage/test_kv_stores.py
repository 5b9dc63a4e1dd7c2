import asyncio

import pytest

from code_reader.storage.file_store import FileKVStore
from code_reader.storage.kv import InMemoryKVStore, KVStore, supports_delete, supports_listing


@pytest.mark.asyncio
async def test_in_memory_store_does_not_alias_values():
    store = InMemoryKVStore()
    value = {"items": [1]}
    await store.write("k", value)

    value["items"].append(2)
    read = await store.read("k")
    read["items"].append(3)

    assert await store.read("k") == {"items": [1]}


@pytest.mark.asyncio
async def test_in_memory_store_delete_and_list():
    store = InMemoryKVStore()
    await store.write("flow:a", {})
    await store.write("flow:b", {})
    await store.write("other", {})

    assert sorted(await store.list_keys("flow:")) == ["flow:a", "flow:b"]
    await store.delete("flow:a")
    assert await store.read("flow:a") is None
    assert await store.list_keys("flow:") == ["flow:b"]


@pytest.mark.asyncio
async def test_file_store_round_trip_with_unsafe_keys(tmp_path):
    store = FileKVStore(tmp_path / "flows")
    await store.write("flow:a/b c", {"shared": {"x": "é"}})

    assert await store.read("flow:a/b c") == {"shared": {"x": "é"}}
    assert await store.read("flow:missing") is None
    assert await store.list_keys("flow:") == ["flow:a/b c"]
    assert not list((tmp_path / "flows").glob("*.tmp"))


@pytest.mark.asyncio
async def test_file_store_overwrite_and_delete(tmp_path):
    store = FileKVStore(tmp_path)
    await store.write("k", {"v": 1})
    await store.write("k", {"v": 2})
    assert await store.read("k") == {"v": 2}

    await store.delete("k")
    await store.delete("k")
    assert await store.read("k") is None


@pytest.mark.asyncio
async def test_file_store_concurrent_writes_to_one_key(tmp_path):
    store = FileKVStore(tmp_path)
    payloads = [{"writer": i, "blob": str(i) * 200_000} for i in range(4)]

    for _ in range(10):
        await asyncio.gather(*(store.write("flow:r", p) for p in payloads))

    assert await store.read("flow:r") in payloads
    assert await store.list_keys() == ["flow:r"]
    assert not list(tmp_path.glob("*.tmp"))


def test_capability_checks():
    class ReadWriteOnly:
        async def read(self, key):
            return None

        async def write(self, key, value):
            return None

    minimal = ReadWriteOnly()
    assert isinstance(minimal, KVStore)
    assert not supports_delete(minimal)
    assert not supports_listing(minimal)
    assert supports_delete(InMemoryKVStore())
    assert supports_listing(InMemoryKVStore())

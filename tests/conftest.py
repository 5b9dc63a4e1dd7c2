import sys
from pathlib import Path

# чтобы видеть src/
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import pytest

from code_reader.fakes.fake_embedder import HashingEmbedder
from code_reader.fakes.fake_worker import FakeAnalysisWorker
from code_reader.queue.memory_queue import InMemoryQueue
from code_reader.rag.retriever import ContextRetriever
from code_reader.rag.vector_store import NumpyVectorStore
from code_reader.storage.kv import InMemoryKVStore


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def kv():
    return InMemoryKVStore()


@pytest.fixture
def queue():
    return InMemoryQueue()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def retriever():
    return ContextRetriever(HashingEmbedder(), NumpyVectorStore())


@pytest.fixture
def worker():
    return FakeAnalysisWorker()


@pytest.fixture
def basic():
    return {
        "repo_name": "demo",
        "main_goal": "understand routing",
        "file_structure": ["app.py", "routes.py", "models.py"],
    }


@pytest.fixture
def tmp_data_dir(tmp_path, monkeypatch):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setenv("CODE_READER_DATA_DIR", str(data_dir))
    return data_dir

from __future__ import annotations

import logging
from functools import lru_cache

from code_reader.api.config import get_settings
from code_reader.fakes.fake_embedder import HashingEmbedder
from code_reader.fakes.fake_worker import FakeAnalysisWorker
from code_reader.graphs.code_reader import build_code_reader_graph
from code_reader.graphs.graph import CompiledGraph
from code_reader.orchestrator.coordinator import FlowCoordinator
from code_reader.queue.consumer import FlowQueueConsumer, build_consumer
from code_reader.queue.memory_queue import InMemoryQueue
from code_reader.rag.embedder import LocalEmbedder
from code_reader.rag.retriever import DEFAULT_RETRIEVER_CONFIG, ContextRetriever, RetrieverConfig
from code_reader.rag.vector_store import FaissVectorStore, NumpyVectorStore
from code_reader.storage.file_store import FileKVStore
from code_reader.storage.kv import InMemoryKVStore, KVStore
from code_reader.telemetry.noop import NoOpTelemetry


@lru_cache
def get_store() -> KVStore:
    settings = get_settings()
    if settings.store == "memory":
        return InMemoryKVStore()
    return FileKVStore(settings.flows_dir)


@lru_cache
def get_queue() -> InMemoryQueue:
    return InMemoryQueue()


@lru_cache
def get_embedder():
    settings = get_settings()
    if settings.embedding_model:
        return LocalEmbedder(model_path=settings.embedding_model)
    logging.getLogger(__name__).warning(
        "embedding_model_not_configured",
        extra={"event": "embedding_model_not_configured", "fallback": "HashingEmbedder"},
    )
    return HashingEmbedder()


@lru_cache
def get_vector_store():
    if get_settings().vector_store == "faiss":
        return FaissVectorStore()
    return NumpyVectorStore()


@lru_cache
def get_retriever() -> ContextRetriever:
    config = RetrieverConfig(
        strategies=DEFAULT_RETRIEVER_CONFIG.strategies,
        max_tokens=get_settings().memory_max_tokens,
    )
    return ContextRetriever(get_embedder(), get_vector_store(), config)


@lru_cache
def get_worker():
    # No model-backed worker ships with the service; deployments override this getter.
    return FakeAnalysisWorker()


@lru_cache
def get_graph() -> CompiledGraph:
    return build_code_reader_graph(get_worker(), get_retriever())


@lru_cache
def get_coordinator() -> FlowCoordinator:
    return FlowCoordinator(
        get_store(),
        get_graph(),
        get_queue(),
        heartbeat_interval=get_settings().heartbeat_interval_s,
        telemetry=NoOpTelemetry(),
    )


@lru_cache
def get_consumer() -> FlowQueueConsumer:
    return build_consumer(get_queue(), get_coordinator(), get_settings())


def reset_deps() -> None:
    for getter in (
        get_settings,
        get_store,
        get_queue,
        get_embedder,
        get_vector_store,
        get_retriever,
        get_worker,
        get_graph,
        get_coordinator,
        get_consumer,
    ):
        getter.cache_clear()

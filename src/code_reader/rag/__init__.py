from code_reader.rag.providers import EmbeddingProvider, VectorMatch, VectorStoreProvider
from code_reader.rag.retriever import (
    DEFAULT_RETRIEVER_CONFIG,
    ContextRetriever,
    RecentStrategy,
    RetrieverConfig,
    SearchHit,
    SemanticStrategy,
    estimate_tokens,
    strategies_from_config,
)
from code_reader.rag.vector_store import FaissVectorStore, NumpyVectorStore

__all__ = [
    "DEFAULT_RETRIEVER_CONFIG",
    "ContextRetriever",
    "EmbeddingProvider",
    "FaissVectorStore",
    "NumpyVectorStore",
    "RecentStrategy",
    "RetrieverConfig",
    "SearchHit",
    "SemanticStrategy",
    "VectorMatch",
    "VectorStoreProvider",
    "estimate_tokens",
    "strategies_from_config",
]

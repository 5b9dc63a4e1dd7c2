"""
Context retriever: recalls prior analysis results for the next unit of work.

Candidates come from configured strategies (recently completed results and
semantic neighbours from the vector index), are deduplicated by exact text,
ordered by score and packed greedily into a token budget. Everything on this
path is best-effort: provider failures are logged and produce less context,
never an error for the caller.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from code_reader.rag.providers import EmbeddingProvider, VectorStoreProvider


@dataclass(frozen=True)
class RecentStrategy:
    count: int
    priority: int
    type: str = field(default="recent", init=False)


@dataclass(frozen=True)
class SemanticStrategy:
    count: int
    priority: int
    min_score: float = 0.1
    type: str = field(default="semantic", init=False)


RetrievalStrategy = Union[RecentStrategy, SemanticStrategy]


@dataclass(frozen=True)
class RetrieverConfig:
    strategies: Sequence[Any] = (
        RecentStrategy(count=3, priority=1000),
        SemanticStrategy(count=5, priority=500, min_score=0.1),
    )
    max_tokens: int = 20000


DEFAULT_RETRIEVER_CONFIG = RetrieverConfig()


@dataclass(frozen=True)
class SearchHit:
    key: str
    text: str
    score: float
    timestamp: float | None = None


@dataclass
class _Candidate:
    source: str
    content: str
    tokens: int
    score: int


def estimate_tokens(text: str) -> int:
    # ~4 characters per token; only gates a soft budget.
    return math.ceil(len(text) / 4)


def format_context(key: str, text: str) -> str:
    return f"File: {key}\n{text}"


def strategies_from_config(items: Iterable[Mapping[str, Any]]) -> List[RetrievalStrategy]:
    """Build strategies from plain dicts (e.g. JSON config); unknown types are skipped."""
    logger = logging.getLogger(__name__)
    strategies: List[RetrievalStrategy] = []
    for item in items:
        kind = item.get("type")
        if kind == "recent":
            strategies.append(RecentStrategy(count=int(item["count"]), priority=int(item["priority"])))
        elif kind == "semantic":
            strategies.append(
                SemanticStrategy(
                    count=int(item["count"]),
                    priority=int(item["priority"]),
                    min_score=float(item.get("min_score", 0.1)),
                )
            )
        else:
            logger.warning("unknown_retrieval_strategy", extra={"event": "unknown_retrieval_strategy", "type": kind})
    return strategies


def _prior_key_text(entry: Any) -> tuple[str, str]:
    if isinstance(entry, Mapping):
        return str(entry.get("key") or ""), str(entry.get("text") or "")
    return str(getattr(entry, "key", "") or ""), str(getattr(entry, "text", "") or "")


class ContextRetriever:
    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_store: VectorStoreProvider,
        config: RetrieverConfig = DEFAULT_RETRIEVER_CONFIG,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.config = config
        self._logger = logging.getLogger(__name__)

    async def set(
        self,
        key: str,
        text: str,
        tags: Optional[Mapping[str, Any]] = None,
        *,
        entry_id: Optional[str] = None,
    ) -> None:
        """
        Index `text` under `key`. Never raises.

        `entry_id` names the vector slot (defaults to `key`); pass a scoped id
        when several runs index the same key.
        """
        try:
            vector = await self.embedder.embed(text)
            await self.vector_store.store(
                entry_id or key,
                vector,
                {
                    "key": key,
                    "text": text,
                    "timestamp": time.time(),
                    "token_estimate": estimate_tokens(text),
                    **dict(tags or {}),
                },
            )
        except Exception as exc:
            self._logger.warning(
                "memory_store_failed",
                extra={"event": "memory_store_failed", "key": key, "error": str(exc)},
            )
            return
        self._logger.info("memory_stored", extra={"event": "memory_stored", "key": key})

    async def search(
        self,
        query: str,
        *,
        max_results: int = 5,
        min_score: float = 0.1,
        exclude_key: Optional[str] = None,
        tag_filter: Optional[Mapping[str, Any]] = None,
    ) -> List[SearchHit]:
        try:
            vector = await self.embedder.embed(query)
            matches = await self.vector_store.search(
                vector,
                top_k=max_results * 2,
                where=dict(tag_filter or {}),
            )
        except Exception as exc:
            self._logger.warning(
                "memory_search_failed",
                extra={"event": "memory_search_failed", "error": str(exc)},
            )
            return []

        hits: List[SearchHit] = []
        for match in matches:
            if match.score < min_score:
                continue
            key = match.metadata.get("key", match.id)
            if exclude_key is not None and key == exclude_key:
                continue
            hits.append(
                SearchHit(
                    key=key,
                    text=match.metadata.get("text", ""),
                    score=match.score,
                    timestamp=match.metadata.get("timestamp"),
                )
            )
        return hits[:max_results]

    async def retrieve(
        self,
        current_key: str,
        current_content: str,
        prior_index: Sequence[Any],
        tags: Optional[Mapping[str, Any]] = None,
    ) -> List[str]:
        candidates: List[_Candidate] = []

        for strategy in self.config.strategies:
            if isinstance(strategy, RecentStrategy):
                contexts = self._recent_contexts(current_key, prior_index, strategy.count)
                source = "recent"
            elif isinstance(strategy, SemanticStrategy):
                hits = await self.search(
                    current_content,
                    max_results=strategy.count,
                    min_score=strategy.min_score,
                    exclude_key=current_key,
                    tag_filter=tags,
                )
                contexts = [format_context(hit.key, hit.text) for hit in hits]
                source = "semantic"
            else:
                self._logger.warning(
                    "unknown_retrieval_strategy",
                    extra={"event": "unknown_retrieval_strategy", "type": getattr(strategy, "type", None)},
                )
                continue
            for index, content in enumerate(contexts):
                candidates.append(
                    _Candidate(
                        source=source,
                        content=content,
                        tokens=estimate_tokens(content),
                        score=strategy.priority - index,
                    )
                )

        selected = self._select_by_budget(self._deduplicate(candidates), self.config.max_tokens)
        self._logger.info(
            "memory_retrieved",
            extra={
                "event": "memory_retrieved",
                "key": current_key,
                "candidates": len(candidates),
                "selected": len(selected),
                "tokens": sum(c.tokens for c in selected),
            },
        )
        return [c.content for c in selected]

    @staticmethod
    def _recent_contexts(current_key: str, prior_index: Sequence[Any], count: int) -> List[str]:
        if count <= 0:
            return []
        entries = []
        for entry in prior_index:
            key, text = _prior_key_text(entry)
            if not text or key == current_key:
                continue
            entries.append((key, text))
        recent = entries[-count:]
        recent.reverse()
        return [format_context(key, text) for key, text in recent]

    @staticmethod
    def _deduplicate(candidates: List[_Candidate]) -> List[_Candidate]:
        seen: set[str] = set()
        unique: List[_Candidate] = []
        for candidate in candidates:
            if candidate.content in seen:
                continue
            seen.add(candidate.content)
            unique.append(candidate)
        return unique

    @staticmethod
    def _select_by_budget(candidates: List[_Candidate], max_tokens: int) -> List[_Candidate]:
        ordered = sorted(candidates, key=lambda c: c.score, reverse=True)
        selected: List[_Candidate] = []
        total = 0
        for candidate in ordered:
            if total + candidate.tokens <= max_tokens:
                selected.append(candidate)
                total += candidate.tokens
        return selected

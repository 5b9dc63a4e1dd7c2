from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence


class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> List[float]:
        ...


@dataclass(frozen=True)
class VectorMatch:
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class VectorStoreProvider(Protocol):
    async def store(self, id: str, vector: Sequence[float], metadata: Mapping[str, Any]) -> None:
        ...

    async def search(
        self,
        vector: Sequence[float],
        *,
        top_k: int,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[VectorMatch]:
        ...

    async def delete(self, id: str) -> None:
        ...


def matches_where(metadata: Mapping[str, Any], where: Optional[Mapping[str, Any]]) -> bool:
    if not where:
        return True
    return all(metadata.get(key) == value for key, value in where.items())

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from code_reader.rag.providers import VectorMatch, matches_where


def _as_unit_row(vector: Sequence[float]) -> np.ndarray:
    row = np.asarray(vector, dtype="float32").reshape(1, -1)
    norm = float(np.linalg.norm(row))
    if norm == 0.0:
        return row
    return row / norm


class NumpyVectorStore:
    """
    Exact cosine search over an in-process numpy matrix.

    Suited for per-process memory of a few thousand entries; use
    FaissVectorStore when the index grows beyond that.
    """

    def __init__(self) -> None:
        self._ids: List[str] = []
        self._rows: Dict[str, np.ndarray] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._ids)

    async def store(self, id: str, vector: Sequence[float], metadata: Mapping[str, Any]) -> None:
        row = _as_unit_row(vector)
        async with self._lock:
            if id not in self._rows:
                self._ids.append(id)
            self._rows[id] = row[0]
            self._metadata[id] = dict(metadata or {})

    async def search(
        self,
        vector: Sequence[float],
        *,
        top_k: int,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[VectorMatch]:
        if top_k <= 0:
            return []
        async with self._lock:
            candidates = [i for i in self._ids if matches_where(self._metadata[i], where)]
            if not candidates:
                return []
            query = _as_unit_row(vector)[0]
            matrix = np.stack([self._rows[i] for i in candidates])
            if matrix.shape[1] != query.shape[0]:
                raise ValueError(
                    f"query dimension {query.shape[0]} does not match index dimension {matrix.shape[1]}"
                )
            scores = matrix @ query
            order = np.argsort(-scores, kind="stable")[:top_k]
            return [
                VectorMatch(
                    id=candidates[int(idx)],
                    score=float(scores[int(idx)]),
                    metadata=dict(self._metadata[candidates[int(idx)]]),
                )
                for idx in order
            ]

    async def delete(self, id: str) -> None:
        async with self._lock:
            if id in self._rows:
                self._ids.remove(id)
                self._rows.pop(id, None)
                self._metadata.pop(id, None)


class FaissVectorStore:
    """
    Inner-product FAISS index over L2-normalized vectors (cosine similarity).

    Keys are mapped onto int64 ids so that re-storing a key replaces its
    vector and `delete` can drop it from the index.
    """

    def __init__(self, dim: int | None = None):
        try:
            import faiss  # type: ignore
        except Exception as exc:  # pragma: no cover
            raise RuntimeError("faiss is required for FaissVectorStore") from exc
        self._faiss = faiss
        self._index: Any = None
        self._dim: int | None = None
        self._key_to_id: Dict[str, int] = {}
        self._id_to_key: Dict[int, str] = {}
        self._metadata: Dict[int, Dict[str, Any]] = {}
        self._next_id = 0
        self._lock = asyncio.Lock()
        if dim is not None:
            self._ensure_index(dim)

    def __len__(self) -> int:
        return 0 if self._index is None else int(self._index.ntotal)

    def _ensure_index(self, dim: int) -> None:
        if self._index is None:
            self._dim = dim
            self._index = self._faiss.IndexIDMap2(self._faiss.IndexFlatIP(dim))
            return
        if dim != self._dim:
            raise ValueError(f"vector dimension {dim} does not match index dimension {self._dim}")

    def _remove(self, internal_id: int) -> None:
        self._index.remove_ids(np.array([internal_id], dtype="int64"))
        key = self._id_to_key.pop(internal_id, None)
        if key is not None:
            self._key_to_id.pop(key, None)
        self._metadata.pop(internal_id, None)

    async def store(self, id: str, vector: Sequence[float], metadata: Mapping[str, Any]) -> None:
        row = _as_unit_row(vector)
        async with self._lock:
            self._ensure_index(int(row.shape[1]))
            existing = self._key_to_id.get(id)
            if existing is not None:
                self._remove(existing)
            internal_id = self._next_id
            self._next_id += 1
            self._index.add_with_ids(row, np.array([internal_id], dtype="int64"))
            self._key_to_id[id] = internal_id
            self._id_to_key[internal_id] = id
            self._metadata[internal_id] = dict(metadata or {})

    async def search(
        self,
        vector: Sequence[float],
        *,
        top_k: int,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[VectorMatch]:
        if top_k <= 0:
            return []
        async with self._lock:
            if self._index is None or self._index.ntotal == 0:
                return []
            query = _as_unit_row(vector)
            self._ensure_index(int(query.shape[1]))
            # Equality filters are applied after the search, so scan the whole
            # index when filtering to keep top_k results within the filter.
            k = int(self._index.ntotal) if where else min(int(top_k), int(self._index.ntotal))
            distances, indices = self._index.search(query, k)
            results: List[VectorMatch] = []
            for score, idx in zip(distances[0], indices[0]):
                internal_id = int(idx)
                if internal_id < 0 or internal_id not in self._id_to_key:
                    continue
                metadata = self._metadata.get(internal_id, {})
                if not matches_where(metadata, where):
                    continue
                results.append(
                    VectorMatch(id=self._id_to_key[internal_id], score=float(score), metadata=dict(metadata))
                )
                if len(results) >= top_k:
                    break
            return results

    async def delete(self, id: str) -> None:
        async with self._lock:
            internal_id = self._key_to_id.get(id)
            if internal_id is not None:
                self._remove(internal_id)

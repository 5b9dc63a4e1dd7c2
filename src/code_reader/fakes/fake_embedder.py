# src/code_reader/fakes/fake_embedder.py
from __future__ import annotations

import hashlib
import re
from typing import List

import numpy as np

_TOKEN = re.compile(r"[A-Za-z0-9_]+")


class HashingEmbedder:
    """Deterministic bag-of-words embedder for tests and model-less deployments."""

    def __init__(self, dim: int = 256):
        self.dim = dim

    def _bucket(self, token: str) -> int:
        digest = hashlib.md5(token.encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "little") % self.dim

    async def embed(self, text: str) -> List[float]:
        vector = np.zeros(self.dim, dtype="float32")
        for token in _TOKEN.findall(text.lower()):
            vector[self._bucket(token)] += 1.0
        norm = float(np.linalg.norm(vector))
        if norm > 0:
            vector /= norm
        return vector.tolist()


class FailingEmbedder:
    async def embed(self, text: str) -> List[float]:  # noqa: ARG002
        raise RuntimeError("embedding backend unavailable")

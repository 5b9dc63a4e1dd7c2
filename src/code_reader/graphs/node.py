from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional


class Node:
    """
    Unit of graph logic with a prep -> exec -> post lifecycle.

    - prep(shared): read what exec needs from the shared state
    - exec(prep_res): do the work; retried up to `max_retries` attempts
    - post(shared, prep_res, exec_res): write results into `shared` and
      return the action label selecting the outgoing edge (None = default/terminal)

    Nodes are stateless between runs: per-run values arrive through `params`,
    set by the engine right before each execution.
    """

    def __init__(self, max_retries: int = 1, wait: float = 0.0):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.max_retries = max_retries
        self.wait = wait
        self.params: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        return type(self).__name__

    def set_params(self, params: Dict[str, Any]) -> None:
        self.params = dict(params or {})

    async def prep(self, shared: Dict[str, Any]) -> Any:
        return None

    async def exec(self, prep_res: Any) -> Any:
        return None

    async def exec_fallback(self, prep_res: Any, exc: Exception) -> Any:
        raise exc

    async def post(self, shared: Dict[str, Any], prep_res: Any, exec_res: Any) -> Optional[str]:
        return None

    async def _exec_with_retries(self, prep_res: Any) -> Any:
        logger = logging.getLogger(__name__)
        for attempt in range(1, self.max_retries + 1):
            try:
                return await self.exec(prep_res)
            except Exception as exc:
                if attempt == self.max_retries:
                    return await self.exec_fallback(prep_res, exc)
                logger.warning(
                    "node_exec_retry",
                    extra={
                        "event": "node_exec_retry",
                        "node": self.name,
                        "attempt": attempt,
                        "error": str(exc),
                    },
                )
                if self.wait > 0:
                    await asyncio.sleep(self.wait)
        raise RuntimeError("unreachable")  # pragma: no cover

    async def run(self, shared: Dict[str, Any]) -> Optional[str]:
        prep_res = await self.prep(shared)
        exec_res = await self._exec_with_retries(prep_res)
        return await self.post(shared, prep_res, exec_res)

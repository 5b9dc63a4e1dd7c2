from __future__ import annotations

import asyncio
import contextlib
from typing import Dict, Optional

from code_reader.flow.persisted import PersistedFlow


class RunRegistry:
    """
    In-process bookkeeping of runs this process is executing.

    A run is claimed before any await so two concurrent triggers in the same
    process cannot both start it. Heartbeat tasks are owned here so that
    `close()` can tear everything down on shutdown.
    """

    def __init__(self) -> None:
        self._engines: Dict[str, Optional[PersistedFlow]] = {}
        self._heartbeats: Dict[str, asyncio.Task] = {}

    def __contains__(self, run_id: str) -> bool:
        return run_id in self._engines

    def __len__(self) -> int:
        return len(self._engines)

    def claim(self, run_id: str) -> bool:
        if run_id in self._engines:
            return False
        self._engines[run_id] = None
        return True

    def set_engine(self, run_id: str, engine: PersistedFlow) -> None:
        self._engines[run_id] = engine

    def start_heartbeat(self, run_id: str, task: asyncio.Task) -> None:
        previous = self._heartbeats.pop(run_id, None)
        if previous is not None:
            previous.cancel()
        self._heartbeats[run_id] = task

    def has_heartbeat(self, run_id: str) -> bool:
        task = self._heartbeats.get(run_id)
        return task is not None and not task.done()

    async def stop_heartbeat(self, run_id: str) -> None:
        task = self._heartbeats.pop(run_id, None)
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def release(self, run_id: str) -> None:
        await self.stop_heartbeat(run_id)
        self._engines.pop(run_id, None)

    async def close(self) -> None:
        for run_id in list(self._heartbeats):
            await self.stop_heartbeat(run_id)
        self._engines.clear()

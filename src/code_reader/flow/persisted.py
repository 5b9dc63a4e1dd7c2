"""
Persisted flow: a step engine that advances a static graph one edge at a time.

Storage layout (one document per run):

    flow:<run_id> -> {
        "graph_name": str,
        "params": {...},
        "shared": {...},          # domain state, mutated by nodes
        "created_at": ISO-8601,
        "history": [{"node_name": str, "action": str | None}, ...],
    }

Only the sequence of actions is stored. The current position is recomputed on
every step by folding that sequence over the graph, so any process holding the
same graph can continue a run. A step either persists its full effect in one
write or, if the node raises, persists nothing.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from code_reader.flow.errors import CorruptFlowRecord, FlowNotFound
from code_reader.graphs.graph import CompiledGraph
from code_reader.graphs.state import LAST_HEARTBEAT
from code_reader.storage.kv import KVStore

FLOW_KEY_PREFIX = "flow:"


def flow_key(run_id: str) -> str:
    return f"{FLOW_KEY_PREFIX}{run_id}"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PersistedFlow:
    def __init__(self, graph: CompiledGraph, kv: KVStore, run_id: str | None = None):
        self.graph = graph
        self.kv = kv
        self.run_id = run_id or uuid4().hex
        self.params: Dict[str, Any] = {}
        self._write_lock = asyncio.Lock()
        self._logger = logging.getLogger(__name__)

    @property
    def key(self) -> str:
        return flow_key(self.run_id)

    def get_run_id(self) -> str:
        return self.run_id

    def set_params(self, params: Mapping[str, Any]) -> "PersistedFlow":
        self.params = dict(params or {})
        return self

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────
    async def init(self, shared: Dict[str, Any]) -> None:
        existing = await self.kv.read(self.key)
        if existing is not None:
            return
        await self.kv.write(
            self.key,
            {
                "graph_name": self.graph.name,
                "params": copy.deepcopy(self.params),
                "shared": copy.deepcopy(shared),
                "created_at": _utc_now(),
                "history": [],
            },
        )

    async def step(self) -> bool:
        record = await self._load_record()
        history: List[Dict[str, Any]] = record["history"]

        position = self.graph.resolve_position(entry.get("action") for entry in history)
        if position is None:
            return False

        # Per-step copy: one graph instance serves every run in the process.
        node = copy.copy(self.graph.node(position))
        shared = copy.deepcopy(record["shared"])
        node.set_params({**self.params, **(record.get("params") or {})})

        start = time.perf_counter()
        try:
            action = await node.run(shared)
        except Exception as exc:
            self._logger.warning(
                "flow_step_failed",
                extra={
                    "event": "flow_step_failed",
                    "run_id": self.run_id,
                    "node": position,
                    "step_index": len(history),
                    "error": str(exc),
                },
            )
            raise

        updated = dict(record)
        updated["shared"] = shared
        updated["history"] = history + [{"node_name": position, "action": action}]
        async with self._write_lock:
            # The heartbeat is renewed while the node runs; nodes never own it.
            current = await self.kv.read(self.key)
            stored = current.get("shared") if isinstance(current, dict) else None
            if isinstance(stored, dict) and LAST_HEARTBEAT in stored:
                shared[LAST_HEARTBEAT] = stored[LAST_HEARTBEAT]
            await self.kv.write(self.key, updated)

        self._logger.info(
            "flow_step_completed",
            extra={
                "event": "flow_step_completed",
                "run_id": self.run_id,
                "node": position,
                "action": action,
                "step_index": len(history),
                "latency_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return True

    async def run(self, shared: Dict[str, Any]) -> Optional[str]:
        await self.init(shared)
        while await self.step():
            pass
        record = await self._load_record()
        history = record["history"]
        return history[-1].get("action") if history else None

    # ──────────────────────────────────────────────────────────────
    # Shared state access (does not move the position)
    # ──────────────────────────────────────────────────────────────
    async def get_shared(self) -> Optional[Dict[str, Any]]:
        record = await self.kv.read(self.key)
        if record is None:
            return None
        return record.get("shared")

    async def set_shared(self, shared: Dict[str, Any]) -> None:
        async with self._write_lock:
            record = await self._load_record()
            record["shared"] = copy.deepcopy(shared)
            await self.kv.write(self.key, record)

    async def patch_shared(self, fields: Mapping[str, Any]) -> None:
        """Rewrite only the given top-level keys of the stored shared state."""
        async with self._write_lock:
            record = await self._load_record()
            record["shared"].update(copy.deepcopy(dict(fields)))
            await self.kv.write(self.key, record)

    async def get_history(self) -> List[Dict[str, Any]]:
        record = await self._load_record()
        return list(record["history"])

    async def current_node(self) -> Optional[str]:
        history = await self.get_history()
        return self.graph.resolve_position(entry.get("action") for entry in history)

    # ──────────────────────────────────────────────────────────────
    # Static helpers
    # ──────────────────────────────────────────────────────────────
    @classmethod
    async def attach(cls, kv: KVStore, run_id: str, graph: CompiledGraph) -> "PersistedFlow":
        record = await kv.read(flow_key(run_id))
        if record is None:
            raise FlowNotFound(f"flow not found: {run_id}", run_id=run_id)
        flow = cls(graph, kv, run_id)
        flow.set_params(record.get("params") or {})
        return flow

    async def _load_record(self) -> Dict[str, Any]:
        record = await self.kv.read(self.key)
        if record is None:
            raise FlowNotFound(f"flow not found: {self.run_id}", run_id=self.run_id)
        if not isinstance(record, dict):
            raise CorruptFlowRecord(f"flow record is not an object: {self.run_id}", run_id=self.run_id)
        if not isinstance(record.get("shared"), dict):
            raise CorruptFlowRecord(f"flow record has no shared state: {self.run_id}", run_id=self.run_id)
        if not isinstance(record.get("history"), list):
            raise CorruptFlowRecord(f"flow record has no history: {self.run_id}", run_id=self.run_id)
        return record

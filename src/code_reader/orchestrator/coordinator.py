# src/code_reader/orchestrator/coordinator.py
"""
Run coordination: decides which trigger may execute steps for a run.

A process advances a run only when no handler in this process owns it, the
run is not paused for user input, and no other process has renewed the
advisory heartbeat lease recently. While executing, a background task renews
`last_heartbeat` every `heartbeat_interval` seconds. The lease is advisory:
two processes can still both execute a step of the same run, which the step
engine tolerates because it persists whole steps only.

Thresholds with I = heartbeat_interval:
    younger than 2I -> actively processed elsewhere, do not start
    older than 3I   -> abandoned, self-healing may queue a trigger
The band in between is left alone so a single late renewal does not cause a
second handler to start.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from code_reader.flow.errors import FlowNotFound
from code_reader.flow.persisted import FLOW_KEY_PREFIX, PersistedFlow, flow_key
from code_reader.graphs.graph import CompiledGraph
from code_reader.graphs.state import CALL_TO_ACTION, LAST_HEARTBEAT, InputKind, call_to_action, last_heartbeat
from code_reader.orchestrator.registry import RunRegistry
from code_reader.queue.memory_queue import MessageQueue
from code_reader.queue.messages import FlowAction, FlowExecutionMessage
from code_reader.storage.kv import KVStore, supports_delete, supports_listing
from code_reader.telemetry.noop import NoOpTelemetry

DEFAULT_HEARTBEAT_INTERVAL_S = 10.0


class TriggerOutcome(str, Enum):
    ALREADY_RUNNING = "already_running"
    NOT_FOUND = "not_found"
    PAUSED = "paused"
    ACTIVE_ELSEWHERE = "active_elsewhere"
    COMPLETED = "completed"


@dataclass(frozen=True)
class InputResult:
    success: bool
    message: str


class CoordinatorError(Exception):
    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "coordinator_error",
        run_id: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.run_id = run_id


class FlowCoordinator:
    def __init__(
        self,
        store: KVStore,
        graph: CompiledGraph,
        queue: MessageQueue,
        *,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL_S,
        clock: Callable[[], float] = time.time,
        telemetry: Any = None,
    ):
        if heartbeat_interval <= 0:
            raise ValueError("heartbeat_interval must be > 0")
        self.store = store
        self.graph = graph
        self.queue = queue
        self.heartbeat_interval = heartbeat_interval
        self.registry = RunRegistry()
        self.telemetry = telemetry or NoOpTelemetry()
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    @property
    def active_threshold(self) -> float:
        return 2 * self.heartbeat_interval

    @property
    def expiry_threshold(self) -> float:
        return 3 * self.heartbeat_interval

    def is_actively_processed(self, shared: Optional[Mapping[str, Any]]) -> bool:
        beat = last_heartbeat(shared)
        if beat is None:
            return False
        return self._clock() - beat < self.active_threshold

    def is_heartbeat_expired(self, shared: Optional[Mapping[str, Any]]) -> bool:
        beat = last_heartbeat(shared)
        if beat is None:
            return True
        return self._clock() - beat > self.expiry_threshold

    # ──────────────────────────────────────────────────────────────
    # Execution
    # ──────────────────────────────────────────────────────────────
    async def trigger_flow(self, run_id: str) -> TriggerOutcome:
        """
        Advance `run_id` until it pauses for input or finishes.

        Step errors propagate after teardown so the caller (usually the queue
        consumer) can retry.
        """
        if not self.registry.claim(run_id):
            self._skipped(run_id, TriggerOutcome.ALREADY_RUNNING)
            return TriggerOutcome.ALREADY_RUNNING

        engine: PersistedFlow | None = None
        try:
            try:
                engine = await PersistedFlow.attach(self.store, run_id, self.graph)
            except FlowNotFound:
                self._skipped(run_id, TriggerOutcome.NOT_FOUND)
                return TriggerOutcome.NOT_FOUND
            self.registry.set_engine(run_id, engine)

            shared = await engine.get_shared()
            pending = call_to_action(shared)
            if pending:
                self._skipped(run_id, TriggerOutcome.PAUSED, call_to_action=pending)
                return TriggerOutcome.PAUSED

            if self.is_actively_processed(shared):
                self._skipped(
                    run_id,
                    TriggerOutcome.ACTIVE_ELSEWHERE,
                    heartbeat_age_s=round(self._clock() - (last_heartbeat(shared) or 0.0), 3),
                )
                # Leave the other handler's lease alone on teardown.
                engine = None
                return TriggerOutcome.ACTIVE_ELSEWHERE

            await self._start_heartbeat(engine, run_id)

            steps = 0
            start = time.perf_counter()
            while await engine.step():
                steps += 1
                shared = await engine.get_shared()
                pending = call_to_action(shared)
                if pending:
                    self._logger.info(
                        "flow_paused",
                        extra={
                            "event": "flow_paused",
                            "run_id": run_id,
                            "call_to_action": pending,
                            "steps": steps,
                            "latency_ms": int((time.perf_counter() - start) * 1000),
                        },
                    )
                    self.telemetry.event("flow_paused", {"run_id": run_id, "call_to_action": pending})
                    return TriggerOutcome.PAUSED

            self._logger.info(
                "flow_completed",
                extra={
                    "event": "flow_completed",
                    "run_id": run_id,
                    "steps": steps,
                    "latency_ms": int((time.perf_counter() - start) * 1000),
                },
            )
            self.telemetry.event("flow_completed", {"run_id": run_id})
            return TriggerOutcome.COMPLETED
        except Exception as exc:
            self._logger.error(
                "flow_trigger_failed",
                extra={"event": "flow_trigger_failed", "run_id": run_id, "error": str(exc)},
            )
            self.telemetry.error(run_id, exc)
            raise
        finally:
            try:
                await self.registry.stop_heartbeat(run_id)
                if engine is not None:
                    await self._clear_heartbeat(engine, run_id)
            finally:
                await self.registry.release(run_id)

    async def _start_heartbeat(self, engine: PersistedFlow, run_id: str) -> None:
        if not await self._beat(engine, run_id):
            return
        task = asyncio.create_task(self._heartbeat_loop(engine, run_id))
        self.registry.start_heartbeat(run_id, task)

    async def _heartbeat_loop(self, engine: PersistedFlow, run_id: str) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            if not await self._beat(engine, run_id):
                return

    async def _beat(self, engine: PersistedFlow, run_id: str) -> bool:
        try:
            await engine.patch_shared({LAST_HEARTBEAT: self._clock()})
        except Exception as exc:
            self._logger.warning(
                "heartbeat_failed",
                extra={"event": "heartbeat_failed", "run_id": run_id, "error": str(exc)},
            )
            return False
        self._logger.debug("heartbeat_renewed", extra={"event": "heartbeat_renewed", "run_id": run_id})
        return True

    async def _clear_heartbeat(self, engine: PersistedFlow, run_id: str) -> None:
        """Best-effort: a failure here only delays self-healing until the lease expires."""
        try:
            await engine.patch_shared({LAST_HEARTBEAT: None})
        except Exception as exc:
            self._logger.warning(
                "heartbeat_clear_failed",
                extra={"event": "heartbeat_clear_failed", "run_id": run_id, "error": str(exc)},
            )

    def _skipped(self, run_id: str, outcome: TriggerOutcome, **details: Any) -> None:
        self._logger.info(
            "flow_trigger_skipped",
            extra={"event": "flow_trigger_skipped", "run_id": run_id, "reason": outcome.value, **details},
        )

    # ──────────────────────────────────────────────────────────────
    # User input and self-healing
    # ──────────────────────────────────────────────────────────────
    async def handle_user_input(self, run_id: str, input_kind: str, payload: Any = None) -> InputResult:
        try:
            engine = await PersistedFlow.attach(self.store, run_id, self.graph)
        except FlowNotFound:
            return InputResult(success=False, message="Flow not found")

        shared = await engine.get_shared()
        if shared is None:
            return InputResult(success=False, message="Flow state not found")

        pending = call_to_action(shared)
        if pending != input_kind:
            return InputResult(
                success=False,
                message=f"Flow is not waiting for {input_kind}, current call_to_action: {pending or 'none'}",
            )

        if input_kind == InputKind.IMPROVE_BASIC_INPUT:
            if not isinstance(payload, Mapping):
                return InputResult(success=False, message="improve_basic_input expects an object payload")
            shared["basic"] = {**(shared.get("basic") or {}), **dict(payload)}
        elif input_kind == InputKind.USER_FEEDBACK:
            shared["user_feedback"] = payload
        elif input_kind == InputKind.FINISH:
            return InputResult(success=True, message="Flow completed successfully")
        else:
            return InputResult(success=False, message=f"Unknown input type: {input_kind}")

        shared[CALL_TO_ACTION] = None
        shared[LAST_HEARTBEAT] = None
        await engine.set_shared(shared)
        await self.queue_flow_execution(run_id, "resume")

        self._logger.info(
            "user_input_accepted",
            extra={"event": "user_input_accepted", "run_id": run_id, "input_kind": input_kind},
        )
        return InputResult(success=True, message="User input processed successfully")

    async def check_and_queue_flow_resumption(self, run_id: str, shared: Optional[Mapping[str, Any]]) -> bool:
        """Queue a trigger for a run that looks abandoned. Never raises."""
        try:
            if not shared or shared.get("completed"):
                return False
            if call_to_action(shared):
                return False
            if not self.is_heartbeat_expired(shared):
                return False
            await self.queue_flow_execution(run_id, "trigger")
        except Exception as exc:
            self._logger.warning(
                "self_healing_failed",
                extra={"event": "self_healing_failed", "run_id": run_id, "error": str(exc)},
            )
            return False
        self._logger.info("self_healing_queued", extra={"event": "self_healing_queued", "run_id": run_id})
        return True

    # ──────────────────────────────────────────────────────────────
    # Housekeeping
    # ──────────────────────────────────────────────────────────────
    async def initialize_flow(self, run_id: str, shared: Dict[str, Any]) -> bool:
        """Create the run record without executing anything. False if it already existed."""
        if await self.store.read(flow_key(run_id)) is not None:
            return False
        engine = PersistedFlow(self.graph, self.store, run_id).set_params({"run_id": run_id})
        await engine.init(shared)
        self._logger.info("flow_initialized", extra={"event": "flow_initialized", "run_id": run_id})
        return True

    async def get_flow(self, run_id: str) -> Optional[Dict[str, Any]]:
        record = await self.store.read(flow_key(run_id))
        if not isinstance(record, dict):
            return None
        return record.get("shared")

    async def delete_flow(self, run_id: str) -> bool:
        if not supports_delete(self.store):
            raise CoordinatorError(
                "store does not support deletion",
                status_code=501,
                code="delete_unsupported",
                run_id=run_id,
            )
        await self.registry.release(run_id)
        key = flow_key(run_id)
        if await self.store.read(key) is None:
            return False
        await self.store.delete(key)
        self._logger.info("flow_deleted", extra={"event": "flow_deleted", "run_id": run_id})
        return True

    async def list_flows(self) -> List[Dict[str, Any]]:
        if not supports_listing(self.store):
            raise CoordinatorError("store does not support listing", status_code=501, code="list_unsupported")
        summaries: List[Dict[str, Any]] = []
        for key in await self.store.list_keys(FLOW_KEY_PREFIX):
            run_id = key[len(FLOW_KEY_PREFIX):]
            try:
                record = await self.store.read(key)
                shared = record["shared"]
                summaries.append(
                    {
                        "run_id": run_id,
                        "basic": shared.get("basic") or {},
                        "created_at": record.get("created_at"),
                        "completed": bool(shared.get("completed")),
                    }
                )
            except Exception as exc:
                self._logger.warning(
                    "flow_record_unreadable",
                    extra={"event": "flow_record_unreadable", "run_id": run_id, "error": str(exc)},
                )
        summaries.sort(key=lambda item: item.get("created_at") or "", reverse=True)
        return summaries

    async def queue_flow_execution(self, run_id: str, action: FlowAction) -> None:
        message = FlowExecutionMessage(run_id=run_id, action=action, timestamp=self._clock())
        await self.queue.send(message.model_dump())
        self._logger.info(
            "flow_execution_queued",
            extra={"event": "flow_execution_queued", "run_id": run_id, "action": action},
        )

    async def close(self) -> None:
        await self.registry.close()

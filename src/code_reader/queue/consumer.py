from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from code_reader.queue.memory_queue import InMemoryQueue, QueuedMessage
from code_reader.queue.messages import FlowExecutionMessage


class FlowQueueConsumer:
    """
    Drives queued flow executions through the coordinator.

    Per message: stale messages are acked and dropped, the rest run
    `trigger_flow` under a timeout. A failure is retried until the message has
    been delivered `max_retries` times, then it is dead-lettered and the batch
    moves on.
    """

    def __init__(
        self,
        queue: InMemoryQueue,
        coordinator,
        *,
        max_retries: int = 3,
        max_message_age_s: float = 600.0,
        execution_timeout_s: float = 300.0,
        clock: Callable[[], float] = time.time,
    ):
        self.queue = queue
        self.coordinator = coordinator
        self.max_retries = max_retries
        self.max_message_age_s = max_message_age_s
        self.execution_timeout_s = execution_timeout_s
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def handle_batch(self, messages: Iterable[QueuedMessage]) -> None:
        for message in messages:
            await self._handle(message)

    async def _handle(self, message: QueuedMessage) -> None:
        try:
            body = FlowExecutionMessage.model_validate(message.body)
        except ValidationError as exc:
            self._logger.error(
                "queue_message_invalid",
                extra={"event": "queue_message_invalid", "message_id": message.id, "error": str(exc)},
            )
            self.queue.dead_letter_message(message)
            return

        age = self._clock() - body.timestamp
        if age > self.max_message_age_s:
            self._logger.warning(
                "queue_message_stale",
                extra={
                    "event": "queue_message_stale",
                    "run_id": body.run_id,
                    "action": body.action,
                    "age_s": round(age, 3),
                },
            )
            message.ack()
            return

        try:
            outcome = await asyncio.wait_for(
                self.coordinator.trigger_flow(body.run_id),
                timeout=self.execution_timeout_s,
            )
        except Exception as exc:
            if isinstance(exc, asyncio.TimeoutError):
                error = f"flow execution timeout after {self.execution_timeout_s}s"
            else:
                error = str(exc)
            self._on_failure(message, body, error)
            return

        message.ack()
        self._logger.info(
            "queue_message_processed",
            extra={
                "event": "queue_message_processed",
                "run_id": body.run_id,
                "action": body.action,
                "outcome": getattr(outcome, "value", outcome),
            },
        )

    def _on_failure(self, message: QueuedMessage, body: FlowExecutionMessage, error: str) -> None:
        if message.attempts >= self.max_retries:
            self._logger.error(
                "queue_message_dead_lettered",
                extra={
                    "event": "queue_message_dead_lettered",
                    "run_id": body.run_id,
                    "attempts": message.attempts,
                    "error": error,
                },
            )
            self.queue.dead_letter_message(message)
            return
        self._logger.warning(
            "queue_message_retry",
            extra={
                "event": "queue_message_retry",
                "run_id": body.run_id,
                "attempt": message.attempts,
                "max_retries": self.max_retries,
                "error": error,
            },
        )
        message.retry()

    async def run_forever(
        self,
        stop_event: asyncio.Event,
        *,
        batch_size: int = 10,
        poll_interval_s: float = 0.5,
    ) -> None:
        while not stop_event.is_set():
            batch = await self.queue.receive_batch(batch_size, timeout=poll_interval_s)
            if batch:
                await self.handle_batch(batch)


def build_consumer(queue: InMemoryQueue, coordinator, settings: Optional[object] = None) -> FlowQueueConsumer:
    if settings is None:
        return FlowQueueConsumer(queue, coordinator)
    return FlowQueueConsumer(
        queue,
        coordinator,
        max_retries=settings.queue_max_retries,
        max_message_age_s=settings.message_max_age_s,
        execution_timeout_s=settings.execution_timeout_s,
    )

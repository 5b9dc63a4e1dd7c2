from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol
from uuid import uuid4


class MessageQueue(Protocol):
    async def send(self, body: Dict[str, Any]) -> None:
        ...


@dataclass
class QueuedMessage:
    body: Dict[str, Any]
    id: str = field(default_factory=lambda: uuid4().hex)
    attempts: int = 1
    _queue: "InMemoryQueue | None" = field(default=None, repr=False)
    _settled: bool = field(default=False, repr=False)

    def ack(self) -> None:
        self._settled = True
        if self._queue is not None:
            self._queue._inflight.pop(self.id, None)

    def retry(self) -> None:
        if self._settled:
            return
        self._settled = True
        if self._queue is not None:
            self._queue._redeliver(self)


class InMemoryQueue:
    """
    Process-local at-least-once queue.

    A received message that is neither acked nor retried is redelivered on the
    next `receive_batch`, and `attempts` counts deliveries.
    """

    def __init__(self) -> None:
        self._pending: asyncio.Queue[QueuedMessage] = asyncio.Queue()
        self._inflight: Dict[str, QueuedMessage] = {}
        self.dead_letter: List[QueuedMessage] = []
        self._logger = logging.getLogger(__name__)

    def __len__(self) -> int:
        return self._pending.qsize()

    async def send(self, body: Dict[str, Any]) -> None:
        await self._pending.put(QueuedMessage(body=dict(body), _queue=self))
        self._logger.info("queue_message_sent", extra={"event": "queue_message_sent", "body": body})

    async def receive_batch(self, max_messages: int = 10, timeout: float | None = None) -> List[QueuedMessage]:
        self._requeue_unsettled()
        batch: List[QueuedMessage] = []
        if timeout is not None and self._pending.empty():
            try:
                first = await asyncio.wait_for(self._pending.get(), timeout)
            except asyncio.TimeoutError:
                return batch
            batch.append(first)
        while len(batch) < max_messages and not self._pending.empty():
            batch.append(self._pending.get_nowait())
        for message in batch:
            message._settled = False
            self._inflight[message.id] = message
        return batch

    def dead_letter_message(self, message: QueuedMessage) -> None:
        message._settled = True
        self._inflight.pop(message.id, None)
        self.dead_letter.append(message)

    def _redeliver(self, message: QueuedMessage) -> None:
        self._inflight.pop(message.id, None)
        message.attempts += 1
        self._pending.put_nowait(message)

    def _requeue_unsettled(self) -> None:
        for message in list(self._inflight.values()):
            if message._settled:
                self._inflight.pop(message.id, None)
                continue
            self._redeliver(message)

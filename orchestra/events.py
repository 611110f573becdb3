from __future__ import annotations

import asyncio
import itertools
import time
from typing import Any


class InMemoryEventBus:
    """Fan-out of orchestration events to websocket and CLI subscribers.

    Publishing is synchronous so the tracker and notifier can emit from plain
    methods. Every event carries a monotonically increasing ``seq``.
    """

    def __init__(self, queue_size: int = 200) -> None:
        self._queue_size = queue_size
        self._subscribers: set[asyncio.Queue[dict[str, Any]]] = set()
        self._seq = itertools.count(1)

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        self._subscribers.discard(queue)

    def publish(self, event_type: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        event = {"type": event_type, "seq": next(self._seq), "ts": time.time(), **(payload or {})}
        for queue in list(self._subscribers):
            # Slow subscribers lose their oldest event rather than blocking publishers.
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(event)
        return event

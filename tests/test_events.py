from __future__ import annotations

import asyncio

from orchestra.events import InMemoryEventBus
from orchestra.notifications import Notifier


def test_full_queue_drops_oldest_event() -> None:
    async def _scenario() -> list[int]:
        bus = InMemoryEventBus(queue_size=2)
        queue = bus.subscribe()
        for index in range(3):
            bus.publish("tick", {"index": index})
        return [queue.get_nowait()["index"] for _ in range(queue.qsize())]

    assert asyncio.run(_scenario()) == [1, 2]


def test_events_carry_sequence_numbers() -> None:
    bus = InMemoryEventBus()
    first = bus.publish("a")
    second = bus.publish("b", {"x": 1})
    assert second["seq"] == first["seq"] + 1
    assert second["x"] == 1


def test_unsubscribed_queue_stops_receiving() -> None:
    async def _scenario() -> tuple[bool, bool]:
        bus = InMemoryEventBus()
        kept = bus.subscribe()
        dropped = bus.subscribe()
        bus.unsubscribe(dropped)
        bus.publish("ping")
        return kept.empty(), dropped.empty()

    assert asyncio.run(_scenario()) == (False, True)


def test_notifier_keeps_bounded_history_and_publishes() -> None:
    async def _scenario():
        bus = InMemoryEventBus()
        queue = bus.subscribe()
        notifier = Notifier(bus, history=2)
        notifier.info("one", "")
        notifier.success("two", "")
        notifier.error("three", "check backend")
        return notifier.recent(), queue.qsize(), queue.get_nowait()

    recent, published, first = asyncio.run(_scenario())
    assert [item.title for item in recent] == ["three", "two"]
    assert published == 3
    assert first["type"] == "notification"
    assert first["title"] == "one"

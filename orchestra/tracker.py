from __future__ import annotations

import asyncio
from contextlib import suppress
from dataclasses import replace
import logging
import random
import time
from typing import Any, Callable
import uuid

from orchestra.config import Settings
from orchestra.events import InMemoryEventBus
from orchestra.models import (
    ActivityKind,
    ActivityRecord,
    ActivityStatus,
    ExecutionState,
)

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class ExecutionTracker:
    """In-flight automation executions plus the bounded activity log.

    Progress is simulated locally: a periodic tick adds a random step until the
    execution reaches 100%. It is an approximation and is not tied to the
    backend's real completion. A backend failure fails the execution even when
    the simulator has not finished; whichever terminal transition happens
    first wins and the other is ignored.
    """

    def __init__(
        self,
        capacity: int = 10,
        tick_interval_sec: float = 0.5,
        step_range: tuple[float, float] = (5.0, 20.0),
        *,
        rng: random.Random | None = None,
        bus: InMemoryEventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        low, high = step_range
        if low <= 0 or high < low:
            raise ValueError(f"invalid progress step range: {step_range}")
        self.capacity = capacity
        self._tick_interval = tick_interval_sec
        self._step_range = (low, high)
        self._rng = rng or random.Random()
        self._bus = bus
        self._clock = clock

        self._log: list[ActivityRecord] = []
        self._executions: dict[str, ExecutionState] = {}
        self._running: set[str] = set()
        self._tasks: dict[str, asyncio.Task[None]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        bus: InMemoryEventBus | None = None,
    ) -> "ExecutionTracker":
        return cls(
            capacity=settings.activity_capacity,
            tick_interval_sec=settings.progress_tick_sec,
            step_range=(settings.progress_step_min, settings.progress_step_max),
            bus=bus,
        )

    # Executions

    def begin_execution(self, trigger_id: str, title: str, description: str) -> str:
        record = self._insert(
            ActivityRecord(
                id=_new_id("act"),
                kind=ActivityKind.AUTOMATION,
                title=title,
                description=description,
                status=ActivityStatus.RUNNING,
                automation_type=trigger_id,
            )
        )
        state = ExecutionState(
            execution_id=_new_id("exec"),
            trigger_id=trigger_id,
            activity_id=record.id,
            started_at=self._clock(),
        )
        self._executions[state.execution_id] = state
        self._running.add(state.execution_id)
        self._tasks[state.execution_id] = asyncio.create_task(
            self._simulate(state),
            name=f"progress-{state.execution_id}",
        )
        logger.debug("execution %s started for %s", state.execution_id, trigger_id)
        return state.execution_id

    def fail_execution(self, execution_id: str, reason: str) -> bool:
        state = self._executions.get(execution_id)
        if state is None:
            return False
        task = self._tasks.pop(execution_id, None)
        if task is not None and not task.done():
            task.cancel()
        return self._finish(state, ActivityStatus.FAILED, reason)

    def is_running(self, execution_id: str) -> bool:
        return execution_id in self._running

    def running_trigger_ids(self) -> frozenset[str]:
        return frozenset(
            self._executions[execution_id].trigger_id for execution_id in self._running
        )

    def running_count(self) -> int:
        return len(self._running)

    def progress_for(self, trigger_id: str) -> float:
        values = [
            state.progress
            for execution_id, state in self._executions.items()
            if execution_id in self._running and state.trigger_id == trigger_id
        ]
        return max(values, default=0.0)

    async def wait_idle(self) -> None:
        while self._tasks:
            tasks = list(self._tasks.values())
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        for execution_id in list(self._running):
            self.fail_execution(execution_id, "Orchestrator shut down before completion")
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

    # Activity log

    def add_activity(
        self,
        kind: ActivityKind,
        title: str,
        description: str,
        status: ActivityStatus = ActivityStatus.COMPLETED,
        *,
        automation_type: str | None = None,
        duration_ms: int | None = None,
    ) -> ActivityRecord:
        return self._insert(
            ActivityRecord(
                id=_new_id("act"),
                kind=kind,
                title=title,
                description=description,
                status=status,
                duration_ms=duration_ms,
                automation_type=automation_type,
            )
        )

    def update_activity(self, record_id: str, **changes: Any) -> ActivityRecord | None:
        for index, record in enumerate(self._log):
            if record.id == record_id:
                updated = replace(record, **changes)
                self._log[index] = updated
                self._publish("activity.updated", {"activity": updated.to_dict()})
                return updated
        return None

    def activity_log(self) -> tuple[ActivityRecord, ...]:
        return tuple(self._log)

    def _insert(self, record: ActivityRecord) -> ActivityRecord:
        self._log.insert(0, record)
        del self._log[self.capacity:]
        self._publish("activity.added", {"activity": record.to_dict()})
        return record

    # Internals

    async def _simulate(self, state: ExecutionState) -> None:
        try:
            while state.active:
                await asyncio.sleep(self._tick_interval)
                if not state.active:
                    return
                step = self._rng.uniform(*self._step_range)
                state.progress = min(100.0, state.progress + step)
                self._publish(
                    "execution.progress",
                    {
                        "execution_id": state.execution_id,
                        "trigger_id": state.trigger_id,
                        "progress": state.progress,
                    },
                )
                if state.progress >= 100.0:
                    self._finish(state, ActivityStatus.COMPLETED, None)
                    return
        finally:
            if self._tasks.get(state.execution_id) is asyncio.current_task():
                del self._tasks[state.execution_id]

    def _finish(
        self,
        state: ExecutionState,
        status: ActivityStatus,
        description: str | None,
    ) -> bool:
        if not state.active:
            return False
        state.active = False
        self._running.discard(state.execution_id)
        self._executions.pop(state.execution_id, None)

        changes: dict[str, Any] = {
            "status": status,
            "duration_ms": int((self._clock() - state.started_at) * 1000),
        }
        if description is not None:
            changes["description"] = description
        self.update_activity(state.activity_id, **changes)
        logger.debug("execution %s finished: %s", state.execution_id, status.value)
        return True

    def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        if self._bus is not None:
            self._bus.publish(event_type, payload)

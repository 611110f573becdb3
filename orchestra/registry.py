from __future__ import annotations

from typing import Iterable, Iterator

from orchestra.exceptions import UnknownTrigger
from orchestra.models import AutomationTrigger, SubTrigger


class TriggerRegistry:
    """Ordered, immutable catalogue of automation triggers.

    Registry order matters: the classifier returns the first trigger whose
    keywords match, so earlier entries win ties.
    """

    def __init__(self, triggers: Iterable[AutomationTrigger]) -> None:
        ordered = tuple(triggers)
        seen: set[str] = set()
        for trigger in ordered:
            if trigger.id in seen:
                raise ValueError(f"Duplicate trigger id: {trigger.id}")
            seen.add(trigger.id)
        self._triggers = ordered
        self._by_id = {trigger.id: trigger for trigger in ordered}

    def __iter__(self) -> Iterator[AutomationTrigger]:
        return iter(self._triggers)

    def __len__(self) -> int:
        return len(self._triggers)

    def __contains__(self, trigger_id: object) -> bool:
        return trigger_id in self._by_id

    def get(self, trigger_id: str) -> AutomationTrigger | None:
        return self._by_id.get(trigger_id)

    def require(self, trigger_id: str) -> AutomationTrigger:
        trigger = self._by_id.get(trigger_id)
        if trigger is None:
            raise UnknownTrigger(trigger_id)
        return trigger

    def list_triggers(self) -> tuple[AutomationTrigger, ...]:
        return self._triggers


DEFAULT_TRIGGERS: tuple[AutomationTrigger, ...] = (
    AutomationTrigger(
        id="gym-notes",
        name="GYM Notes",
        description="Fitness tracking and workout logging",
        color_tag="from-red-500 to-orange-500",
        keywords=("gym notes", "workout", "fitness tracking"),
        sub_triggers=(
            SubTrigger(id="running", name="Running", icon="run"),
            SubTrigger(id="cycling", name="Cycling", icon="bike"),
            SubTrigger(id="mobility", name="Mobility", icon="stretch"),
            SubTrigger(id="gym", name="Gym", icon="dumbbell"),
        ),
    ),
    AutomationTrigger(
        id="studio-mode",
        name="Studio Mode",
        description="Launch Drum session - Opens FL Studio, EZD3 & configures audio settings",
        color_tag="from-indigo-500 to-purple-500",
        keywords=("studio mode", "fl studio", "music production"),
    ),
    AutomationTrigger(
        id="ritual-mode",
        name="Launch Ritual Mode",
        description="Opens Obsidian, Cursor, activates AI agents",
        color_tag="from-purple-500 to-pink-500",
        keywords=("launch ritual mode", "ritual mode", "start ritual"),
        command="launch ritual mode",
    ),
    AutomationTrigger(
        id="explorer-mode",
        name="Explorer Mode",
        description="Browser research tabs, voice logging setup",
        color_tag="from-blue-500 to-cyan-500",
        keywords=("explorer mode", "start explorer", "research mode"),
    ),
    AutomationTrigger(
        id="focus-mode",
        name="Focus Mode",
        description="DND mode, deep focus playlist, minimal setup",
        color_tag="from-green-500 to-emerald-500",
        keywords=("focus mode", "deep focus", "concentration"),
    ),
    AutomationTrigger(
        id="archive-mission",
        name="Archive Mission",
        description="Backup notes, close apps, reset workspace",
        color_tag="from-orange-500 to-red-500",
        keywords=("archive mission", "end session", "backup and close"),
        command="archive mission backup and close",
    ),
)


def build_default_registry() -> TriggerRegistry:
    return TriggerRegistry(DEFAULT_TRIGGERS)

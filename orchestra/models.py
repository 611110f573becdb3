from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union
import time


class InteractionMode(str, Enum):
    COMMAND = "command"
    CONVERSATION = "conversation"


class ActivityKind(str, Enum):
    AUTOMATION = "automation"
    VOICE_COMMAND = "voice_command"
    SYSTEM = "system"


class ActivityStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class MessageRole(str, Enum):
    USER = "user"
    AI = "ai"


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class DispatchStatus(str, Enum):
    DISPATCHED = "dispatched"
    FAILED = "failed"
    REJECTED = "rejected"


def now_ts() -> float:
    return time.time()


@dataclass(slots=True, frozen=True)
class SubTrigger:
    id: str
    name: str
    icon: str = ""


@dataclass(slots=True, frozen=True)
class AutomationTrigger:
    id: str
    name: str
    description: str
    color_tag: str
    keywords: tuple[str, ...]
    sub_triggers: tuple[SubTrigger, ...] = ()
    command: str | None = None

    def __post_init__(self) -> None:
        if not self.keywords:
            raise ValueError(f"Trigger '{self.id}' needs at least one keyword")
        normalized = tuple(" ".join(keyword.lower().split()) for keyword in self.keywords)
        object.__setattr__(self, "keywords", normalized)
        object.__setattr__(self, "sub_triggers", tuple(self.sub_triggers))

    @property
    def requires_sub_trigger(self) -> bool:
        return bool(self.sub_triggers)

    def sub_trigger(self, sub_trigger_id: str) -> SubTrigger | None:
        for item in self.sub_triggers:
            if item.id == sub_trigger_id:
                return item
        return None

    def label(self, sub_trigger: SubTrigger | None = None) -> str:
        if sub_trigger is None:
            return self.name
        return f"{self.name} - {sub_trigger.name}"


@dataclass(slots=True, frozen=True)
class ActivityRecord:
    id: str
    kind: ActivityKind
    title: str
    description: str
    status: ActivityStatus
    created_at: float = field(default_factory=now_ts)
    duration_ms: int | None = None
    automation_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "created_at": self.created_at,
            "duration_ms": self.duration_ms,
            "automation_type": self.automation_type,
        }


@dataclass(slots=True, frozen=True)
class ConversationMessage:
    role: MessageRole
    text: str
    timestamp: float = field(default_factory=now_ts)


@dataclass(slots=True)
class ExecutionState:
    execution_id: str
    trigger_id: str
    activity_id: str
    started_at: float
    progress: float = 0.0
    active: bool = True


@dataclass(slots=True, frozen=True)
class Notification:
    title: str
    description: str
    level: NotificationLevel = NotificationLevel.INFO
    timestamp: float = field(default_factory=now_ts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "level": self.level.value,
            "timestamp": self.timestamp,
        }


@dataclass(slots=True, frozen=True)
class DispatchOutcome:
    trigger_id: str
    status: DispatchStatus
    message: str
    execution_id: str | None = None


# Recognition events


@dataclass(slots=True, frozen=True)
class Partial:
    text: str


@dataclass(slots=True, frozen=True)
class Final:
    text: str


@dataclass(slots=True, frozen=True)
class RecognitionFailure:
    reason: str


@dataclass(slots=True, frozen=True)
class End:
    pass


RecognitionEvent = Union[Partial, Final, RecognitionFailure, End]


# Classification results


@dataclass(slots=True, frozen=True)
class Matched:
    trigger: AutomationTrigger
    sub_trigger: SubTrigger | None = None


@dataclass(slots=True, frozen=True)
class Unmatched:
    transcript: str


Classification = Union[Matched, Unmatched]


@dataclass(slots=True, frozen=True)
class OrchestrationSnapshot:
    listening: bool
    speaking: bool
    mode: InteractionMode
    transcript: str
    last_command: str
    running_trigger_ids: frozenset[str]
    activity_log: tuple[ActivityRecord, ...]
    conversation_history: tuple[ConversationMessage, ...]
    audio_level: float = 0.0
    running_count: int = 0

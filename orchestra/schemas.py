from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from orchestra.models import (
    ActivityRecord,
    AutomationTrigger,
    ConversationMessage,
    DispatchOutcome,
    OrchestrationSnapshot,
)


# Backend wire models


class WorkoutType(str, Enum):
    RUNNING = "running"
    CYCLING = "cycling"
    MOBILITY = "mobility"
    GYM = "gym"


class NoteType(str, Enum):
    TODAY = "today"
    TOMORROW = "tomorrow"


class StudioAction(str, Enum):
    OPEN_SESSION = "open_session"
    SWITCH_AUDIO = "switch_audio"
    OPEN_PROJECT = "open_project"


class WorkoutRequest(BaseModel):
    workout_type: WorkoutType
    date: str | None = None


class DailyNoteRequest(BaseModel):
    note_type: NoteType
    date: str | None = None


class StudioRequest(BaseModel):
    action: StudioAction


class VoiceCommandRequest(BaseModel):
    command: str = Field(min_length=1)
    use_agent: bool = False


class ApiResponse(BaseModel):
    success: bool
    message: str = ""
    timestamp: str = ""
    automation_type: str = ""


class HealthCheckResponse(BaseModel):
    status: str
    version: str = ""
    timestamp: str = ""


class AutomationEndpoint(BaseModel):
    endpoint: str
    method: str
    description: str = ""
    supported_types: list[str] | None = None
    supported_actions: list[str] | None = None
    example: dict[str, Any] = Field(default_factory=dict)


class AutomationListResponse(BaseModel):
    available_automations: dict[str, AutomationEndpoint] = Field(default_factory=dict)
    timestamp: str = ""
    total_endpoints: int = 0


# Control surface models


class SubTriggerView(BaseModel):
    id: str
    name: str
    icon: str


class TriggerView(BaseModel):
    id: str
    name: str
    description: str
    color_tag: str
    keywords: list[str]
    sub_triggers: list[SubTriggerView] = Field(default_factory=list)
    running: bool = False
    progress: float = 0.0

    @classmethod
    def from_trigger(
        cls,
        trigger: AutomationTrigger,
        *,
        running: bool,
        progress: float,
    ) -> "TriggerView":
        return cls(
            id=trigger.id,
            name=trigger.name,
            description=trigger.description,
            color_tag=trigger.color_tag,
            keywords=list(trigger.keywords),
            sub_triggers=[
                SubTriggerView(id=item.id, name=item.name, icon=item.icon)
                for item in trigger.sub_triggers
            ],
            running=running,
            progress=progress,
        )


class ActivityView(BaseModel):
    id: str
    kind: str
    title: str
    description: str
    status: str
    created_at: float
    duration_ms: int | None = None
    automation_type: str | None = None

    @classmethod
    def from_record(cls, record: ActivityRecord) -> "ActivityView":
        return cls(**record.to_dict())


class MessageView(BaseModel):
    role: str
    text: str
    timestamp: float

    @classmethod
    def from_message(cls, message: ConversationMessage) -> "MessageView":
        return cls(role=message.role.value, text=message.text, timestamp=message.timestamp)


class StateResponse(BaseModel):
    listening: bool
    speaking: bool
    mode: str
    transcript: str
    last_command: str
    running_trigger_ids: list[str]
    activity_log: list[ActivityView]
    conversation_history: list[MessageView]
    audio_level: float = 0.0
    running_count: int = 0

    @classmethod
    def from_snapshot(cls, snapshot: OrchestrationSnapshot) -> "StateResponse":
        return cls(
            listening=snapshot.listening,
            speaking=snapshot.speaking,
            mode=snapshot.mode.value,
            transcript=snapshot.transcript,
            last_command=snapshot.last_command,
            running_trigger_ids=sorted(snapshot.running_trigger_ids),
            activity_log=[ActivityView.from_record(item) for item in snapshot.activity_log],
            conversation_history=[
                MessageView.from_message(item) for item in snapshot.conversation_history
            ],
            audio_level=snapshot.audio_level,
            running_count=snapshot.running_count,
        )


class TriggerRunRequest(BaseModel):
    sub_trigger_id: str | None = None


class TriggerRunResponse(BaseModel):
    trigger_id: str
    status: str
    message: str
    execution_id: str | None = None

    @classmethod
    def from_outcome(cls, outcome: DispatchOutcome) -> "TriggerRunResponse":
        return cls(
            trigger_id=outcome.trigger_id,
            status=outcome.status.value,
            message=outcome.message,
            execution_id=outcome.execution_id,
        )


class TextCommandRequest(BaseModel):
    text: str = Field(min_length=1)


class ListenResponse(BaseModel):
    ok: bool
    listening: bool


class ModeResponse(BaseModel):
    mode: str

from __future__ import annotations


class OrchestraError(Exception):
    """Base class for every error raised by the orchestrator."""


class CapabilityUnavailable(OrchestraError):
    """The environment lacks a capability (speech recognition, synthesis)."""


class PermissionDenied(OrchestraError):
    """Audio input access was refused by the user or the platform."""


class RecognitionError(OrchestraError):
    """A recognition session faulted or was used out of order."""


class DispatchFailure(OrchestraError):
    """A backend request failed: network error or non-2xx status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DispatchTimeout(DispatchFailure):
    """A backend request exceeded the configured timeout."""


class UnknownTrigger(OrchestraError):
    def __init__(self, trigger_id: str) -> None:
        super().__init__(f"Unknown automation trigger: {trigger_id}")
        self.trigger_id = trigger_id


class SubTriggerRequired(OrchestraError):
    def __init__(self, trigger_id: str, choices: tuple[str, ...]) -> None:
        super().__init__(
            f"Trigger '{trigger_id}' requires one of: {', '.join(choices)}"
        )
        self.trigger_id = trigger_id
        self.choices = choices


class InputBusy(OrchestraError):
    """Typed input was refused because listening or speaking is active."""

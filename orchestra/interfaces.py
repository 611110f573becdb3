from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, Protocol

from orchestra.models import RecognitionEvent
from orchestra.schemas import ApiResponse


class AudioStream(ABC):
    """An open audio input. Closing it releases the device."""

    @abstractmethod
    def level(self) -> float:
        """Mean input level in the 0-255 range."""
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        raise NotImplementedError


class AudioInput(ABC):
    @abstractmethod
    async def acquire(self) -> AudioStream:
        """Open the input device. Raises PermissionDenied when access is refused."""
        raise NotImplementedError


class SpeechRecognizer(ABC):
    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    async def begin(self, stream: AudioStream, language: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def results(self) -> AsyncIterator[RecognitionEvent]:
        """Yield recognition events until halted or faulted."""
        raise NotImplementedError

    @abstractmethod
    async def halt(self) -> None:
        raise NotImplementedError


class SpeechSynthesizer(ABC):
    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    async def utter(self, text: str) -> None:
        """Speak text, returning once playback finishes. Cancellation stops playback."""
        raise NotImplementedError


class CommandChannel(Protocol):
    async def process_voice_command(self, command: str, use_agent: bool = False) -> ApiResponse:
        ...

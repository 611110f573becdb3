from __future__ import annotations

import asyncio
from contextlib import suppress
import json
import logging
import shlex
import shutil
from typing import AsyncIterator, Callable

from orchestra.exceptions import RecognitionError
from orchestra.interfaces import AudioInput, AudioStream, SpeechRecognizer, SpeechSynthesizer
from orchestra.models import Final, Partial, RecognitionEvent, RecognitionFailure

logger = logging.getLogger(__name__)


class SilentStream(AudioStream):
    def __init__(self) -> None:
        self.closed = False

    def level(self) -> float:
        return 0.0

    async def close(self) -> None:
        self.closed = True


class SilentAudioInput(AudioInput):
    """For recognizers that open the microphone themselves."""

    async def acquire(self) -> AudioStream:
        return SilentStream()


class QueuedSpeechRecognizer(SpeechRecognizer):
    """In-process recognizer driven by feed_partial/feed_final/fail."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[RecognitionEvent | None] | None = None
        self.language = ""

    @property
    def listening(self) -> bool:
        return self._queue is not None

    async def begin(self, stream: AudioStream, language: str) -> None:
        self._queue = asyncio.Queue()
        self.language = language

    def feed_partial(self, text: str) -> None:
        self._put(Partial(text=text))

    def feed_final(self, text: str) -> None:
        self._put(Final(text=text))

    def fail(self, reason: str) -> None:
        self._put(RecognitionFailure(reason=reason))

    async def results(self) -> AsyncIterator[RecognitionEvent]:
        queue = self._queue
        if queue is None:
            return
        while True:
            event = await queue.get()
            if event is None:
                return
            yield event

    async def halt(self) -> None:
        queue, self._queue = self._queue, None
        if queue is not None:
            queue.put_nowait(None)

    def _put(self, event: RecognitionEvent) -> None:
        if self._queue is None:
            raise RecognitionError("Recognizer is not listening.")
        self._queue.put_nowait(event)


class CommandSpeechRecognizer(SpeechRecognizer):
    """Streams transcripts from an external STT command.

    The command prints one JSON object per line, {"text": "...", "final": true};
    plain text lines are treated as final transcripts. "{language}" in the
    command template is replaced with the session language.
    """

    def __init__(self, command: str) -> None:
        self._argv = shlex.split(command) if command.strip() else []
        self._process: asyncio.subprocess.Process | None = None

    @property
    def available(self) -> bool:
        return bool(self._argv) and shutil.which(self._argv[0]) is not None

    async def begin(self, stream: AudioStream, language: str) -> None:
        argv = [part.replace("{language}", language) for part in self._argv]
        self._process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )

    async def results(self) -> AsyncIterator[RecognitionEvent]:
        process = self._process
        if process is None or process.stdout is None:
            return
        async for raw in process.stdout:
            line = raw.decode("utf-8", errors="ignore").strip()
            if not line:
                continue
            event = _parse_transcript_line(line)
            if event is not None:
                yield event
        code = await process.wait()
        if code not in (0, None) and self._process is process:
            yield RecognitionFailure(reason=f"stt command exited with status {code}")

    async def halt(self) -> None:
        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return
        process.terminate()
        with suppress(ProcessLookupError):
            await process.wait()


def _parse_transcript_line(line: str) -> RecognitionEvent | None:
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return Final(text=line)
    if not isinstance(data, dict):
        return None
    text = str(data.get("text", "")).strip()
    if not text:
        return None
    if data.get("final", True):
        return Final(text=text)
    return Partial(text=text)


class CommandSpeechSynthesizer(SpeechSynthesizer):
    """Speaks by running a TTS command, e.g. 'espeak {text}'."""

    def __init__(self, command: str) -> None:
        self._argv = shlex.split(command) if command.strip() else []

    @property
    def available(self) -> bool:
        return bool(self._argv) and shutil.which(self._argv[0]) is not None

    async def utter(self, text: str) -> None:
        argv = [part.replace("{text}", text) for part in self._argv]
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            code = await process.wait()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.terminate()
            raise
        if code != 0:
            raise RuntimeError(f"tts command exited with status {code}")


class PrintSpeechSynthesizer(SpeechSynthesizer):
    """Writes replies to a text sink instead of audio."""

    def __init__(self, sink: Callable[[str], None] = print) -> None:
        self._sink = sink

    async def utter(self, text: str) -> None:
        self._sink(f"[speaking] {text}")

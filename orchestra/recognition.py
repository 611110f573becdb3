from __future__ import annotations

import logging
from typing import AsyncIterator

from orchestra.exceptions import CapabilityUnavailable, RecognitionError
from orchestra.interfaces import AudioInput, AudioStream, SpeechRecognizer
from orchestra.models import End, Final, Partial, RecognitionEvent, RecognitionFailure

logger = logging.getLogger(__name__)


class RecognitionSession:
    """Continuous speech capture over an environment-provided recognizer.

    start() returns a one-shot async iterator of recognition events. The
    audio stream acquired for the session is released exactly once, whether
    the session ends through stop(), a recognizer fault, or the consumer
    closing the iterator.
    """

    def __init__(
        self,
        recognizer: SpeechRecognizer | None,
        audio_input: AudioInput,
        language: str = "en-US",
    ) -> None:
        self._recognizer = recognizer
        self._audio_input = audio_input
        self.language = language
        self._stream: AudioStream | None = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def recognizer(self) -> SpeechRecognizer | None:
        return self._recognizer

    @property
    def supported(self) -> bool:
        return self._recognizer is not None and self._recognizer.available

    def audio_level(self) -> float:
        if not self._active or self._stream is None:
            return 0.0
        return self._stream.level()

    async def start(self) -> AsyncIterator[RecognitionEvent]:
        recognizer = self._recognizer
        if recognizer is None or not recognizer.available:
            raise CapabilityUnavailable("Speech recognition is not supported in this environment.")
        if self._active:
            raise RecognitionError("Recognition session is already active.")

        stream = await self._audio_input.acquire()
        try:
            await recognizer.begin(stream, self.language)
        except BaseException:
            await stream.close()
            raise
        self._stream = stream
        self._active = True
        logger.info("Recognition session started (%s)", self.language)
        return self._events(recognizer, stream)

    async def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        recognizer = self._recognizer
        if recognizer is not None:
            try:
                await recognizer.halt()
            except Exception:
                logger.exception("Recognizer halt failed")
        await self._release()
        logger.info("Recognition session stopped")

    async def _events(
        self,
        recognizer: SpeechRecognizer,
        stream: AudioStream,
    ) -> AsyncIterator[RecognitionEvent]:
        failure: RecognitionFailure | None = None
        unknown: object | None = None
        try:
            async for event in recognizer.results():
                if not self._active or self._stream is not stream:
                    # stop() was called; anything still buffered is discarded.
                    break
                if isinstance(event, (Partial, Final)):
                    yield event
                elif isinstance(event, RecognitionFailure):
                    failure = event
                    break
                elif isinstance(event, End):
                    break
                else:
                    unknown = event
                    break
        except Exception as exc:
            logger.exception("Recognizer stream faulted")
            failure = RecognitionFailure(reason=str(exc) or type(exc).__name__)
        finally:
            if self._stream is stream:
                # Ended without stop(): the recognizer still holds its capture.
                self._active = False
                try:
                    await recognizer.halt()
                except Exception:
                    logger.exception("Recognizer halt failed")
                await self._release()

        if unknown is not None:
            raise TypeError(f"Unknown recognition event: {unknown!r}")
        if failure is not None:
            logger.warning("Speech recognition error: %s", failure.reason)
            yield failure
        yield End()

    async def _release(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            await stream.close()
        except Exception:
            logger.exception("Failed to release audio stream")

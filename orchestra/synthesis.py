from __future__ import annotations

import asyncio
from contextlib import suppress
import logging

from orchestra.interfaces import SpeechSynthesizer

logger = logging.getLogger(__name__)


class SynthesisController:
    """At most one utterance at a time; a new speak() replaces the current one."""

    def __init__(self, synthesizer: SpeechSynthesizer | None) -> None:
        self._synthesizer = synthesizer
        self._current: asyncio.Task[None] | None = None
        self._speaking = False

    @property
    def speaking(self) -> bool:
        return self._speaking

    @property
    def supported(self) -> bool:
        return self._synthesizer is not None and self._synthesizer.available

    def speak(self, text: str) -> asyncio.Task[None] | None:
        self.cancel()
        synthesizer = self._synthesizer
        if synthesizer is None or not synthesizer.available:
            logger.warning("Speech synthesis unavailable; reply not spoken")
            return None
        if not text.strip():
            return None
        self._speaking = True
        task = asyncio.create_task(self._run(synthesizer, text), name="speech-synthesis")
        self._current = task
        return task

    def cancel(self) -> None:
        task, self._current = self._current, None
        if task is not None and not task.done():
            task.cancel()
        self._speaking = False

    async def wait(self) -> None:
        task = self._current
        if task is None:
            return
        with suppress(asyncio.CancelledError):
            await task

    async def _run(self, synthesizer: SpeechSynthesizer, text: str) -> None:
        try:
            await synthesizer.utter(text)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Speech synthesis failed")
        finally:
            if self._current is asyncio.current_task():
                self._current = None
                self._speaking = False

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable

from orchestra.classifier import CommandClassifier
from orchestra.config import DEFAULT_FALLBACK_REPLY
from orchestra.exceptions import DispatchFailure
from orchestra.interfaces import CommandChannel
from orchestra.models import (
    ActivityKind,
    ActivityStatus,
    AutomationTrigger,
    ConversationMessage,
    DispatchOutcome,
    InteractionMode,
    Matched,
    MessageRole,
    SubTrigger,
)
from orchestra.notifications import Notifier
from orchestra.synthesis import SynthesisController
from orchestra.tracker import ExecutionTracker

logger = logging.getLogger(__name__)

DispatchFn = Callable[[AutomationTrigger, SubTrigger | None], Awaitable[DispatchOutcome]]


@dataclass(slots=True, frozen=True)
class TranscriptResult:
    mode: InteractionMode
    transcript: str
    dispatch: DispatchOutcome | None = None
    forwarded: bool = False
    reply: str | None = None


class ConversationController:
    """Routes final transcripts according to the interaction mode.

    Command mode classifies each transcript; matches are dispatched and
    misses are forwarded to the agent without waiting for it. Conversation
    mode always asks the agent and speaks its reply. Toggling the mode wipes
    the history.
    """

    def __init__(
        self,
        classifier: CommandClassifier,
        channel: CommandChannel,
        synthesis: SynthesisController,
        dispatch: DispatchFn,
        notifier: Notifier,
        tracker: ExecutionTracker,
        fallback_reply: str = DEFAULT_FALLBACK_REPLY,
    ) -> None:
        self.classifier = classifier
        self.channel = channel
        self.synthesis = synthesis
        self._dispatch = dispatch
        self.notifier = notifier
        self.tracker = tracker
        self.fallback_reply = fallback_reply

        self._mode = InteractionMode.COMMAND
        self._history: list[ConversationMessage] = []
        self._generation = 0
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def mode(self) -> InteractionMode:
        return self._mode

    def history(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._history)

    def toggle_mode(self) -> InteractionMode:
        if self._mode == InteractionMode.COMMAND:
            self._mode = InteractionMode.CONVERSATION
        else:
            self._mode = InteractionMode.COMMAND
        self._history.clear()
        self._generation += 1
        logger.info("Interaction mode is now %s", self._mode.value)
        return self._mode

    async def handle_transcript(self, transcript: str) -> TranscriptResult:
        text = transcript.strip()
        if not text:
            return TranscriptResult(mode=self._mode, transcript="")
        if self._mode == InteractionMode.CONVERSATION:
            return await self._converse(text)
        return await self._command(text)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _command(self, text: str) -> TranscriptResult:
        classification = self.classifier.classify(text)
        if isinstance(classification, Matched):
            outcome = await self._dispatch(classification.trigger, classification.sub_trigger)
            return TranscriptResult(
                mode=InteractionMode.COMMAND,
                transcript=text,
                dispatch=outcome,
            )

        task = asyncio.create_task(self._forward(text), name="agent-forward")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        self._append(MessageRole.USER, text)
        return TranscriptResult(mode=InteractionMode.COMMAND, transcript=text, forwarded=True)

    async def _forward(self, text: str) -> None:
        try:
            await self.channel.process_voice_command(text, use_agent=True)
        except DispatchFailure as exc:
            logger.warning("Voice command forwarding failed: %s", exc)
            self.tracker.add_activity(
                ActivityKind.VOICE_COMMAND,
                "Voice Command Failed",
                text,
                ActivityStatus.FAILED,
            )
            self.notifier.error(
                "Command Not Recognized",
                f'Heard: "{text}" - try one of the preset commands or check backend connection',
            )
            return
        self.tracker.add_activity(
            ActivityKind.VOICE_COMMAND,
            "Voice Command Processed",
            text,
            ActivityStatus.COMPLETED,
        )
        self.notifier.info("🤖 Voice Command Processed", f'AI is processing: "{text}"')

    async def _converse(self, text: str) -> TranscriptResult:
        generation = self._generation
        self._append(MessageRole.USER, text)
        reply = self.fallback_reply
        try:
            response = await self.channel.process_voice_command(text, use_agent=True)
        except DispatchFailure as exc:
            logger.warning("Agent request failed: %s", exc)
        else:
            if response.success and response.message.strip():
                reply = response.message.strip()

        if generation != self._generation:
            logger.debug("Mode toggled during agent call; reply dropped")
            return TranscriptResult(mode=InteractionMode.CONVERSATION, transcript=text, forwarded=True)

        self._append(MessageRole.AI, reply)
        self.synthesis.speak(reply)
        return TranscriptResult(
            mode=InteractionMode.CONVERSATION,
            transcript=text,
            forwarded=True,
            reply=reply,
        )

    def _append(self, role: MessageRole, text: str) -> None:
        self._history.append(ConversationMessage(role=role, text=text))

from __future__ import annotations

import asyncio
from contextlib import suppress
import logging
from typing import AsyncIterator

from orchestra.api_client import BackendClient
from orchestra.capabilities import (
    CommandSpeechRecognizer,
    CommandSpeechSynthesizer,
    SilentAudioInput,
)
from orchestra.classifier import CommandClassifier, normalize
from orchestra.config import Settings
from orchestra.conversation import ConversationController, TranscriptResult
from orchestra.dispatch import AutomationDispatcher
from orchestra.events import InMemoryEventBus
from orchestra.exceptions import (
    CapabilityUnavailable,
    DispatchFailure,
    InputBusy,
    PermissionDenied,
    RecognitionError,
    SubTriggerRequired,
)
from orchestra.interfaces import AudioInput, SpeechRecognizer, SpeechSynthesizer
from orchestra.models import (
    ActivityKind,
    DispatchOutcome,
    End,
    Final,
    InteractionMode,
    OrchestrationSnapshot,
    Partial,
    RecognitionEvent,
    RecognitionFailure,
)
from orchestra.notifications import Notifier
from orchestra.recognition import RecognitionSession
from orchestra.registry import TriggerRegistry, build_default_registry
from orchestra.schemas import HealthCheckResponse
from orchestra.synthesis import SynthesisController
from orchestra.tracker import ExecutionTracker


def configure_logger(level: str) -> logging.Logger:
    logger = logging.getLogger("orchestra")
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


class OrchestrationCore:
    """Owns listening state and wires recognition to classification and dispatch.

    Recognition events are consumed by a single task in arrival order. Each
    final transcript is then handled in its own task, so a slow dispatch never
    blocks the next command. Consumers only ever see snapshots.
    """

    def __init__(
        self,
        settings: Settings,
        registry: TriggerRegistry,
        recognition: RecognitionSession,
        synthesis: SynthesisController,
        client: BackendClient,
        tracker: ExecutionTracker | None = None,
        bus: InMemoryEventBus | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.recognition = recognition
        self.synthesis = synthesis
        self.client = client
        self.bus = bus or InMemoryEventBus(settings.event_queue_size)
        self.tracker = tracker or ExecutionTracker.from_settings(settings, bus=self.bus)
        self.notifier = Notifier(self.bus, history=settings.notification_history)
        self.classifier = CommandClassifier(registry)
        self.dispatcher = AutomationDispatcher(client, self.tracker, self.notifier)
        self.conversation = ConversationController(
            classifier=self.classifier,
            channel=client,
            synthesis=synthesis,
            dispatch=self.dispatcher.dispatch,
            notifier=self.notifier,
            tracker=self.tracker,
            fallback_reply=settings.conversation_fallback_reply,
        )
        self.logger = logging.getLogger("orchestra.runtime")

        self._listening = False
        self._transcript = ""
        self._last_command = ""
        self._listen_task: asyncio.Task[None] | None = None
        self._handlers: set[asyncio.Task[TranscriptResult]] = set()
        self._started = False

    @property
    def listening(self) -> bool:
        return self._listening

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.tracker.add_activity(
            ActivityKind.SYSTEM,
            "Orchestrator Online",
            "Voice orchestration core ready",
        )
        self.logger.info("Orchestration core started")

    async def shutdown(self) -> None:
        await self.stop_listening()
        self.synthesis.cancel()
        handlers = list(self._handlers)
        for task in handlers:
            task.cancel()
        for task in handlers:
            with suppress(asyncio.CancelledError):
                await task
        await self.conversation.drain()
        await self.tracker.shutdown()
        self._started = False
        self.logger.info("Orchestration core stopped")

    # Voice input

    async def start_listening(self) -> bool:
        if self._listening:
            return True
        try:
            events = await self.recognition.start()
        except CapabilityUnavailable:
            self.notifier.error(
                "Speech Recognition Not Supported",
                "This environment doesn't provide speech recognition.",
            )
            return False
        except PermissionDenied:
            self.notifier.error(
                "Microphone Access Required",
                "Please allow microphone access to speak to the orchestrator.",
            )
            return False
        except RecognitionError as exc:
            self.notifier.error("Speech Recognition Error", str(exc))
            return False

        self._listening = True
        self._transcript = ""
        self._listen_task = asyncio.create_task(self._consume(events), name="recognition-consumer")
        self.notifier.info("🤖 AI Orchestrator Online", "Speak your command to the orchestrator...")
        return True

    async def stop_listening(self) -> None:
        await self.recognition.stop()
        self._listening = False
        self._transcript = ""
        task, self._listen_task = self._listen_task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    async def _consume(self, events: AsyncIterator[RecognitionEvent]) -> None:
        try:
            async for event in events:
                if isinstance(event, Partial):
                    self._transcript = event.text
                elif isinstance(event, Final):
                    self._transcript = event.text
                    self.accept_transcript(event.text)
                elif isinstance(event, RecognitionFailure):
                    self._listening = False
                    self.notifier.error("Speech Recognition Error", f"Error: {event.reason}")
                elif isinstance(event, End):
                    break
                else:
                    raise TypeError(f"Unknown recognition event: {event!r}")
        finally:
            self._listening = False

    def accept_transcript(self, transcript: str) -> asyncio.Task[TranscriptResult]:
        command = normalize(transcript)
        self._last_command = command
        self.logger.info("Processing command: %s", command)
        task = asyncio.create_task(
            self.conversation.handle_transcript(command),
            name="transcript-handler",
        )
        self._handlers.add(task)
        task.add_done_callback(self._on_handler_done)
        return task

    def _on_handler_done(self, task: asyncio.Task[TranscriptResult]) -> None:
        self._handlers.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("Transcript handler failed", exc_info=exc)
            self.notifier.error("Command Failed", str(exc) or type(exc).__name__)

    async def submit_text(self, text: str) -> TranscriptResult:
        if self._listening or self.synthesis.speaking:
            raise InputBusy("Typed input is disabled while listening or speaking.")
        self._transcript = text
        return await self.accept_transcript(text)

    # Modes and manual triggers

    def toggle_mode(self) -> InteractionMode:
        mode = self.conversation.toggle_mode()
        if mode == InteractionMode.CONVERSATION:
            self.notifier.info("💬 Conversation Mode", "Replies will be spoken aloud.")
        else:
            self.notifier.info("🎛️ Command Mode", "Speak a command to trigger an automation.")
        return mode

    async def trigger(self, trigger_id: str, sub_trigger_id: str | None = None) -> DispatchOutcome:
        trigger = self.registry.require(trigger_id)
        sub_trigger = None
        if sub_trigger_id is not None:
            sub_trigger = trigger.sub_trigger(sub_trigger_id)
            if sub_trigger is None:
                raise SubTriggerRequired(
                    trigger.id,
                    tuple(item.id for item in trigger.sub_triggers),
                )
        elif trigger.requires_sub_trigger:
            raise SubTriggerRequired(trigger.id, tuple(item.id for item in trigger.sub_triggers))
        return await self.dispatcher.dispatch(trigger, sub_trigger)

    def cancel_speech(self) -> None:
        self.synthesis.cancel()

    async def check_backend(self) -> HealthCheckResponse | None:
        try:
            return await self.client.check_health()
        except DispatchFailure as exc:
            self.notifier.error("Backend Unreachable", f"{exc} - check backend connectivity.")
            return None

    async def wait_idle(self) -> None:
        """Wait for transcript handlers, agent calls, speech and simulators."""
        while self._handlers:
            await asyncio.gather(*list(self._handlers), return_exceptions=True)
        await self.conversation.drain()
        await self.synthesis.wait()
        await self.tracker.wait_idle()

    # Read side

    def snapshot(self) -> OrchestrationSnapshot:
        return OrchestrationSnapshot(
            listening=self._listening,
            speaking=self.synthesis.speaking,
            mode=self.conversation.mode,
            transcript=self._transcript,
            last_command=self._last_command,
            running_trigger_ids=self.tracker.running_trigger_ids(),
            activity_log=self.tracker.activity_log(),
            conversation_history=self.conversation.history(),
            audio_level=self.recognition.audio_level() if self._listening else 0.0,
            running_count=self.tracker.running_count(),
        )

    def progress_for(self, trigger_id: str) -> float:
        return self.tracker.progress_for(trigger_id)


def build_default_core(
    settings: Settings | None = None,
    *,
    recognizer: SpeechRecognizer | None = None,
    audio_input: AudioInput | None = None,
    synthesizer: SpeechSynthesizer | None = None,
    client: BackendClient | None = None,
    registry: TriggerRegistry | None = None,
) -> OrchestrationCore:
    cfg = settings or Settings.from_env()
    configure_logger(cfg.log_level)
    if recognizer is None and cfg.stt_command.strip():
        recognizer = CommandSpeechRecognizer(cfg.stt_command)
    if synthesizer is None and cfg.tts_command.strip():
        synthesizer = CommandSpeechSynthesizer(cfg.tts_command)
    recognition = RecognitionSession(
        recognizer,
        audio_input or SilentAudioInput(),
        language=cfg.recognition_language,
    )
    return OrchestrationCore(
        settings=cfg,
        registry=registry or build_default_registry(),
        recognition=recognition,
        synthesis=SynthesisController(synthesizer),
        client=client or BackendClient(cfg),
    )

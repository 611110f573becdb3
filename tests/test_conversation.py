from __future__ import annotations

import asyncio

from orchestra.classifier import CommandClassifier
from orchestra.conversation import ConversationController
from orchestra.events import InMemoryEventBus
from orchestra.exceptions import DispatchFailure
from orchestra.interfaces import SpeechSynthesizer
from orchestra.models import (
    ActivityKind,
    ActivityStatus,
    DispatchOutcome,
    DispatchStatus,
    InteractionMode,
    MessageRole,
)
from orchestra.notifications import Notifier
from orchestra.registry import build_default_registry
from orchestra.schemas import ApiResponse
from orchestra.synthesis import SynthesisController
from orchestra.tracker import ExecutionTracker


class FakeChannel:
    def __init__(self, reply: str = "", fail: bool = False, gate: asyncio.Event | None = None) -> None:
        self.reply = reply
        self.fail = fail
        self.gate = gate
        self.calls: list[tuple[str, bool]] = []

    async def process_voice_command(self, command: str, use_agent: bool = False) -> ApiResponse:
        self.calls.append((command, use_agent))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise DispatchFailure("Connection error: refused")
        return ApiResponse(success=True, message=self.reply)


class RecordingSynthesizer(SpeechSynthesizer):
    def __init__(self) -> None:
        self.spoken: list[str] = []

    async def utter(self, text: str) -> None:
        self.spoken.append(text)


class _Dispatch:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []

    async def __call__(self, trigger, sub_trigger=None) -> DispatchOutcome:
        self.calls.append((trigger.id, sub_trigger.id if sub_trigger else None))
        return DispatchOutcome(trigger_id=trigger.id, status=DispatchStatus.DISPATCHED, message="ok")


def _controller(channel: FakeChannel):
    synthesizer = RecordingSynthesizer()
    dispatch = _Dispatch()
    controller = ConversationController(
        classifier=CommandClassifier(build_default_registry()),
        channel=channel,
        synthesis=SynthesisController(synthesizer),
        dispatch=dispatch,
        notifier=Notifier(InMemoryEventBus()),
        tracker=ExecutionTracker(),
        fallback_reply="fallback reply",
    )
    return controller, synthesizer, dispatch


def test_conversation_reply_is_recorded_and_spoken_once() -> None:
    channel = FakeChannel(reply="Hi, how can I help?")
    controller, synthesizer, dispatch = _controller(channel)

    async def _scenario():
        controller.toggle_mode()
        result = await controller.handle_transcript("hello")
        await controller.synthesis.wait()
        return result

    result = asyncio.run(_scenario())
    assert result.reply == "Hi, how can I help?"
    history = controller.history()
    assert [message.role for message in history] == [MessageRole.USER, MessageRole.AI]
    assert [message.text for message in history] == [
        "hello",
        "Hi, how can I help?",
    ]
    assert synthesizer.spoken == ["Hi, how can I help?"]
    assert channel.calls == [("hello", True)]
    assert dispatch.calls == []


def test_conversation_mode_skips_classification() -> None:
    channel = FakeChannel(reply="Sure.")
    controller, _, dispatch = _controller(channel)

    async def _scenario():
        controller.toggle_mode()
        await controller.handle_transcript("start focus mode")
        await controller.synthesis.wait()

    asyncio.run(_scenario())
    assert dispatch.calls == []
    assert channel.calls == [("start focus mode", True)]


def test_agent_failure_speaks_fallback() -> None:
    channel = FakeChannel(fail=True)
    controller, synthesizer, _ = _controller(channel)

    async def _scenario():
        controller.toggle_mode()
        result = await controller.handle_transcript("hello there")
        await controller.synthesis.wait()
        return result

    result = asyncio.run(_scenario())
    assert result.reply == "fallback reply"
    assert synthesizer.spoken == ["fallback reply"]
    assert controller.history()[-1].role == MessageRole.AI


def test_toggle_clears_history() -> None:
    channel = FakeChannel(reply="ok")
    controller, _, _ = _controller(channel)

    async def _scenario():
        assert controller.toggle_mode() == InteractionMode.CONVERSATION
        await controller.handle_transcript("hi")
        await controller.synthesis.wait()
        assert len(controller.history()) == 2
        assert controller.toggle_mode() == InteractionMode.COMMAND

    asyncio.run(_scenario())
    assert controller.history() == ()
    assert controller.mode == InteractionMode.COMMAND


def test_reply_after_mode_toggle_is_dropped() -> None:
    gate = asyncio.Event()
    channel = FakeChannel(reply="late answer", gate=gate)
    controller, synthesizer, _ = _controller(channel)

    async def _scenario():
        controller.toggle_mode()
        pending = asyncio.create_task(controller.handle_transcript("tell me a story"))
        await asyncio.sleep(0)
        controller.toggle_mode()
        gate.set()
        result = await pending
        await controller.synthesis.wait()
        return result

    result = asyncio.run(_scenario())
    assert result.reply is None
    assert controller.history() == ()
    assert synthesizer.spoken == []


def test_command_match_is_dispatched() -> None:
    channel = FakeChannel()
    controller, _, dispatch = _controller(channel)

    result = asyncio.run(controller.handle_transcript("log a cycling workout"))
    assert result.dispatch is not None
    assert result.dispatch.status == DispatchStatus.DISPATCHED
    assert dispatch.calls == [("gym-notes", "cycling")]
    assert channel.calls == []
    assert controller.history() == ()


def test_command_miss_is_forwarded_to_agent() -> None:
    channel = FakeChannel(reply="noted")
    controller, synthesizer, dispatch = _controller(channel)

    async def _scenario():
        result = await controller.handle_transcript("remind me to call mom")
        await controller.drain()
        return result

    result = asyncio.run(_scenario())
    assert result.forwarded is True
    assert dispatch.calls == []
    assert channel.calls == [("remind me to call mom", True)]
    assert [message.text for message in controller.history()] == ["remind me to call mom"]
    assert synthesizer.spoken == []
    record = controller.tracker.activity_log()[0]
    assert record.kind == ActivityKind.VOICE_COMMAND
    assert record.status == ActivityStatus.COMPLETED


def test_forwarding_failure_is_reported() -> None:
    channel = FakeChannel(fail=True)
    controller, _, _ = _controller(channel)

    async def _scenario():
        await controller.handle_transcript("do the thing")
        await controller.drain()

    asyncio.run(_scenario())
    assert controller.tracker.activity_log()[0].status == ActivityStatus.FAILED
    assert controller.notifier.recent()[0].title == "Command Not Recognized"


def test_blank_transcript_is_ignored() -> None:
    channel = FakeChannel()
    controller, _, dispatch = _controller(channel)

    result = asyncio.run(controller.handle_transcript("   "))
    assert result.transcript == ""
    assert dispatch.calls == []
    assert channel.calls == []

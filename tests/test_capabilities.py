from __future__ import annotations

import asyncio

import pytest

from orchestra.capabilities import (
    CommandSpeechRecognizer,
    CommandSpeechSynthesizer,
    PrintSpeechSynthesizer,
    QueuedSpeechRecognizer,
    _parse_transcript_line,
)
from orchestra.exceptions import RecognitionError
from orchestra.models import Final, Partial


def test_transcript_lines_are_parsed() -> None:
    assert _parse_transcript_line('{"text": "focus", "final": false}') == Partial(text="focus")
    assert _parse_transcript_line('{"text": "focus mode"}') == Final(text="focus mode")
    assert _parse_transcript_line("studio mode") == Final(text="studio mode")
    assert _parse_transcript_line('{"text": "  "}') is None
    assert _parse_transcript_line("[1, 2]") is None


def test_command_adapters_need_an_installed_binary() -> None:
    assert CommandSpeechRecognizer("").available is False
    assert CommandSpeechSynthesizer("definitely-not-a-real-tts-binary {text}").available is False


def test_queued_recognizer_requires_listening() -> None:
    recognizer = QueuedSpeechRecognizer()
    with pytest.raises(RecognitionError):
        recognizer.feed_final("hello")
    assert recognizer.listening is False


def test_print_synthesizer_writes_to_sink() -> None:
    lines: list[str] = []
    asyncio.run(PrintSpeechSynthesizer(sink=lines.append).utter("hello"))
    assert lines == ["[speaking] hello"]

from __future__ import annotations

from orchestra.config import DEFAULT_FALLBACK_REPLY, Settings


def test_defaults_without_environment(monkeypatch) -> None:
    for name in (
        "ORCHESTRA_API_BASE_URL",
        "ORCHESTRA_REQUEST_TIMEOUT_SEC",
        "ORCHESTRA_RETRY_ATTEMPTS",
        "ORCHESTRA_ACTIVITY_CAPACITY",
        "ORCHESTRA_FALLBACK_REPLY",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()
    assert settings.api_base_url == "http://0.0.0.0:8000/api/v1"
    assert settings.request_timeout_sec == 10.0
    assert settings.retry_attempts == 3
    assert settings.activity_capacity == 10
    assert settings.conversation_fallback_reply == DEFAULT_FALLBACK_REPLY


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("ORCHESTRA_API_BASE_URL", "http://backend:9000/api/v1/")
    monkeypatch.setenv("ORCHESTRA_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("ORCHESTRA_PROGRESS_TICK_SEC", "0.25")
    monkeypatch.setenv("ORCHESTRA_PRINT_EVENTS", "off")
    monkeypatch.setenv("ORCHESTRA_STT_COMMAND", "whisper-stream --lang {language}")

    settings = Settings.from_env()
    assert settings.api_base_url == "http://backend:9000/api/v1"
    assert settings.retry_attempts == 5
    assert settings.progress_tick_sec == 0.25
    assert settings.print_events is False
    assert settings.stt_command == "whisper-stream --lang {language}"


def test_invalid_numbers_fall_back_and_are_clamped(monkeypatch) -> None:
    monkeypatch.setenv("ORCHESTRA_RETRY_ATTEMPTS", "many")
    monkeypatch.setenv("ORCHESTRA_ACTIVITY_CAPACITY", "0")
    monkeypatch.setenv("ORCHESTRA_REQUEST_TIMEOUT_SEC", "0.01")
    monkeypatch.setenv("ORCHESTRA_PROGRESS_STEP_MIN", "30")
    monkeypatch.setenv("ORCHESTRA_PROGRESS_STEP_MAX", "10")

    settings = Settings.from_env()
    assert settings.retry_attempts == 3
    assert settings.activity_capacity == 1
    assert settings.request_timeout_sec == 0.5
    assert settings.progress_step_min == 30.0
    assert settings.progress_step_max == 30.0

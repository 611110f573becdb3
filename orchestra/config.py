from __future__ import annotations

from dataclasses import dataclass
import os


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


DEFAULT_FALLBACK_REPLY = (
    "Sorry, I couldn't reach the orchestrator agent. Please check the backend connection."
)


@dataclass(frozen=True)
class Settings:
    app_name: str = "Command Orchestra"
    api_base_url: str = "http://0.0.0.0:8000/api/v1"
    request_timeout_sec: float = 10.0
    retry_attempts: int = 3
    retry_delay_sec: float = 1.0

    activity_capacity: int = 10
    progress_tick_sec: float = 0.5
    progress_step_min: float = 5.0
    progress_step_max: float = 20.0

    recognition_language: str = "en-US"
    stt_command: str = ""
    tts_command: str = ""
    conversation_fallback_reply: str = DEFAULT_FALLBACK_REPLY

    event_queue_size: int = 200
    notification_history: int = 20
    log_level: str = "INFO"
    print_events: bool = True
    host: str = "127.0.0.1"
    port: int = 8080

    @classmethod
    def from_env(cls) -> "Settings":
        base = cls()
        step_min = max(0.1, _float_env("ORCHESTRA_PROGRESS_STEP_MIN", base.progress_step_min))
        step_max = max(step_min, _float_env("ORCHESTRA_PROGRESS_STEP_MAX", base.progress_step_max))
        return cls(
            app_name=os.getenv("ORCHESTRA_APP_NAME", base.app_name),
            api_base_url=os.getenv("ORCHESTRA_API_BASE_URL", base.api_base_url).rstrip("/"),
            request_timeout_sec=max(
                0.5,
                _float_env("ORCHESTRA_REQUEST_TIMEOUT_SEC", base.request_timeout_sec),
            ),
            retry_attempts=max(0, _int_env("ORCHESTRA_RETRY_ATTEMPTS", base.retry_attempts)),
            retry_delay_sec=max(0.0, _float_env("ORCHESTRA_RETRY_DELAY_SEC", base.retry_delay_sec)),
            activity_capacity=max(1, _int_env("ORCHESTRA_ACTIVITY_CAPACITY", base.activity_capacity)),
            progress_tick_sec=max(0.0, _float_env("ORCHESTRA_PROGRESS_TICK_SEC", base.progress_tick_sec)),
            progress_step_min=step_min,
            progress_step_max=step_max,
            recognition_language=os.getenv(
                "ORCHESTRA_RECOGNITION_LANGUAGE",
                base.recognition_language,
            ),
            stt_command=os.getenv("ORCHESTRA_STT_COMMAND", base.stt_command),
            tts_command=os.getenv("ORCHESTRA_TTS_COMMAND", base.tts_command),
            conversation_fallback_reply=os.getenv(
                "ORCHESTRA_FALLBACK_REPLY",
                base.conversation_fallback_reply,
            ),
            event_queue_size=max(8, _int_env("ORCHESTRA_EVENT_QUEUE_SIZE", base.event_queue_size)),
            notification_history=max(
                1,
                _int_env("ORCHESTRA_NOTIFICATION_HISTORY", base.notification_history),
            ),
            log_level=os.getenv("ORCHESTRA_LOG_LEVEL", base.log_level),
            print_events=_parse_bool(os.getenv("ORCHESTRA_PRINT_EVENTS"), base.print_events),
            host=os.getenv("ORCHESTRA_HOST", base.host),
            port=_int_env("ORCHESTRA_PORT", base.port),
        )

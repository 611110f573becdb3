from __future__ import annotations

import asyncio
import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from orchestra.config import Settings
from orchestra.exceptions import DispatchFailure, DispatchTimeout
from orchestra.schemas import (
    ApiResponse,
    AutomationListResponse,
    DailyNoteRequest,
    HealthCheckResponse,
    NoteType,
    StudioAction,
    StudioRequest,
    VoiceCommandRequest,
    WorkoutRequest,
    WorkoutType,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

TIMEOUT_MESSAGE = "Request timeout - check if backend is running"


class BackendClient:
    """Typed wrapper around the automation backend HTTP API.

    Every failure surfaces as DispatchFailure; requests that exceed the
    configured timeout raise DispatchTimeout. Automation POSTs are sent once.
    Only the idempotent GET helpers honor the configured retry attempts.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.api_base_url.rstrip("/")
        self._transport = transport

    async def check_health(self) -> HealthCheckResponse:
        data = await self._get_with_retry("/health")
        return _validate(HealthCheckResponse, data)

    async def list_automations(self) -> AutomationListResponse:
        data = await self._get_with_retry("/automations")
        return _validate(AutomationListResponse, data)

    async def trigger_workout(self, workout_type: str, date: str | None = None) -> ApiResponse:
        body = WorkoutRequest(workout_type=WorkoutType(workout_type), date=date)
        return await self._post("/workout", body)

    async def trigger_daily_note(self, note_type: str, date: str | None = None) -> ApiResponse:
        body = DailyNoteRequest(note_type=NoteType(note_type), date=date)
        return await self._post("/daily-note", body)

    async def trigger_studio(self, action: str = StudioAction.OPEN_SESSION.value) -> ApiResponse:
        body = StudioRequest(action=StudioAction(action))
        return await self._post("/studio", body)

    async def process_voice_command(self, command: str, use_agent: bool = False) -> ApiResponse:
        body = VoiceCommandRequest(command=command, use_agent=use_agent)
        return await self._post("/voice-command", body)

    async def trigger_generic(self, trigger_name: str, command: str | None = None) -> ApiResponse:
        phrase = command or f"trigger {trigger_name}"
        return await self.process_voice_command(phrase, use_agent=False)

    async def _post(self, path: str, body: BaseModel) -> ApiResponse:
        data = await self._request("POST", path, body.model_dump(mode="json", exclude_none=True))
        return _validate(ApiResponse, data)

    async def _get_with_retry(self, path: str) -> Any:
        max_attempts = self.settings.retry_attempts + 1
        for index in range(max_attempts):
            try:
                return await self._request("GET", path)
            except DispatchFailure as exc:
                if index >= max_attempts - 1:
                    raise
                logger.debug("GET %s attempt %d failed: %s", path, index + 1, exc)
                if self.settings.retry_delay_sec > 0:
                    await asyncio.sleep(self.settings.retry_delay_sec * (index + 1))
        raise DispatchFailure(f"GET {path} failed")

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout_sec,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException as exc:
            raise DispatchTimeout(TIMEOUT_MESSAGE) from exc
        except httpx.HTTPError as exc:
            raise DispatchFailure(str(exc) or type(exc).__name__) from exc

        if response.is_error:
            raise DispatchFailure(
                f"API request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise DispatchFailure(f"Invalid JSON from {path}") from exc


def _validate(model: type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise DispatchFailure(f"Unexpected response shape: {exc.error_count()} error(s)") from exc

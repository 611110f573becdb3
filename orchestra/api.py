from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from starlette import status

from orchestra.capabilities import QueuedSpeechRecognizer
from orchestra.config import Settings
from orchestra.exceptions import (
    DispatchFailure,
    DispatchTimeout,
    InputBusy,
    RecognitionError,
    SubTriggerRequired,
    UnknownTrigger,
)
from orchestra.runtime import OrchestrationCore, build_default_core
from orchestra.schemas import (
    AutomationListResponse,
    HealthCheckResponse,
    ListenResponse,
    ModeResponse,
    StateResponse,
    TextCommandRequest,
    TriggerRunRequest,
    TriggerRunResponse,
    TriggerView,
)


def create_app(core: OrchestrationCore | None = None) -> FastAPI:
    if core is None:
        settings = Settings.from_env()
        recognizer = None if settings.stt_command.strip() else QueuedSpeechRecognizer()
        core = build_default_core(settings, recognizer=recognizer)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await core.start()
        try:
            yield
        finally:
            await core.shutdown()

    app = FastAPI(title=core.settings.app_name, version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.core = core

    @app.get("/health")
    async def health() -> dict[str, object]:
        core: OrchestrationCore = app.state.core
        return {
            "status": "ok",
            "recognition": core.recognition.supported,
            "synthesis": core.synthesis.supported,
        }

    @app.get("/v1/state", response_model=StateResponse)
    async def get_state() -> StateResponse:
        core: OrchestrationCore = app.state.core
        return StateResponse.from_snapshot(core.snapshot())

    @app.get("/v1/triggers", response_model=list[TriggerView])
    async def list_triggers() -> list[TriggerView]:
        core: OrchestrationCore = app.state.core
        running = core.tracker.running_trigger_ids()
        return [
            TriggerView.from_trigger(
                trigger,
                running=trigger.id in running,
                progress=core.progress_for(trigger.id),
            )
            for trigger in core.registry
        ]

    @app.post("/v1/triggers/{trigger_id}", response_model=TriggerRunResponse)
    async def run_trigger(
        trigger_id: str,
        payload: TriggerRunRequest | None = None,
    ) -> TriggerRunResponse:
        core: OrchestrationCore = app.state.core
        sub_trigger_id = payload.sub_trigger_id if payload is not None else None
        try:
            outcome = await core.trigger(trigger_id, sub_trigger_id)
        except UnknownTrigger as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except SubTriggerRequired as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc
        return TriggerRunResponse.from_outcome(outcome)

    @app.post("/v1/listen/start", response_model=ListenResponse)
    async def listen_start() -> ListenResponse:
        core: OrchestrationCore = app.state.core
        ok = await core.start_listening()
        return ListenResponse(ok=ok, listening=core.listening)

    @app.post("/v1/listen/stop", response_model=ListenResponse)
    async def listen_stop() -> ListenResponse:
        core: OrchestrationCore = app.state.core
        await core.stop_listening()
        return ListenResponse(ok=True, listening=core.listening)

    @app.post("/v1/mode/toggle", response_model=ModeResponse)
    async def toggle_mode() -> ModeResponse:
        core: OrchestrationCore = app.state.core
        return ModeResponse(mode=core.toggle_mode().value)

    @app.post("/v1/text", response_model=StateResponse)
    async def submit_text(payload: TextCommandRequest) -> StateResponse:
        core: OrchestrationCore = app.state.core
        try:
            await core.submit_text(payload.text)
        except InputBusy as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return StateResponse.from_snapshot(core.snapshot())

    @app.post("/v1/speech/cancel")
    async def cancel_speech() -> dict[str, bool]:
        core: OrchestrationCore = app.state.core
        core.cancel_speech()
        return {"ok": True, "speaking": core.synthesis.speaking}

    @app.get("/v1/backend/health", response_model=HealthCheckResponse)
    async def backend_health() -> HealthCheckResponse:
        core: OrchestrationCore = app.state.core
        try:
            return await core.client.check_health()
        except DispatchTimeout as exc:
            raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc
        except DispatchFailure as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    @app.get("/v1/backend/automations", response_model=AutomationListResponse)
    async def backend_automations() -> AutomationListResponse:
        core: OrchestrationCore = app.state.core
        try:
            return await core.client.list_automations()
        except DispatchTimeout as exc:
            raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc
        except DispatchFailure as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    @app.get("/v1/notifications")
    async def list_notifications() -> dict[str, list[dict[str, object]]]:
        core: OrchestrationCore = app.state.core
        return {"notifications": [item.to_dict() for item in core.notifier.recent()]}

    @app.websocket("/v1/events")
    async def events(websocket: WebSocket) -> None:
        core: OrchestrationCore = app.state.core
        await websocket.accept()
        queue = core.bus.subscribe()
        try:
            while True:
                event = await queue.get()
                await websocket.send_json(event)
        except WebSocketDisconnect:
            return
        finally:
            core.bus.unsubscribe(queue)

    @app.websocket("/v1/recognition")
    async def recognition_feed(websocket: WebSocket) -> None:
        """Feeds client-side speech recognition results into the session."""
        core: OrchestrationCore = app.state.core
        await websocket.accept()
        recognizer = core.recognition.recognizer
        if not isinstance(recognizer, QueuedSpeechRecognizer):
            await websocket.send_json({"type": "error", "message": "recognition feed disabled"})
            await websocket.close()
            return
        try:
            while True:
                message = await websocket.receive_json()
                if not isinstance(message, dict):
                    await websocket.send_json({"type": "error", "message": "expected a JSON object"})
                    continue
                msg_type = str(message.get("type", "")).strip().lower()
                text = str(message.get("text", ""))
                try:
                    if msg_type == "partial":
                        recognizer.feed_partial(text)
                    elif msg_type == "final":
                        recognizer.feed_final(text)
                    elif msg_type == "error":
                        recognizer.fail(str(message.get("reason", "unknown")))
                    else:
                        await websocket.send_json(
                            {"type": "error", "message": f"unknown message type: {msg_type}"}
                        )
                        continue
                except RecognitionError as exc:
                    await websocket.send_json({"type": "error", "message": str(exc)})
                    continue
                await websocket.send_json({"type": f"{msg_type}.ack"})
        except WebSocketDisconnect:
            return

    return app


app = create_app()

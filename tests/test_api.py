from __future__ import annotations

import httpx
from fastapi.testclient import TestClient

from orchestra.api import create_app
from orchestra.api_client import BackendClient
from orchestra.capabilities import QueuedSpeechRecognizer
from orchestra.config import Settings
from orchestra.runtime import OrchestrationCore, build_default_core


def _ok(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/health"):
        return httpx.Response(200, json={"status": "healthy", "version": "2.0.0"})
    if request.url.path.endswith("/automations"):
        return httpx.Response(200, json={"available_automations": {}, "total_endpoints": 0})
    return httpx.Response(200, json={"success": True, "message": "started"})


def _core(handler=_ok, recognizer: QueuedSpeechRecognizer | None = None) -> OrchestrationCore:
    settings = Settings(
        api_base_url="http://backend.test/api/v1",
        retry_attempts=0,
        retry_delay_sec=0.0,
        progress_tick_sec=10.0,
        log_level="WARNING",
    )
    return build_default_core(
        settings,
        recognizer=recognizer,
        client=BackendClient(settings, transport=httpx.MockTransport(handler)),
    )


def test_health_endpoint() -> None:
    with TestClient(create_app(_core())) as client:
        response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["recognition"] is False
    assert response.json()["synthesis"] is False

    with TestClient(create_app(_core(recognizer=QueuedSpeechRecognizer()))) as client:
        assert client.get("/health").json()["recognition"] is True


def test_state_after_startup() -> None:
    with TestClient(create_app(_core())) as client:
        response = client.get("/v1/state")
    assert response.status_code == 200
    body = response.json()
    assert body["listening"] is False
    assert body["mode"] == "command"
    assert body["activity_log"][0]["title"] == "Orchestrator Online"


def test_triggers_are_listed_in_registry_order() -> None:
    with TestClient(create_app(_core())) as client:
        response = client.get("/v1/triggers")
    assert response.status_code == 200
    ids = [item["id"] for item in response.json()]
    assert ids == [
        "gym-notes",
        "studio-mode",
        "ritual-mode",
        "explorer-mode",
        "focus-mode",
        "archive-mission",
    ]
    assert len(response.json()[0]["sub_triggers"]) == 4


def test_run_trigger_endpoint() -> None:
    with TestClient(create_app(_core())) as client:
        response = client.post("/v1/triggers/focus-mode")
        assert response.status_code == 200
        assert response.json()["status"] == "dispatched"

        triggers = client.get("/v1/triggers").json()
        focus = next(item for item in triggers if item["id"] == "focus-mode")
        assert focus["running"] is True

        missing = client.post("/v1/triggers/unknown-mode")
        assert missing.status_code == 404

        needs_choice = client.post("/v1/triggers/gym-notes")
        assert needs_choice.status_code == 422

        chosen = client.post("/v1/triggers/gym-notes", json={"sub_trigger_id": "running"})
        assert chosen.status_code == 200
        assert chosen.json()["execution_id"]


def test_failed_trigger_is_reported_in_notifications() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with TestClient(create_app(_core(handler))) as client:
        response = client.post("/v1/triggers/studio-mode")
        assert response.status_code == 200
        assert response.json()["status"] == "failed"
        notifications = client.get("/v1/notifications").json()["notifications"]
    assert notifications[0]["level"] == "error"
    assert notifications[0]["title"] == "Automation Failed"


def test_text_command_and_busy_listening() -> None:
    recognizer = QueuedSpeechRecognizer()
    with TestClient(create_app(_core(recognizer=recognizer))) as client:
        response = client.post("/v1/text", json={"text": "studio mode"})
        assert response.status_code == 200
        assert response.json()["last_command"] == "studio mode"

        started = client.post("/v1/listen/start").json()
        assert started == {"ok": True, "listening": True}

        busy = client.post("/v1/text", json={"text": "focus mode"})
        assert busy.status_code == 409

        stopped = client.post("/v1/listen/stop").json()
        assert stopped == {"ok": True, "listening": False}


def test_listen_without_recognizer_fails_softly() -> None:
    with TestClient(create_app(_core())) as client:
        response = client.post("/v1/listen/start")
    assert response.status_code == 200
    assert response.json() == {"ok": False, "listening": False}


def test_mode_toggle_endpoint() -> None:
    with TestClient(create_app(_core())) as client:
        first = client.post("/v1/mode/toggle").json()
        second = client.post("/v1/mode/toggle").json()
    assert first == {"mode": "conversation"}
    assert second == {"mode": "command"}


def test_backend_health_proxy() -> None:
    with TestClient(create_app(_core())) as client:
        response = client.get("/v1/backend/health")
    assert response.status_code == 200
    assert response.json()["version"] == "2.0.0"

    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with TestClient(create_app(_core(slow))) as client:
        response = client.get("/v1/backend/health")
    assert response.status_code == 504


def test_recognition_feed_requires_listening() -> None:
    recognizer = QueuedSpeechRecognizer()
    with TestClient(create_app(_core(recognizer=recognizer))) as client:
        with client.websocket_connect("/v1/recognition") as websocket:
            websocket.send_json({"type": "final", "text": "focus mode"})
            assert websocket.receive_json()["type"] == "error"

        client.post("/v1/listen/start")
        with client.websocket_connect("/v1/recognition") as websocket:
            websocket.send_json({"type": "partial", "text": "focus"})
            assert websocket.receive_json() == {"type": "partial.ack"}
            websocket.send_json({"type": "bogus"})
            assert websocket.receive_json()["type"] == "error"
        client.post("/v1/listen/stop")


def test_state_reports_running_executions() -> None:
    with TestClient(create_app(_core())) as client:
        assert client.get("/v1/state").json()["running_count"] == 0
        client.post("/v1/triggers/focus-mode")
        client.post("/v1/triggers/studio-mode")
        assert client.get("/v1/state").json()["running_count"] == 2


def test_backend_automations_proxy() -> None:
    with TestClient(create_app(_core())) as client:
        response = client.get("/v1/backend/automations")
    assert response.status_code == 200
    assert response.json()["total_endpoints"] == 0

    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with TestClient(create_app(_core(refused))) as client:
        response = client.get("/v1/backend/automations")
    assert response.status_code == 502


def test_recognition_feed_rejects_non_object_messages() -> None:
    recognizer = QueuedSpeechRecognizer()
    with TestClient(create_app(_core(recognizer=recognizer))) as client:
        client.post("/v1/listen/start")
        with client.websocket_connect("/v1/recognition") as websocket:
            websocket.send_json([1])
            assert websocket.receive_json() == {"type": "error", "message": "expected a JSON object"}
            websocket.send_json("focus")
            assert websocket.receive_json()["type"] == "error"
            websocket.send_json({"type": "partial", "text": "focus"})
            assert websocket.receive_json() == {"type": "partial.ack"}
        client.post("/v1/listen/stop")

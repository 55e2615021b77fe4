import threading
import time

from fastapi.testclient import TestClient

from doubles import RecordingWaiter, ScriptedBackend, ScriptedSession
from stream_relay.application.supervisor import SessionSupervisor, ShutdownToken
from stream_relay.common.errors import ConfigError, ErrorCode
from stream_relay.domain.models.session import SessionEvent, SupervisorConfig, SupervisorState
from stream_relay.interface.api.app import create_app


def _supervisor(backend, token: ShutdownToken) -> SessionSupervisor:
    return SessionSupervisor(
        config=SupervisorConfig(
            source="rtsp://localhost:8554/cam1",
            destination="srt://127.0.0.1:8890?streamid=publish:cam1",
            max_attempts=1,
        ),
        backend=backend,
        shutdown=token,
        waiter=RecordingWaiter(),
        poll_interval=0.01,
    )


def test_live_is_always_ok(token: ShutdownToken) -> None:
    client = TestClient(create_app(_supervisor(ScriptedBackend([]), token)))

    response = client.get("/health/live")

    assert response.status_code == 200
    assert response.json() == {"status": "live"}


def test_ready_is_503_until_streaming(token: ShutdownToken) -> None:
    client = TestClient(create_app(_supervisor(ScriptedBackend([]), token)))

    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.json()["state"] == "IDLE"


def test_ready_and_status_while_streaming(token: ShutdownToken) -> None:
    release = threading.Event()
    session = ScriptedSession(
        [
            SessionEvent.healthy(),
            lambda: release.wait(5.0),
            lambda: token.request("test"),
        ],
        session_id="relay-1",
    )
    supervisor = _supervisor(ScriptedBackend([session]), token)
    client = TestClient(create_app(supervisor))

    runner = threading.Thread(target=supervisor.run, daemon=True)
    runner.start()
    deadline = time.monotonic() + 2.0
    while supervisor.state != SupervisorState.STREAMING and time.monotonic() < deadline:
        time.sleep(0.01)

    try:
        ready = client.get("/health/ready")
        status = client.get("/status")
    finally:
        release.set()
        runner.join(timeout=2.0)

    assert ready.status_code == 200
    body = status.json()
    assert body["success"] is True
    assert body["data"]["state"] == "STREAMING"
    assert body["data"]["session_id"] == "relay-1"
    assert body["data"]["healthy_count"] == 1
    assert supervisor.outcome.reason.value == "shutdown-requested"


def test_relay_error_handler_maps_http_status(token: ShutdownToken) -> None:
    app = create_app(_supervisor(ScriptedBackend([]), token))

    @app.get("/boom")
    async def boom():
        raise ConfigError(ErrorCode.CONFIG_INVALID, "bad value", field_name="source")

    response = TestClient(app).get("/boom")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "CONFIG_INVALID"
    assert body["details"]["field_name"] == "source"


def test_missing_context_is_server_error() -> None:
    client = TestClient(create_app(), raise_server_exceptions=False)

    response = client.get("/status")

    assert response.status_code == 500
    assert response.json()["success"] is False

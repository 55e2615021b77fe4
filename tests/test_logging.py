import orjson
import pytest
from loguru import logger

from doubles import RecordingWaiter, ScriptedBackend, ScriptedSession
from stream_relay.application.supervisor import SessionSupervisor, ShutdownToken
from stream_relay.common.logging import configure_logging, get_logger
from stream_relay.domain.models.session import SessionEvent, StopReason, SupervisorConfig


@pytest.fixture
def restore_logger():
    yield
    logger.remove()


def test_json_output_includes_context_and_fields(
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
    restore_logger,
) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    configure_logging(level="INFO", json_output=True)

    get_logger("tests.json", component="supervisor").info(
        "재시도 {예약}", attempt=2, reason=StopReason.RETRIES_EXHAUSTED
    )

    line = capsys.readouterr().out.strip().splitlines()[-1]
    entry = orjson.loads(line)
    assert entry["message"] == "재시도 {예약}"
    assert entry["level"] == "INFO"
    assert entry["component"] == "supervisor"
    assert entry["attempt"] == 2
    assert entry["reason"] == "retries-exhausted"


def test_level_filters_debug(
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
    restore_logger,
) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    configure_logging(level="WARNING", json_output=True)

    log = get_logger("tests.level")
    log.info("숨김")
    log.warning("표시")

    out = capsys.readouterr().out
    assert "숨김" not in out
    assert "표시" in out


def test_get_logger_is_cached() -> None:
    assert get_logger("tests.cache", component="x") is get_logger("tests.cache", component="x")


def test_supervisor_logs_carry_trace_and_session_context(
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
    restore_logger,
) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    configure_logging(level="INFO", json_output=True)

    session = ScriptedSession(
        [SessionEvent.healthy(), SessionEvent.error("broken pipe")], session_id="relay-7"
    )
    supervisor = SessionSupervisor(
        config=SupervisorConfig(
            source="rtsp://localhost:8554/cam1",
            destination="srt://127.0.0.1:8890",
            reconnect_delay=0.0,
            max_attempts=1,
        ),
        backend=ScriptedBackend([session]),
        shutdown=ShutdownToken(),
        waiter=RecordingWaiter(),
        poll_interval=0.01,
    )
    supervisor.run()
    get_logger("tests.after").info("실행 이후")

    entries = [orjson.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
    by_type = {e.get("event_type"): e for e in entries if "event_type" in e}

    trace_ids = {e["trace_id"] for e in entries if e["logger"].endswith("supervisor")}
    assert len(trace_ids) == 1
    assert "session_id" not in by_type["attempt_started"]
    assert by_type["attempt_failed"]["session_id"] == "relay-7"
    assert by_type["attempt_failed"]["cause"] == "stream-error"
    assert "trace_id" not in entries[-1]
    assert "session_id" not in entries[-1]

import signal
import subprocess
import sys
import textwrap

import pytest

from doubles import FakePopen, FakeProcess
from stream_relay.common.errors import (
    EngineUnavailableError,
    SessionConfigError,
    SessionStartError,
)
from stream_relay.domain.interfaces.transport import TransportBackend, TransportSession
from stream_relay.domain.models.session import SessionEventKind
from stream_relay.infrastructure.ffmpeg import FFmpegRelayBackend, FFmpegRelaySession

PROGRESS = (
    "frame=0\n"
    "out_time_us=N/A\n"
    "progress=continue\n"
    "frame=12\n"
    "out_time_us=400000\n"
    "bitrate=2048.0kbits/s\n"
    "progress=continue\n"
    "frame=30\n"
    "progress=end\n"
)


def _session(process: FakeProcess, **kwargs) -> tuple[FFmpegRelaySession, FakePopen]:
    popen = FakePopen(process)
    session = FFmpegRelaySession("relay-test", ["ffmpeg", "-i", "in", "out"], popen=popen, **kwargs)
    return session, popen


def _drain(session: FFmpegRelaySession, count: int) -> list:
    return [session.poll_events(2.0) for _ in range(count)]


def test_progress_emits_single_healthy_then_end_of_stream() -> None:
    session, _ = _session(FakeProcess(stdout=PROGRESS, returncode=0))
    session.start()

    events = _drain(session, 2) + [session.poll_events(0.05)]
    session.stop()

    assert [e.kind for e in events] == [
        SessionEventKind.HEALTHY,
        SessionEventKind.END_OF_STREAM,
        SessionEventKind.OTHER,
    ]
    stats = session.get_stats()
    assert stats["frame"] == 30
    assert stats["out_time_us"] == 400000
    assert stats["healthy"] is True


def test_nonzero_exit_reports_last_stderr_line() -> None:
    stderr = "Opening input\nrtsp://localhost:8554/cam1: Connection refused\n"
    session, _ = _session(FakeProcess(stderr=stderr, returncode=1))
    session.start()

    event = session.poll_events(2.0)
    session.stop()

    assert event.kind == SessionEventKind.ERROR
    assert "Connection refused" in event.detail
    assert "1" in event.detail
    assert session.stderr_tail[-1].endswith("Connection refused")
    assert session.is_healthy is False


def test_poll_without_events_returns_other() -> None:
    session = FFmpegRelaySession("idle", ["ffmpeg"], popen=FakePopen())

    assert session.poll_events(0.01).kind == SessionEventKind.OTHER


def test_popen_is_called_with_pipes_and_text_mode() -> None:
    session, popen = _session(FakeProcess())
    session.start()
    session.stop()

    command, kwargs = popen.calls[0]
    assert command == ["ffmpeg", "-i", "in", "out"]
    assert kwargs["stdin"] == subprocess.PIPE
    assert kwargs["stdout"] == subprocess.PIPE
    assert kwargs["text"] is True
    assert kwargs["errors"] == "replace"


def test_missing_binary_raises_engine_unavailable() -> None:
    session = FFmpegRelaySession("x", ["ffmpeg"], popen=FakePopen(error=FileNotFoundError("ffmpeg")))

    with pytest.raises(EngineUnavailableError) as exc_info:
        session.start()

    assert exc_info.value.engine == "ffmpeg"


def test_other_os_error_raises_session_start_error() -> None:
    session = FFmpegRelaySession("x", ["ffmpeg"], popen=FakePopen(error=PermissionError("denied")))

    with pytest.raises(SessionStartError):
        session.start()


def test_stop_requests_quit_and_is_idempotent() -> None:
    process = FakeProcess(running=True)
    session, _ = _session(process)
    session.start()

    session.stop()
    session.stop()

    assert process.stdin.data == "q\n"
    assert process.stdin.closed
    assert process.terminated is False
    assert process.returncode == 0


def test_stop_escalates_to_terminate() -> None:
    process = FakeProcess(running=True, quit_on_q=False)
    session, _ = _session(process, stop_timeout=0.01)
    session.start()

    session.stop()

    assert process.terminated is True
    assert process.killed is False


def test_stop_escalates_to_kill() -> None:
    process = FakeProcess(running=True, quit_on_q=False, terminate_works=False)
    session, _ = _session(process, stop_timeout=0.01)
    session.start()

    session.stop()

    assert process.killed is True
    assert process.returncode == -9


def test_stop_before_start_is_noop() -> None:
    session = FFmpegRelaySession("never", ["ffmpeg"], popen=FakePopen())

    session.stop()

    assert session.returncode is None


def test_backend_starts_sessions_with_increasing_ids() -> None:
    popen = FakePopen(FakeProcess())
    backend = FFmpegRelayBackend(popen=popen)

    first = backend.start("rtsp://localhost:8554/cam1", "srt://127.0.0.1:8890")
    second = backend.start("rtsp://localhost:8554/cam1", "srt://127.0.0.1:8890")
    first.stop()
    second.stop()

    assert (first.session_id, second.session_id) == ("relay-1", "relay-2")
    assert popen.calls[0][0][-1] == "srt://127.0.0.1:8890"
    assert isinstance(backend, TransportBackend)
    assert isinstance(first, TransportSession)


def test_backend_rejects_bad_endpoint_before_spawning() -> None:
    popen = FakePopen()
    backend = FFmpegRelayBackend(popen=popen)

    with pytest.raises(SessionConfigError):
        backend.start("rtsp://localhost:8554/cam1", "ftp://example.com/out")

    assert popen.calls == []


class _Completed:
    def __init__(self, stdout: str) -> None:
        self.stdout = stdout


def test_check_available_returns_version_line() -> None:
    calls = []

    def runner(cmd, **kwargs):
        calls.append(cmd)
        return _Completed("ffmpeg version 6.1.1 Copyright (c) 2000-2023\nbuilt with gcc\n")

    backend = FFmpegRelayBackend(binary="/usr/bin/ffmpeg", runner=runner)

    assert backend.check_available() == "ffmpeg version 6.1.1 Copyright (c) 2000-2023"
    assert calls[0][0] == "/usr/bin/ffmpeg"
    assert "-version" in calls[0]


@pytest.mark.parametrize(
    "error",
    [FileNotFoundError("ffmpeg"), subprocess.CalledProcessError(1, "ffmpeg")],
)
def test_check_available_failures_raise_engine_unavailable(error: Exception) -> None:
    def runner(cmd, **kwargs):
        raise error

    with pytest.raises(EngineUnavailableError):
        FFmpegRelayBackend(runner=runner).check_available()


# 실제 파이프: 파이썬 자식 프로세스를 ffmpeg 대신 실행

def _child(script: str, **kwargs) -> FFmpegRelaySession:
    return FFmpegRelaySession(
        "relay-child", [sys.executable, "-c", textwrap.dedent(script)], **kwargs
    )


def test_undecodable_stderr_is_drained_and_progress_still_reported() -> None:
    session = _child(
        """
        import sys
        sys.stderr.buffer.write(b"\\xff\\xfe bad bytes\\n")
        for _ in range(2000):
            sys.stderr.buffer.write(b"x" * 100 + b"\\n")
        sys.stderr.flush()
        sys.stdout.write("frame=5\\nprogress=continue\\n")
        sys.stdout.flush()
        """
    )
    session.start()

    events = _drain_until_exit(session)
    session.stop()

    assert [e.kind for e in events] == [
        SessionEventKind.HEALTHY,
        SessionEventKind.END_OF_STREAM,
    ]
    assert session.returncode == 0


def test_child_failure_reports_exit_code_and_stderr() -> None:
    session = _child(
        """
        import sys
        sys.stderr.write("rtsp://localhost:8554/cam1: Connection refused\\n")
        sys.exit(3)
        """
    )
    session.start()

    events = _drain_until_exit(session)
    session.stop()

    assert [e.kind for e in events] == [SessionEventKind.ERROR]
    assert "3" in events[0].detail
    assert "Connection refused" in events[0].detail


def test_stop_sends_quit_to_child() -> None:
    session = _child(
        """
        import sys
        print("frame=1", flush=True)
        for line in sys.stdin:
            if line.strip() == "q":
                sys.exit(0)
        """
    )
    session.start()
    assert session.poll_events(5.0).kind == SessionEventKind.HEALTHY

    session.stop()

    assert session.returncode == 0
    assert session.is_running is False


@pytest.mark.skipif(sys.platform == "win32", reason="SIGTERM 무시는 POSIX 전용")
def test_stop_kills_child_ignoring_quit_and_terminate() -> None:
    session = _child(
        """
        import signal, sys, time
        signal.signal(signal.SIGTERM, signal.SIG_IGN)
        print("frame=1", flush=True)
        while True:
            time.sleep(0.1)
        """,
        stop_timeout=0.2,
    )
    session.start()
    assert session.poll_events(5.0).kind == SessionEventKind.HEALTHY

    session.stop()

    assert session.returncode == -signal.SIGKILL


def _drain_until_exit(session: FFmpegRelaySession, limit: int = 10) -> list:
    events = []
    for _ in range(limit):
        event = session.poll_events(5.0)
        if event.kind == SessionEventKind.OTHER:
            break
        events.append(event)
        if event.kind in (SessionEventKind.ERROR, SessionEventKind.END_OF_STREAM):
            break
    return events

# -*- coding: utf-8 -*-
"""
FFmpeg 릴레이 세션.

ffmpeg subprocess 하나가 전송 세션 하나에 해당합니다.
stdout의 -progress 출력으로 송출 시작을 감지하고, 프로세스 종료를
EndOfStream / Error 이벤트로 변환합니다.
"""

from __future__ import annotations

import itertools
import subprocess
import threading
from collections import deque
from queue import Empty, Queue
from typing import Any, Callable, Sequence

from stream_relay.common.errors import (
    EngineUnavailableError,
    SessionStartError,
)
from stream_relay.common.logging import get_logger
from stream_relay.domain.models.session import SessionEvent
from stream_relay.infrastructure.ffmpeg.command import (
    Endpoint,
    build_relay_command,
    parse_endpoint,
)


PopenFactory = Callable[..., Any]

_logger = get_logger(__name__, component="ffmpeg")


class FFmpegRelaySession:
    """
    FFmpeg 릴레이 세션.

    start()로 프로세스를 띄운 뒤 poll_events()로 이벤트를 하나씩 받습니다.
    reader 스레드 두 개가 stdout(진행 상황)과 stderr(오류 메시지)를 읽습니다.
    """

    def __init__(
        self,
        session_id: str,
        command: Sequence[str],
        popen: PopenFactory = subprocess.Popen,
        stop_timeout: float = 5.0,
        stderr_tail: int = 20,
    ):
        """
        FFmpegRelaySession 초기화.

        Args:
            session_id: 세션 식별자 (로깅용)
            command: ffmpeg 명령 인자
            popen: 프로세스 생성 함수 (테스트 주입용)
            stop_timeout: 정상 종료 대기 시간 (초)
            stderr_tail: 보관할 stderr 마지막 줄 수
        """
        self.session_id = session_id
        self._command = list(command)
        self._popen = popen
        self._stop_timeout = stop_timeout

        self._process: Any = None
        self._events: Queue[SessionEvent] = Queue()
        self._stderr_lines: deque[str] = deque(maxlen=max(1, stderr_tail))
        self._progress: dict[str, str] = {}
        self._healthy = False
        self._stopped = False
        self._lock = threading.Lock()

        self._stdout_thread: threading.Thread | None = None
        self._stderr_thread: threading.Thread | None = None

        self._logger = get_logger(__name__, component="ffmpeg", session_id=session_id)

    @property
    def command(self) -> list[str]:
        return list(self._command)

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    @property
    def is_healthy(self) -> bool:
        return self._healthy

    @property
    def returncode(self) -> int | None:
        if self._process is None:
            return None
        return self._process.poll()

    @property
    def stderr_tail(self) -> list[str]:
        return list(self._stderr_lines)

    def start(self) -> None:
        """
        ffmpeg 프로세스를 시작합니다.

        Raises:
            EngineUnavailableError: ffmpeg 실행 파일을 찾을 수 없음
            SessionStartError: 그 밖의 프로세스 생성 실패
        """
        binary = self._command[0]
        try:
            self._process = self._popen(
                self._command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise EngineUnavailableError(
                f"ffmpeg 실행 파일을 찾을 수 없습니다: {binary}",
                engine=binary,
            ) from e
        except OSError as e:
            raise SessionStartError(
                f"ffmpeg 프로세스 시작 실패: {e}",
                session_id=self.session_id,
            ) from e

        self._stderr_thread = threading.Thread(
            target=self._read_stderr,
            name=f"{self.session_id}-stderr",
            daemon=True,
        )
        self._stdout_thread = threading.Thread(
            target=self._read_progress,
            name=f"{self.session_id}-progress",
            daemon=True,
        )
        self._stderr_thread.start()
        self._stdout_thread.start()

        self._logger.debug(
            "FFmpeg 프로세스 시작",
            pid=getattr(self._process, "pid", None),
        )

    def poll_events(self, timeout: float) -> SessionEvent:
        """
        다음 이벤트를 최대 timeout초 기다립니다.

        Returns:
            수신된 이벤트, 없으면 SessionEvent.other()
        """
        try:
            return self._events.get(timeout=timeout)
        except Empty:
            return SessionEvent.other()

    def _read_progress(self) -> None:
        """stdout의 -progress key=value 블록을 읽어 송출 시작을 감지합니다."""
        stdout = self._process.stdout
        try:
            if stdout is not None:
                for line in stdout:
                    key, sep, value = line.strip().partition("=")
                    if not sep:
                        continue
                    self._progress[key] = value
                    if not self._healthy and _is_flowing(key, value):
                        self._healthy = True
                        self._logger.debug("FFmpeg 송출 시작 감지", key=key, value=value)
                        self._events.put(SessionEvent.healthy())
        except (OSError, ValueError) as e:
            # stop()이 파이프를 닫은 경우
            self._logger.debug("progress 파이프 읽기 종료", error=str(e))
        finally:
            self._on_exit()

    def _read_stderr(self) -> None:
        stderr = self._process.stderr
        if stderr is None:
            return
        try:
            for line in stderr:
                line = line.rstrip()
                if line:
                    self._stderr_lines.append(line)
                    self._logger.debug("ffmpeg", stderr=line)
        except (OSError, ValueError) as e:
            self._logger.debug("stderr 파이프 읽기 종료", error=str(e))

    def _on_exit(self) -> None:
        """stdout EOF 이후 종료 코드를 확인해 종료 이벤트를 발행합니다."""
        if self._stderr_thread is not None:
            # 마지막 오류 메시지를 놓치지 않도록 stderr를 먼저 비움
            self._stderr_thread.join(timeout=1.0)

        try:
            code = self._process.wait(timeout=self._stop_timeout)
        except subprocess.TimeoutExpired:
            # stdout만 닫히고 프로세스는 살아 있음
            self._events.put(SessionEvent.error("ffmpeg progress 출력이 중단되었습니다"))
            return

        if code == 0:
            self._logger.info("FFmpeg 스트림 종료 (EOS)")
            self._events.put(SessionEvent.end_of_stream())
            return

        detail = self._stderr_lines[-1] if self._stderr_lines else None
        message = f"ffmpeg 종료 코드 {code}"
        if detail:
            message = f"{message}: {detail}"
        self._events.put(SessionEvent.error(message))

    def stop(self) -> None:
        """
        ffmpeg 프로세스를 중지합니다.

        stdin으로 "q"를 보내 정상 종료를 요청하고, stop_timeout 안에 끝나지 않으면
        terminate → kill 순서로 강제 종료합니다. 여러 번 호출해도 안전합니다.
        """
        with self._lock:
            if self._stopped:
                return
            self._stopped = True

            process = self._process
            if process is None:
                return

            self._logger.debug("FFmpeg 프로세스 중지")

            try:
                if process.poll() is None:
                    self._request_quit(process)
                    try:
                        process.wait(timeout=self._stop_timeout)
                    except subprocess.TimeoutExpired:
                        self._logger.warning("FFmpeg 종료 타임아웃, terminate")
                        process.terminate()
                        try:
                            process.wait(timeout=1.0)
                        except subprocess.TimeoutExpired:
                            self._logger.warning("FFmpeg terminate 무시됨, 강제 종료")
                            process.kill()
                            process.wait(timeout=1.0)
            except Exception as e:
                self._logger.error("FFmpeg 중지 중 오류", error=str(e))
            finally:
                current = threading.current_thread()
                for thread in (self._stdout_thread, self._stderr_thread):
                    if thread is not None and thread is not current and thread.is_alive():
                        thread.join(timeout=2.0)

                for pipe in (process.stdin, process.stdout, process.stderr):
                    if pipe is None:
                        continue
                    try:
                        pipe.close()
                    except (OSError, ValueError):
                        pass

                self._logger.debug("FFmpeg 프로세스 중지 완료", returncode=process.poll())

    def _request_quit(self, process: Any) -> None:
        if process.stdin is None:
            return
        try:
            process.stdin.write("q\n")
            process.stdin.flush()
        except (BrokenPipeError, OSError, ValueError):
            # 이미 종료 중
            pass

    def get_stats(self) -> dict:
        """통계 정보 반환."""
        return {
            "session_id": self.session_id,
            "running": self.is_running,
            "healthy": self._healthy,
            "frame": _to_int(self._progress.get("frame")),
            "out_time_us": _to_int(self._progress.get("out_time_us")),
            "bitrate": self._progress.get("bitrate"),
            "speed": self._progress.get("speed"),
            "returncode": self.returncode,
        }


class FFmpegRelayBackend:
    """
    FFmpeg 전송 백엔드.

    start()마다 새 FFmpegRelaySession을 만들어 실행합니다.

    Example:
        >>> backend = FFmpegRelayBackend(loglevel="warning")
        >>> backend.check_available()
        >>> session = backend.start("rtsp://localhost:8554/cam1", "srt://127.0.0.1:8890")
    """

    def __init__(
        self,
        binary: str = "ffmpeg",
        loglevel: str = "error",
        input_args: Sequence[str] = (),
        output_args: Sequence[str] = (),
        loop_input: bool = False,
        rtsp_latency_ms: int = 100,
        stop_timeout: float = 5.0,
        stderr_tail: int = 20,
        popen: PopenFactory = subprocess.Popen,
        runner: Callable[..., Any] = subprocess.run,
    ):
        self.binary = binary
        self.loglevel = loglevel
        self.input_args = list(input_args)
        self.output_args = list(output_args)
        self.loop_input = loop_input
        self.rtsp_latency_ms = rtsp_latency_ms
        self.stop_timeout = stop_timeout
        self.stderr_tail = stderr_tail
        self._popen = popen
        self._runner = runner
        self._ids = itertools.count(1)

    @classmethod
    def from_config(cls, config: Any, **kwargs: Any) -> FFmpegRelayBackend:
        """FFmpegConfig 스키마로 백엔드를 생성합니다."""
        return cls(
            binary=config.binary,
            loglevel=config.loglevel,
            input_args=config.input_args,
            output_args=config.output_args,
            loop_input=config.loop_input,
            rtsp_latency_ms=config.rtsp_latency_ms,
            stop_timeout=config.stop_timeout,
            stderr_tail=config.stderr_tail,
            **kwargs,
        )

    def check_available(self) -> str:
        """
        ffmpeg 실행 가능 여부를 확인합니다.

        Returns:
            ffmpeg 버전 문자열 (첫 줄)

        Raises:
            EngineUnavailableError: 실행 파일이 없거나 실행에 실패함
        """
        try:
            result = self._runner(
                [self.binary, "-hide_banner", "-version"],
                capture_output=True,
                text=True,
                timeout=10.0,
                check=True,
            )
        except FileNotFoundError as e:
            raise EngineUnavailableError(
                f"ffmpeg 실행 파일을 찾을 수 없습니다: {self.binary}",
                engine=self.binary,
            ) from e
        except (subprocess.SubprocessError, OSError) as e:
            raise EngineUnavailableError(
                f"ffmpeg 실행 확인 실패: {e}",
                engine=self.binary,
            ) from e

        version = (result.stdout or "").strip().splitlines()
        version_line = version[0] if version else "unknown"
        _logger.info("FFmpeg 확인 완료", binary=self.binary, version=version_line)
        return version_line

    def build_command(self, source: Endpoint, destination: Endpoint) -> list[str]:
        return build_relay_command(
            source,
            destination,
            binary=self.binary,
            loglevel=self.loglevel,
            input_args=self.input_args,
            output_args=self.output_args,
            loop_input=self.loop_input,
            rtsp_latency_ms=self.rtsp_latency_ms,
        )

    def start(self, source: str, destination: str) -> FFmpegRelaySession:
        """
        새 릴레이 세션을 시작합니다.

        Raises:
            SessionConfigError: 엔드포인트 형식 오류
            SessionStartError: 프로세스 시작 실패
            EngineUnavailableError: ffmpeg 실행 파일 없음
        """
        src = parse_endpoint(source, "source")
        dst = parse_endpoint(destination, "destination")

        session_id = f"relay-{next(self._ids)}"
        session = FFmpegRelaySession(
            session_id=session_id,
            command=self.build_command(src, dst),
            popen=self._popen,
            stop_timeout=self.stop_timeout,
            stderr_tail=self.stderr_tail,
        )
        _logger.info(
            "FFmpeg 릴레이 세션 시작",
            session_id=session_id,
            source=src.masked,
            destination=dst.masked,
        )
        session.start()
        return session


def _is_flowing(key: str, value: str) -> bool:
    """progress 항목이 실제 미디어 흐름을 나타내는지 여부"""
    if key not in ("frame", "out_time_us", "total_size"):
        return False
    number = _to_int(value)
    return number is not None and number > 0


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        # "N/A" 등
        return None

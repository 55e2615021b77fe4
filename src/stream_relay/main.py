"""
stream-relay 진입점 (Composition Root)

설정 로드 → 로깅 설정 → 시그널 연결 → ffmpeg 확인 → 슈퍼바이저 실행 순서로
컴포넌트를 조립하고, 종료 원인을 프로세스 종료 코드로 변환합니다.

종료 코드:
    0: 종료 요청 (SIGINT/SIGTERM)
    1: 최대 재시도 횟수 도달
    2: 설정 오류
    3: 미디어 엔진(ffmpeg) 사용 불가
"""

from __future__ import annotations

import argparse
import signal
import sys
from typing import Any, Sequence

from stream_relay import __version__
from stream_relay.application.supervisor import (
    InterruptibleWaiter,
    SessionSupervisor,
    ShutdownToken,
    policy_from_config,
)
from stream_relay.common.errors import ConfigError, EngineUnavailableError
from stream_relay.common.logging import configure_logging, get_logger
from stream_relay.domain.interfaces.transport import TransportBackend
from stream_relay.domain.models.session import (
    EXIT_CODE_FATAL_CONFIG_ERROR,
    format_max_attempts,
    mask_url,
)
from stream_relay.infrastructure.ffmpeg import FFmpegRelayBackend
from stream_relay.interface.config.loader import ConfigLoader
from stream_relay.interface.config.schema import RelayConfig

logger = get_logger(__name__, component="main")

EXIT_CODE_ENGINE_UNAVAILABLE = 3


def build_parser() -> argparse.ArgumentParser:
    """CLI 인자 파서를 생성합니다."""
    parser = argparse.ArgumentParser(
        prog="stream-relay",
        description="RTSP 등 소스 스트림을 SRT 등 목적지로 재인코딩 없이 중계하고, "
        "끊기면 자동으로 재연결합니다.",
    )
    parser.add_argument("-s", "--source", help="소스 URL 또는 파일 (기본: rtsp://localhost:8554/cam1)")
    parser.add_argument(
        "-d", "--destination",
        help="목적지 URL (기본: srt://127.0.0.1:8890?streamid=publish:cam1)",
    )
    parser.add_argument("-r", "--reconnect-delay", type=float, help="재연결 대기 시간 (초, 기본 5)")
    parser.add_argument("-m", "--max-retries", type=int, help="최대 연속 실패 횟수 (0 = 무제한)")
    parser.add_argument("-c", "--config", help="JSON 설정 파일 경로")
    parser.add_argument("--backoff", choices=["fixed", "exponential"], help="대기 시간 전략")
    parser.add_argument(
        "--loop-input",
        action="store_true",
        default=None,
        help="파일 소스를 무한 반복 (테스트 소스)",
    )
    parser.add_argument("--log-level", help="로그 레벨 (DEBUG, INFO, ...)")
    parser.add_argument("--log-format", choices=["console", "json"], help="로그 출력 형식")
    parser.add_argument("--status-port", type=int, help="상태 API 포트 (0 = 비활성화)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """파싱된 CLI 인자를 설정 덮어쓰기 딕셔너리로 변환합니다."""
    return {
        "source": args.source,
        "destination": args.destination,
        "reconnect_delay": args.reconnect_delay,
        "max_retries": args.max_retries,
        "backoff": args.backoff,
        "ffmpeg": {"loop_input": args.loop_input},
        "observability": {
            "log_level": args.log_level,
            "log_format": args.log_format,
            "status_port": args.status_port,
        },
    }


def setup_signal_handlers(token: ShutdownToken) -> None:
    """
    SIGINT/SIGTERM을 종료 토큰에 연결합니다.

    핸들러는 토큰만 설정합니다. 로그는 슈퍼바이저가 남깁니다.
    """
    def signal_handler(signum, frame):
        token.request(signal.Signals(signum).name)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def run_relay(
    config: RelayConfig,
    backend: TransportBackend,
    shutdown: ShutdownToken,
    loader: ConfigLoader | None = None,
) -> int:
    """
    슈퍼바이저를 구성해 실행하고 종료 코드를 반환합니다.

    Args:
        config: 검증된 설정
        backend: 전송 백엔드
        shutdown: 종료 토큰
        loader: 설정 변환기 (None이면 기본 로더)

    Returns:
        프로세스 종료 코드
    """
    loader = loader or ConfigLoader()
    supervisor_config = loader.to_supervisor_config(config)

    logger.info(
        "stream relay 시작",
        source=mask_url(config.source),
        destination=mask_url(config.destination),
        reconnect_delay=config.reconnect_delay,
        max_retries=format_max_attempts(config.max_retries),
        backoff=config.backoff,
    )

    supervisor = SessionSupervisor(
        config=supervisor_config,
        backend=backend,
        shutdown=shutdown,
        policy=policy_from_config(config),
        waiter=InterruptibleWaiter(quantum=config.poll_interval),
        poll_interval=config.poll_interval,
    )

    status_server = None
    if config.observability.status_port > 0:
        # FastAPI/uvicorn은 상태 API를 켤 때만 로드
        from stream_relay.interface.api.app import create_app
        from stream_relay.interface.api.server import StatusServer

        status_server = StatusServer(
            create_app(supervisor),
            host=config.observability.status_host,
            port=config.observability.status_port,
        )
        status_server.start()

    try:
        outcome = supervisor.run()
    except EngineUnavailableError as e:
        logger.critical(f"미디어 엔진 사용 불가: {e.message}", engine=e.engine)
        return EXIT_CODE_ENGINE_UNAVAILABLE
    finally:
        if status_server is not None:
            status_server.stop()

    logger.info(
        "stream relay 종료",
        reason=outcome.reason.value,
        exit_code=outcome.exit_code,
        total_attempts=outcome.total_attempts,
    )
    return outcome.exit_code


def main(argv: Sequence[str] | None = None) -> int:
    """메인 진입점."""
    args = build_parser().parse_args(argv)
    loader = ConfigLoader()

    try:
        config = loader.load(path=args.config, overrides=cli_overrides(args))
    except ConfigError as e:
        logger.error(f"설정 오류: {e.message}", code=e.code.value, details=e.details)
        return EXIT_CODE_FATAL_CONFIG_ERROR

    observability = config.observability
    configure_logging(
        level=observability.log_level,
        json_output=observability.log_format == "json",
        log_file=observability.log_file,
    )

    shutdown = ShutdownToken()
    setup_signal_handlers(shutdown)

    backend = FFmpegRelayBackend.from_config(config.ffmpeg)
    try:
        backend.check_available()
    except EngineUnavailableError as e:
        logger.critical(f"미디어 엔진 사용 불가: {e.message}", engine=e.engine)
        return EXIT_CODE_ENGINE_UNAVAILABLE

    return run_relay(config, backend, shutdown, loader=loader)


if __name__ == "__main__":
    sys.exit(main())

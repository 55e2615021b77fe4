"""
구조화 로깅 모듈

stream-relay 전체에서 사용하는 로깅 설정과 유틸리티를 제공합니다.
loguru 기반으로 구조화된 로깅을 지원합니다.

주요 기능:
- JSON 형식 출력 (운영 환경)
- 컬러 콘솔 출력 (개발 환경)
- 컨텍스트 바인딩 (component, session_id, trace_id)
- 슈퍼바이저 실행 단위 trace_id
"""

import sys
import os
import uuid
from contextvars import ContextVar
from typing import Any
from functools import lru_cache

import orjson
from loguru import logger


# 컨텍스트 변수: 슈퍼바이저 실행 단위 trace_id, 현재 전송 세션 ID
_trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
_session_id_var: ContextVar[str | None] = ContextVar("session_id", default=None)

_CONTEXT_KEYS = ("trace_id", "session_id", "component")


def set_trace_id(trace_id: str | None) -> None:
    """trace_id를 현재 컨텍스트에 설정합니다. None이면 해제합니다."""
    _trace_id_var.set(trace_id)


def generate_trace_id() -> str:
    """새로운 trace_id를 생성합니다."""
    return uuid.uuid4().hex[:12]


def set_session_context(session_id: str | None) -> None:
    """세션 ID를 현재 컨텍스트에 설정합니다. None이면 해제합니다."""
    _session_id_var.set(session_id)


def _get_context_extra() -> dict[str, Any]:
    """현재 컨텍스트의 추가 정보를 반환합니다."""
    extra: dict[str, Any] = {}

    trace_id = _trace_id_var.get()
    if trace_id:
        extra["trace_id"] = trace_id

    session_id = _session_id_var.get()
    if session_id:
        extra["session_id"] = session_id

    return extra


def _json_default(value: Any) -> Any:
    """orjson이 직렬화하지 못하는 값(Enum 등)을 문자열로 변환합니다."""
    if hasattr(value, "value"):
        return value.value
    return str(value)


def _json_formatter(record: dict[str, Any]) -> str:
    """
    JSON 형식의 로그 포맷터

    운영 환경에서 로그 집계 시스템(ELK, Loki 등)과 호환됩니다.
    loguru가 반환값을 다시 포맷팅하므로 직렬화 결과는 extra에 넣고 참조만 반환합니다.
    """
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["extra"].get("name", record["name"]),
    }

    # 컨텍스트 정보 추가
    extra = {k: v for k, v in record["extra"].items() if k not in ("name", "_json")}
    for key in _CONTEXT_KEYS:
        if key in extra:
            log_entry[key] = extra.pop(key)

    # 추가 extra 필드
    log_entry.update(extra)

    # 예외 정보 추가
    if record["exception"]:
        exc_type, exc_value, _ = record["exception"]
        log_entry["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "value": str(exc_value) if exc_value else None,
        }

    record["extra"]["_json"] = orjson.dumps(log_entry, default=_json_default).decode("utf-8")
    return "{extra[_json]}\n"


def _console_formatter(record: dict[str, Any]) -> str:
    """
    컬러 콘솔 형식의 로그 포맷터

    개발 환경에서 가독성을 높입니다.
    """
    # 기본 포맷
    fmt = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    fmt += "<level>{level: <8}</level> | "
    fmt += "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "

    # 컨텍스트 정보
    extra_parts = []
    if record.get("extra"):
        if "trace_id" in record["extra"]:
            extra_parts.append("<yellow>trace={extra[trace_id]}</yellow>")
        if "session_id" in record["extra"]:
            extra_parts.append("<blue>session={extra[session_id]}</blue>")
        if "component" in record["extra"]:
            extra_parts.append("<magenta>component={extra[component]}</magenta>")

    if extra_parts:
        fmt += " ".join(extra_parts) + " | "

    fmt += "<level>{message}</level>\n"

    if record["exception"]:
        fmt += "{exception}"

    return fmt


# 로그 레벨 매핑
_LOG_LEVELS = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "WARNING": "WARNING",
    "WARN": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}


def configure_logging(
    level: str = "INFO",
    json_output: bool | None = None,
    log_file: str | None = None,
) -> None:
    """
    로깅 설정을 초기화합니다.

    Args:
        level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON 형식 출력 여부 (None이면 환경변수로 결정)
        log_file: 로그 파일 경로 (None이면 stdout만 출력)

    환경변수:
        LOG_LEVEL: 로그 레벨 (기본: INFO)
        LOG_FORMAT: 로그 포맷 (json 또는 console, 기본: console)
        LOG_FILE: 로그 파일 경로
    """
    # 환경변수에서 설정 읽기
    env_level = os.getenv("LOG_LEVEL", level).upper()
    log_level = _LOG_LEVELS.get(env_level, "INFO")

    if json_output is None:
        json_output = os.getenv("LOG_FORMAT", "console").lower() == "json"

    if log_file is None:
        log_file = os.getenv("LOG_FILE")

    # 기존 핸들러 제거
    logger.remove()

    # 콘솔 출력 설정
    if json_output:
        logger.add(
            sys.stdout,
            format=_json_formatter,
            level=log_level,
            serialize=False,
        )
    else:
        logger.add(
            sys.stdout,
            format=_console_formatter,
            level=log_level,
            colorize=True,
        )

    # 파일 출력 설정 (선택)
    if log_file:
        logger.add(
            log_file,
            format=_json_formatter,
            level=log_level,
            rotation="100 MB",
            retention="7 days",
            compression="gz",
        )

    logger.debug(
        f"로깅 설정 완료: level={log_level}, json={json_output}, file={log_file}"
    )


class BoundLogger:
    """
    컨텍스트가 바인딩된 로거

    특정 컴포넌트나 세션에서 사용하기 위해 컨텍스트 정보가 자동으로 포함됩니다.
    """

    def __init__(
        self,
        name: str,
        component: str | None = None,
        session_id: str | None = None,
    ) -> None:
        self._name = name
        self._component = component
        self._session_id = session_id
        self._logger = logger.bind(name=name)

    def _get_extra(self, **kwargs: Any) -> dict[str, Any]:
        """로그에 포함할 extra 정보를 구성합니다."""
        extra = _get_context_extra()

        # 인스턴스 레벨 컨텍스트
        if self._component and "component" not in extra:
            extra["component"] = self._component
        if self._session_id and "session_id" not in extra:
            extra["session_id"] = self._session_id

        # 호출 시 전달된 추가 정보
        extra.update(kwargs)

        return extra

    def bind(self, **kwargs: Any) -> "BoundLogger":
        """추가 컨텍스트를 바인딩한 새 로거를 반환합니다."""
        return BoundLogger(
            name=self._name,
            component=kwargs.get("component", self._component),
            session_id=kwargs.get("session_id", self._session_id),
        )

    def debug(self, message: str, **kwargs: Any) -> None:
        """DEBUG 레벨 로그를 기록합니다."""
        self._logger.bind(**self._get_extra(**kwargs)).opt(depth=1).debug(message)

    def info(self, message: str, **kwargs: Any) -> None:
        """INFO 레벨 로그를 기록합니다."""
        self._logger.bind(**self._get_extra(**kwargs)).opt(depth=1).info(message)

    def warning(self, message: str, **kwargs: Any) -> None:
        """WARNING 레벨 로그를 기록합니다."""
        self._logger.bind(**self._get_extra(**kwargs)).opt(depth=1).warning(message)

    def error(self, message: str, **kwargs: Any) -> None:
        """ERROR 레벨 로그를 기록합니다."""
        self._logger.bind(**self._get_extra(**kwargs)).opt(depth=1).error(message)

    def critical(self, message: str, **kwargs: Any) -> None:
        """CRITICAL 레벨 로그를 기록합니다."""
        self._logger.bind(**self._get_extra(**kwargs)).opt(depth=1).critical(message)

    def exception(self, message: str, **kwargs: Any) -> None:
        """예외 정보와 함께 ERROR 레벨 로그를 기록합니다."""
        self._logger.bind(**self._get_extra(**kwargs)).opt(depth=1).exception(message)


@lru_cache(maxsize=128)
def get_logger(
    name: str,
    component: str | None = None,
    session_id: str | None = None,
) -> BoundLogger:
    """
    로거 인스턴스를 반환합니다.

    동일한 인자로 호출하면 캐시된 인스턴스를 반환합니다.

    Args:
        name: 로거 이름 (보통 __name__ 사용)
        component: 컴포넌트 이름 (supervisor, ffmpeg 등)
        session_id: 전송 세션 ID

    Returns:
        BoundLogger 인스턴스

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("릴레이 시작")

        >>> session_logger = get_logger(__name__, session_id="a1b2c3d4")
        >>> session_logger.info("ffmpeg 프로세스 시작")
    """
    return BoundLogger(name=name, component=component, session_id=session_id)


# 기본 로깅 설정 (모듈 임포트 시 실행)
# 애플리케이션에서 configure_logging()을 호출하여 재설정 가능
if not os.getenv("RELAY_SKIP_DEFAULT_LOGGING"):
    configure_logging()

"""
에러 처리 모듈

stream-relay 전체에서 사용하는 예외 클래스와 에러 코드를 정의합니다.
모든 예외는 RelayError를 상속받아 일관된 에러 처리가 가능합니다.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """
    에러 코드 열거형

    상태 API 응답에서 HTTP 상태 코드와 매핑되어 사용됩니다.
    """

    # 설정 관련 (4xx)
    CONFIG_INVALID = "CONFIG_INVALID"           # 설정 검증 실패
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"       # 설정 파일 없음
    CONFIG_PARSE_ERROR = "CONFIG_PARSE_ERROR"   # 설정 파싱 오류
    ENDPOINT_INVALID = "ENDPOINT_INVALID"       # 소스/목적지 주소 형식 오류

    # 세션 관련 (5xx)
    SESSION_CONNECT_FAILED = "SESSION_CONNECT_FAILED"   # 세션 시작(연결) 실패
    SESSION_STREAM_ERROR = "SESSION_STREAM_ERROR"       # 스트리밍 중 오류
    SESSION_NOT_RUNNING = "SESSION_NOT_RUNNING"         # 세션이 실행 중이 아님

    # 미디어 엔진 관련 (5xx)
    ENGINE_UNAVAILABLE = "ENGINE_UNAVAILABLE"   # 미디어 엔진(ffmpeg) 사용 불가

    # 일반 (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"           # 내부 오류
    UNKNOWN_ERROR = "UNKNOWN_ERROR"             # 알 수 없는 오류


# 에러 코드 → HTTP 상태 코드 매핑
_ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # 4xx Client Errors
    ErrorCode.CONFIG_NOT_FOUND: 404,
    ErrorCode.CONFIG_INVALID: 400,
    ErrorCode.CONFIG_PARSE_ERROR: 400,
    ErrorCode.ENDPOINT_INVALID: 400,

    # 5xx Server Errors
    ErrorCode.SESSION_CONNECT_FAILED: 502,
    ErrorCode.SESSION_STREAM_ERROR: 502,
    ErrorCode.SESSION_NOT_RUNNING: 503,
    ErrorCode.ENGINE_UNAVAILABLE: 503,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.UNKNOWN_ERROR: 500,
}


def get_http_status(error_code: ErrorCode) -> int:
    """
    에러 코드에 해당하는 HTTP 상태 코드를 반환합니다.

    Args:
        error_code: 에러 코드

    Returns:
        HTTP 상태 코드 (기본값: 500)
    """
    return _ERROR_CODE_TO_HTTP_STATUS.get(error_code, 500)


class RelayError(Exception):
    """
    stream-relay 기본 예외 클래스

    모든 커스텀 예외의 부모 클래스입니다.
    에러 코드, 메시지, 상세 정보를 포함합니다.

    Attributes:
        code: 에러 코드 (ErrorCode)
        message: 사용자에게 표시할 메시지
        details: 추가 상세 정보 (디버깅용)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def http_status(self) -> int:
        """HTTP 상태 코드 반환"""
        return get_http_status(self.code)

    def to_dict(self) -> dict[str, Any]:
        """
        예외 정보를 딕셔너리로 변환합니다.

        상태 API 응답에서 사용됩니다.
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


class ConfigError(RelayError):
    """
    설정 관련 예외

    설정 파일의 로드, 파싱, 검증 중 발생하는 오류를 나타냅니다.

    Attributes:
        config_path: 오류가 발생한 설정 파일 경로 (선택)
        field_name: 오류가 발생한 필드 이름 (선택)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        config_path: str | None = None,
        field_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.config_path = config_path
        self.field_name = field_name
        _details: dict[str, Any] = {}
        if config_path:
            _details["config_path"] = config_path
        if field_name:
            _details["field_name"] = field_name
        if details:
            _details.update(details)
        super().__init__(code, message, _details)


class SessionError(RelayError):
    """
    전송 세션 관련 예외

    소스 → 목적지 전송 세션의 시작, 실행 중 발생하는 오류를 나타냅니다.

    Attributes:
        session_id: 오류가 발생한 세션 ID (선택)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        session_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.session_id = session_id
        _details: dict[str, Any] = {}
        if session_id:
            _details["session_id"] = session_id
        if details:
            _details.update(details)
        super().__init__(code, message, _details)


class SessionConfigError(SessionError):
    """
    세션 설정 오류 (치명적)

    엔드포인트 주소 형식 오류처럼 재시도해도 해결되지 않는 오류입니다.
    슈퍼바이저는 재시도 없이 즉시 종료합니다.

    Attributes:
        endpoint: 문제가 된 엔드포인트 (마스킹된 값)
    """

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.endpoint = endpoint
        _details: dict[str, Any] = {}
        if endpoint is not None:
            _details["endpoint"] = endpoint
        if details:
            _details.update(details)
        super().__init__(ErrorCode.ENDPOINT_INVALID, message, details=_details)


class SessionStartError(SessionError):
    """세션 시작(연결) 실패. 재시도 정책에 따라 재시도됩니다."""

    def __init__(
        self,
        message: str,
        session_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(ErrorCode.SESSION_CONNECT_FAILED, message, session_id, details)


class EngineUnavailableError(RelayError):
    """
    미디어 엔진 사용 불가

    ffmpeg 실행 파일을 찾을 수 없는 등 런타임 자체를 확보할 수 없는 경우입니다.
    슈퍼바이저 밖으로 전파됩니다.

    Attributes:
        engine: 엔진 이름 또는 실행 파일 경로
    """

    def __init__(
        self,
        message: str,
        engine: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.engine = engine
        _details: dict[str, Any] = {"engine": engine}
        if details:
            _details.update(details)
        super().__init__(ErrorCode.ENGINE_UNAVAILABLE, message, _details)

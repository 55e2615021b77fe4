"""
stream-relay - 장애 복구형 미디어 릴레이

스트리밍 소스(RTSP 등)에서 받아 다른 목적지(SRT 등)로 재송출하는 전송 세션을
감독하며, 네트워크 단절이나 업스트림 종료 시 운영자 개입 없이 재연결합니다.
"""

__version__ = "0.1.0"
__author__ = "stream-relay Team"

from stream_relay.common.errors import (
    RelayError,
    ConfigError,
    SessionError,
    ErrorCode,
)
from stream_relay.common.logging import get_logger

__all__ = [
    "__version__",
    "RelayError",
    "ConfigError",
    "SessionError",
    "ErrorCode",
    "get_logger",
]

"""
Infrastructure 계층

외부 미디어 엔진(ffmpeg)과의 연동을 담당합니다.
"""

from stream_relay.infrastructure.ffmpeg import (
    FFmpegRelayBackend,
    FFmpegRelaySession,
)

__all__ = [
    "FFmpegRelayBackend",
    "FFmpegRelaySession",
]

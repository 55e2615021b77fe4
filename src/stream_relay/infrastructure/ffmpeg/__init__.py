"""FFmpeg subprocess 기반 전송 백엔드."""

from stream_relay.infrastructure.ffmpeg.command import (
    Endpoint,
    build_relay_command,
    parse_endpoint,
)
from stream_relay.infrastructure.ffmpeg.session import (
    FFmpegRelayBackend,
    FFmpegRelaySession,
)

__all__ = [
    "Endpoint",
    "build_relay_command",
    "parse_endpoint",
    "FFmpegRelayBackend",
    "FFmpegRelaySession",
]

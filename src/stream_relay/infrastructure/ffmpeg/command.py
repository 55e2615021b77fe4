# -*- coding: utf-8 -*-
"""
FFmpeg 릴레이 명령 구성.

엔드포인트(URL 또는 로컬 파일)를 분류하고, 재인코딩 없이 스트림을
복사(-c copy)하는 ffmpeg 명령줄을 만듭니다.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Sequence
from urllib.parse import urlsplit

from stream_relay.common.errors import SessionConfigError
from stream_relay.domain.models.session import mask_url


# 지원 URL 스킴 → 출력 시 사용할 muxer (None이면 ffmpeg 추론)
SCHEME_MUXERS: dict[str, str | None] = {
    "rtsp": "rtsp",
    "rtsps": "rtsp",
    "srt": "mpegts",
    "udp": "mpegts",
    "tcp": "mpegts",
    "rtmp": "flv",
    "rtmps": "flv",
    "http": None,
    "https": None,
}

FILE_SCHEME = "file"

# 입력으로 받을 수 있으나 출력으로는 쓸 수 없는 스킴
INPUT_ONLY_SCHEMES = frozenset({"http", "https"})


@dataclass(frozen=True)
class Endpoint:
    """
    분류된 엔드포인트.

    Attributes:
        raw: 원본 문자열 (ffmpeg에 그대로 전달)
        scheme: URL 스킴 또는 "file"
        role: "source" 또는 "destination"
    """

    raw: str
    scheme: str
    role: str

    @property
    def is_file(self) -> bool:
        return self.scheme == FILE_SCHEME

    @property
    def is_rtsp(self) -> bool:
        return self.scheme in ("rtsp", "rtsps")

    @property
    def masked(self) -> str:
        """로그 출력용 (비밀번호 마스킹)"""
        return mask_url(self.raw)

    @property
    def muxer(self) -> str | None:
        """출력 muxer 이름. 파일/HTTP는 None (확장자로 추론)."""
        if self.is_file:
            return None
        return SCHEME_MUXERS.get(self.scheme)

    @property
    def target(self) -> str:
        """ffmpeg에 넘길 경로. file:// URL은 로컬 경로로 변환합니다."""
        if self.is_file and self.raw.startswith("file://"):
            return urlsplit(self.raw).path
        return self.raw


def parse_endpoint(value: str, role: str = "source") -> Endpoint:
    """
    엔드포인트 문자열을 분류합니다.

    Args:
        value: URL 또는 로컬 파일 경로
        role: "source" 또는 "destination" (오류 메시지용)

    Returns:
        Endpoint

    Raises:
        SessionConfigError: 비어 있거나, 지원하지 않는 스킴이거나, 호스트가 없는 경우
    """
    if value is None or not value.strip():
        raise SessionConfigError(f"{role} 엔드포인트가 비어 있습니다", endpoint=value)

    if value != value.strip():
        raise SessionConfigError(
            f"{role} 엔드포인트 앞뒤에 공백이 있습니다",
            endpoint=mask_url(value),
        )

    if "://" not in value:
        # 스킴 없는 문자열은 로컬 파일 경로
        if not PurePath(value).name:
            raise SessionConfigError(
                f"{role} 파일 경로가 올바르지 않습니다", endpoint=value
            )
        return Endpoint(raw=value, scheme=FILE_SCHEME, role=role)

    try:
        parts = urlsplit(value)
    except ValueError as e:
        raise SessionConfigError(
            f"{role} URL을 해석할 수 없습니다: {e}", endpoint=mask_url(value)
        ) from e

    scheme = parts.scheme.lower()

    if scheme == FILE_SCHEME:
        if not parts.path:
            raise SessionConfigError(f"{role} 파일 경로가 비어 있습니다", endpoint=value)
        return Endpoint(raw=value, scheme=FILE_SCHEME, role=role)

    if scheme not in SCHEME_MUXERS:
        raise SessionConfigError(
            f"지원하지 않는 {role} 스킴: {scheme or '(없음)'}",
            endpoint=mask_url(value),
            details={"supported": sorted(SCHEME_MUXERS) + [FILE_SCHEME]},
        )

    if not parts.netloc:
        raise SessionConfigError(
            f"{role} URL에 호스트가 없습니다", endpoint=mask_url(value)
        )

    if role == "destination" and scheme in INPUT_ONLY_SCHEMES:
        raise SessionConfigError(
            f"{scheme} 스킴은 목적지로 사용할 수 없습니다",
            endpoint=mask_url(value),
        )

    return Endpoint(raw=value, scheme=scheme, role=role)


def build_relay_command(
    source: Endpoint,
    destination: Endpoint,
    binary: str = "ffmpeg",
    loglevel: str = "error",
    input_args: Sequence[str] = (),
    output_args: Sequence[str] = (),
    loop_input: bool = False,
    rtsp_latency_ms: int = 100,
) -> list[str]:
    """
    ffmpeg 릴레이 명령 구성.

    진행 상황은 -progress pipe:1 로 stdout에 key=value 형식으로 출력되며,
    세션이 이를 읽어 송출 시작(Healthy)을 판단합니다.
    종료 시 stdin으로 "q"를 보내므로 -nostdin은 사용하지 않습니다.

    Args:
        source: 소스 엔드포인트
        destination: 목적지 엔드포인트
        binary: ffmpeg 실행 파일
        loglevel: ffmpeg 로그 레벨 (stderr)
        input_args: -i 앞에 추가할 인자
        output_args: 출력 muxer 앞에 추가할 인자
        loop_input: 파일 소스를 무한 반복할지 여부
        rtsp_latency_ms: RTSP 소스 지터 버퍼 (밀리초)

    Returns:
        명령 인자 리스트
    """
    cmd = [
        binary,
        "-hide_banner",
        "-loglevel", loglevel,
        "-progress", "pipe:1",
        "-nostats",
    ]

    if source.is_rtsp:
        cmd += [
            "-rtsp_transport", "tcp",
            "-max_delay", str(rtsp_latency_ms * 1000),  # 마이크로초
        ]
    elif source.is_file:
        cmd.append("-re")  # 실시간 속도로 읽기
        if loop_input:
            cmd += ["-stream_loop", "-1"]

    cmd += list(input_args)
    cmd += ["-i", source.target]

    cmd += ["-c", "copy"]
    cmd += list(output_args)

    if destination.is_file:
        cmd.append("-y")  # 덮어쓰기
    elif destination.muxer:
        cmd += ["-f", destination.muxer]
        if destination.muxer == "rtsp":
            cmd += ["-rtsp_transport", "tcp"]

    cmd.append(destination.target)
    return cmd


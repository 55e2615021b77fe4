"""
설정 스키마 (Pydantic v2)

relay 설정 파일(JSON)을 검증하기 위한 스키마를 정의합니다.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Pydantic 모델은 Interface Layer에서만 외부 라이브러리에 의존합니다.

DEFAULT_SOURCE = "rtsp://localhost:8554/cam1"
DEFAULT_DESTINATION = "srt://127.0.0.1:8890?streamid=publish:cam1"


class FFmpegConfig(BaseModel):
    """ffmpeg 실행 설정."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    binary: str = Field("ffmpeg", description="ffmpeg 실행 파일 경로")
    loglevel: Literal["quiet", "panic", "fatal", "error", "warning", "info", "verbose", "debug"] = Field(
        "error", description="ffmpeg 로그 레벨"
    )
    input_args: list[str] = Field(default_factory=list, description="-i 앞에 추가할 인자")
    output_args: list[str] = Field(default_factory=list, description="출력 앞에 추가할 인자")
    loop_input: bool = Field(False, description="파일 소스 무한 반복 (테스트 소스)")
    rtsp_latency_ms: int = Field(100, description="RTSP 소스 지터 버퍼 (밀리초)")
    stop_timeout: float = Field(5.0, allow_inf_nan=False, description="정상 종료 대기 (초)")
    stderr_tail: int = Field(20, description="보관할 stderr 줄 수")

    @field_validator("binary")
    @classmethod
    def validate_binary(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("ffmpeg binary는 비워둘 수 없습니다")
        return value

    @model_validator(mode="after")
    def validate_values(self) -> "FFmpegConfig":
        if self.rtsp_latency_ms < 0:
            raise ValueError("rtsp_latency_ms는 0 이상이어야 합니다")
        if self.stop_timeout <= 0:
            raise ValueError("stop_timeout은 0보다 커야 합니다")
        if self.stderr_tail < 1:
            raise ValueError("stderr_tail은 1 이상이어야 합니다")
        return self


class ObservabilityConfig(BaseModel):
    """관측 설정."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    log_level: str = Field("INFO", description="로그 레벨")
    log_format: Literal["console", "json"] = Field("console", description="로그 출력 형식")
    log_file: str | None = Field(None, description="로그 파일 경로 (None이면 파일 출력 안 함)")
    status_host: str = Field("127.0.0.1", description="상태 API 바인딩 호스트")
    status_port: int = Field(0, description="상태 API 포트 (0 = 비활성화)")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"알 수 없는 로그 레벨: {value}")
        return level

    @field_validator("status_port")
    @classmethod
    def validate_port(cls, value: int) -> int:
        if not 0 <= value <= 65535:
            raise ValueError("status_port는 0~65535 범위여야 합니다")
        return value


class RelayConfig(BaseModel):
    """relay 전체 설정 스키마."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    source: str = Field(DEFAULT_SOURCE, description="소스 엔드포인트")
    destination: str = Field(DEFAULT_DESTINATION, description="목적지 엔드포인트")
    reconnect_delay: float = Field(5.0, allow_inf_nan=False, description="재연결 대기 (초)")
    max_retries: int = Field(0, description="최대 연속 실패 횟수 (0 = 무제한)")
    backoff: Literal["fixed", "exponential"] = Field("fixed", description="대기 시간 전략")
    max_reconnect_delay: float = Field(60.0, allow_inf_nan=False, description="지수 백오프 최대 대기 (초)")
    backoff_jitter: bool = Field(False, description="지수 백오프 지터 적용")
    poll_interval: float = Field(0.1, allow_inf_nan=False, description="세션 폴링/대기 단위 (초)")

    ffmpeg: FFmpegConfig = Field(default_factory=FFmpegConfig, description="ffmpeg 설정")
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="관측 설정",
    )

    @field_validator("source", "destination")
    @classmethod
    def not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("필수 필드는 비워둘 수 없습니다")
        return value

    @field_validator("reconnect_delay")
    @classmethod
    def validate_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("reconnect_delay는 0 이상이어야 합니다")
        return value

    @field_validator("max_retries")
    @classmethod
    def validate_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_retries는 0 이상이어야 합니다")
        return value

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, value: float) -> float:
        if not 0.0 < value <= 5.0:
            raise ValueError("poll_interval은 0보다 크고 5 이하여야 합니다")
        return value

    @model_validator(mode="after")
    def validate_backoff(self) -> "RelayConfig":
        if self.backoff == "exponential" and self.max_reconnect_delay < self.reconnect_delay:
            raise ValueError("max_reconnect_delay는 reconnect_delay 이상이어야 합니다")
        return self

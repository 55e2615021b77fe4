"""
라이프사이클 이벤트 모델

슈퍼바이저가 발행하는 구조화된 관측 이벤트를 정의합니다.
이벤트는 데이터일 뿐이며 슈퍼바이저의 제어 흐름에 영향을 주지 않습니다.
이 모듈은 외부 라이브러리에 의존하지 않습니다.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from stream_relay.domain.models.session import FailureCause, StopReason


class LifecycleEventType(str, Enum):
    """라이프사이클 이벤트 유형"""

    ATTEMPT_STARTED = "attempt_started"         # 세션 시작 시도
    ATTEMPT_SUCCEEDED = "attempt_succeeded"     # Healthy 도달
    ATTEMPT_FAILED = "attempt_failed"           # 시도 실패 (원인 포함)
    RETRY_SCHEDULED = "retry_scheduled"         # 재시도 예약 (대기 시간 포함)
    RETRIES_EXHAUSTED = "retries_exhausted"     # 최대 시도 도달
    SHUTDOWN_REQUESTED = "shutdown_requested"   # 종료 요청 감지
    SUPERVISOR_STOPPED = "supervisor_stopped"   # 슈퍼바이저 종료


@dataclass(frozen=True)
class LifecycleEvent:
    """
    라이프사이클 이벤트

    Attributes:
        type: 이벤트 유형
        attempt: 관련 시도 번호 (연속 실패 기준, 1부터 시작)
        max_attempts: 설정된 최대 시도 횟수 (0 = 무제한)
        cause: 실패 원인 (ATTEMPT_FAILED)
        delay: 재시도 대기 시간 (RETRY_SCHEDULED)
        reason: 종료 원인 (SUPERVISOR_STOPPED)
        detail: 상세 메시지
        timestamp: 발생 시각 (epoch 초)

    Example:
        >>> event = LifecycleEvent(
        ...     type=LifecycleEventType.ATTEMPT_FAILED,
        ...     attempt=1,
        ...     max_attempts=3,
        ...     cause=FailureCause.CONNECT_ERROR,
        ... )
        >>> event.to_dict()["cause"]
        'connect-error'
    """

    type: LifecycleEventType
    attempt: int | None = None
    max_attempts: int | None = None
    cause: FailureCause | None = None
    delay: float | None = None
    reason: StopReason | None = None
    detail: str | None = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환 (None 필드 제외)"""
        data: dict[str, Any] = {
            "type": self.type.value,
            "timestamp": self.timestamp,
        }
        if self.attempt is not None:
            data["attempt"] = self.attempt
        if self.max_attempts is not None:
            data["max_attempts"] = self.max_attempts
        if self.cause is not None:
            data["cause"] = self.cause.value
        if self.delay is not None:
            data["delay"] = self.delay
        if self.reason is not None:
            data["reason"] = self.reason.value
        if self.detail is not None:
            data["detail"] = self.detail
        return data

"""
Domain Layer

순수 비즈니스 규칙과 엔티티를 정의합니다.
외부 라이브러리에 의존하지 않으며, 표준 라이브러리만 사용합니다.

구성 요소:
- interfaces: 전송 세션 인터페이스 (Protocol)
- models: 데이터 모델 (SupervisorConfig, SessionEvent, LifecycleEvent)
"""

from stream_relay.domain.interfaces.transport import TransportBackend, TransportSession
from stream_relay.domain.models.lifecycle import LifecycleEvent, LifecycleEventType
from stream_relay.domain.models.session import (
    AttemptState,
    FailureCause,
    SessionEvent,
    SessionEventKind,
    StopReason,
    SupervisorConfig,
    SupervisorOutcome,
    SupervisorState,
)

__all__ = [
    # 인터페이스
    "TransportBackend",
    "TransportSession",
    # 라이프사이클 모델
    "LifecycleEvent",
    "LifecycleEventType",
    # 세션 모델
    "AttemptState",
    "FailureCause",
    "SessionEvent",
    "SessionEventKind",
    "StopReason",
    "SupervisorConfig",
    "SupervisorOutcome",
    "SupervisorState",
]

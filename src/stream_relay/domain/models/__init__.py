"""
데이터 모델 모듈

세션, 라이프사이클 이벤트 등 핵심 데이터 구조를 정의합니다.
"""

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
    mask_url,
)

__all__ = [
    # 라이프사이클
    "LifecycleEvent",
    "LifecycleEventType",
    # 세션
    "AttemptState",
    "FailureCause",
    "SessionEvent",
    "SessionEventKind",
    "StopReason",
    "SupervisorConfig",
    "SupervisorOutcome",
    "SupervisorState",
    "mask_url",
]

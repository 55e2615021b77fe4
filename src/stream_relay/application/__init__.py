"""
Application Layer

비즈니스 로직과 유스케이스를 구현합니다.
Domain Layer만 참조하며, Infrastructure와 Interface Layer에 의존하지 않습니다.

구성 요소:
- supervisor: 세션 슈퍼바이저, 재시도 정책, 인터럽트 가능 대기, 종료 토큰
"""

from stream_relay.application.supervisor.policy import ExponentialRetryPolicy, RetryPolicy
from stream_relay.application.supervisor.shutdown import ShutdownToken
from stream_relay.application.supervisor.supervisor import SessionSupervisor
from stream_relay.application.supervisor.waiter import InterruptibleWaiter

__all__ = [
    "ExponentialRetryPolicy",
    "RetryPolicy",
    "ShutdownToken",
    "SessionSupervisor",
    "InterruptibleWaiter",
]

"""
세션 감독 모듈

전송 세션의 재시도/백오프 상태 머신과 보조 구성 요소를 담당합니다.
"""

from stream_relay.application.supervisor.policy import (
    ExponentialRetryPolicy,
    RetryPolicy,
    calculate_exponential_backoff,
    may_attempt,
    policy_from_config,
)
from stream_relay.application.supervisor.shutdown import ShutdownToken
from stream_relay.application.supervisor.supervisor import SessionSupervisor
from stream_relay.application.supervisor.waiter import InterruptibleWaiter

__all__ = [
    "ExponentialRetryPolicy",
    "RetryPolicy",
    "calculate_exponential_backoff",
    "may_attempt",
    "policy_from_config",
    "ShutdownToken",
    "SessionSupervisor",
    "InterruptibleWaiter",
]

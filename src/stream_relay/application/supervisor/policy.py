"""
재시도 정책

시도 횟수, 최대 시도 횟수, 종료 요청 여부로 다음 시도 허용 여부를 결정하고
다음 시도까지의 대기 시간을 계산합니다. 부수 효과가 없는 순수 로직입니다.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from stream_relay.domain.models.session import StopReason

if TYPE_CHECKING:
    from stream_relay.interface.config.schema import RelayConfig


def may_attempt(attempt_count: int, max_attempts: int, shutdown: bool) -> bool:
    """
    다음 시도가 허용되는지 판단합니다.

    Args:
        attempt_count: 현재 연속 실패 횟수
        max_attempts: 최대 시도 횟수 (0 = 무제한)
        shutdown: 종료 요청 여부

    Returns:
        종료 요청이 없고, 무제한이거나 시도 횟수가 최대 미만이면 True
    """
    if shutdown:
        return False
    return max_attempts == 0 or attempt_count < max_attempts


def calculate_exponential_backoff(
    retry_count: int,
    base_delay: float,
    max_delay: float,
    jitter: bool = True,
    rng: Callable[[], float] = random.random,
) -> float:
    """
    지수 백오프 지연 시간을 계산합니다.

    Args:
        retry_count: 재시도 횟수 (0부터 시작)
        base_delay: 기본 지연 시간 (초)
        max_delay: 최대 지연 시간 (초)
        jitter: 지터 추가 여부 (충돌 방지)
        rng: [0, 1) 난수 함수 (테스트 주입용)

    Returns:
        계산된 지연 시간 (초)

    Example:
        >>> calculate_exponential_backoff(0, 1.0, 8.0, jitter=False)
        1.0
        >>> calculate_exponential_backoff(3, 1.0, 8.0, jitter=False)
        8.0
    """
    delay = base_delay * (2 ** max(0, retry_count))
    delay = min(delay, max_delay)

    if jitter:
        # 0.5 ~ 1.5 범위의 지터 적용
        jitter_factor = 0.5 + rng()
        delay *= jitter_factor

    return delay


@dataclass(frozen=True)
class RetryPolicy:
    """
    고정 지연 재시도 정책

    대기 시간은 시도 횟수와 무관하게 base_delay로 고정됩니다.
    지수/지터 백오프가 필요하면 next_delay()를 재정의합니다.

    Attributes:
        base_delay: 재연결 대기 시간 (초)
        max_attempts: 최대 시도 횟수 (0 = 무제한)
    """

    base_delay: float = 5.0
    max_attempts: int = 0

    def __post_init__(self) -> None:
        if not (math.isfinite(self.base_delay) and self.base_delay >= 0):
            raise ValueError(f"base_delay는 0 이상의 유한한 값이어야 합니다: {self.base_delay}")
        if self.max_attempts < 0:
            raise ValueError(f"max_attempts는 0 이상이어야 합니다: {self.max_attempts}")

    def may_attempt(self, attempt_count: int, shutdown: bool) -> bool:
        """다음 시도 허용 여부"""
        return may_attempt(attempt_count, self.max_attempts, shutdown)

    def denial_reason(self, attempt_count: int, shutdown: bool) -> StopReason | None:
        """
        시도가 거부된 원인을 반환합니다.

        종료 요청이 재시도 계산보다 항상 우선합니다.

        Returns:
            SHUTDOWN_REQUESTED, RETRIES_EXHAUSTED 또는 허용 시 None
        """
        if shutdown:
            return StopReason.SHUTDOWN_REQUESTED
        if not self.may_attempt(attempt_count, shutdown):
            return StopReason.RETRIES_EXHAUSTED
        return None

    def next_delay(self, attempt_count: int) -> float:
        """다음 시도까지의 대기 시간 (초)"""
        return self.base_delay


@dataclass(frozen=True)
class ExponentialRetryPolicy(RetryPolicy):
    """
    지수 백오프 재시도 정책

    attempt_count번째 실패 후 base_delay * 2^(attempt_count-1)초를 대기하며
    max_delay를 넘지 않습니다.

    Attributes:
        max_delay: 최대 대기 시간 (초)
        jitter: 0.5~1.5배 지터 적용 여부
    """

    max_delay: float = 60.0
    jitter: bool = False

    def __post_init__(self) -> None:
        super().__post_init__()
        if not (math.isfinite(self.max_delay) and self.max_delay >= self.base_delay):
            raise ValueError(
                f"max_delay({self.max_delay})는 base_delay({self.base_delay}) 이상이어야 합니다"
            )

    def next_delay(self, attempt_count: int) -> float:
        return calculate_exponential_backoff(
            retry_count=attempt_count - 1,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter=self.jitter,
        )


def policy_from_config(config: "RelayConfig") -> RetryPolicy:
    """설정에 맞는 재시도 정책을 생성합니다."""
    if config.backoff == "exponential":
        return ExponentialRetryPolicy(
            base_delay=config.reconnect_delay,
            max_attempts=config.max_retries,
            max_delay=config.max_reconnect_delay,
            jitter=config.backoff_jitter,
        )
    return RetryPolicy(base_delay=config.reconnect_delay, max_attempts=config.max_retries)

"""
인터럽트 가능 대기기

재시도 사이의 대기를 작은 폴링 단위(quantum)로 나누어 수행하며,
종료 토큰이 설정되면 즉시 깨어납니다.
"""

from __future__ import annotations

import time
from typing import Callable

from stream_relay.application.supervisor.shutdown import ShutdownToken
from stream_relay.common.logging import get_logger

logger = get_logger(__name__, component="waiter")


class InterruptibleWaiter:
    """
    인터럽트 가능 대기기

    최대 duration초 동안 대기하되, 매 quantum마다 종료 토큰을 확인합니다.
    종료 요청 후 추가 지연은 최대 한 quantum입니다.

    Attributes:
        quantum: 폴링 단위 (초, 기본 0.1)

    Example:
        >>> waiter = InterruptibleWaiter(quantum=0.1)
        >>> interrupted = waiter.wait(5.0, token)
    """

    DEFAULT_QUANTUM = 0.1

    def __init__(
        self,
        quantum: float = DEFAULT_QUANTUM,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        대기기 초기화

        Args:
            quantum: 폴링 단위 (초)
            clock: 단조 시계 (테스트 주입용)
        """
        if quantum <= 0:
            raise ValueError(f"quantum은 0보다 커야 합니다: {quantum}")
        self.quantum = quantum
        self._clock = clock

    def wait(self, duration: float, token: ShutdownToken) -> bool:
        """
        duration초 동안 대기합니다.

        Args:
            duration: 대기 시간 (초)
            token: 종료 토큰

        Returns:
            종료 요청으로 일찍 깨어났으면 True, 전체 시간을 채웠으면 False
        """
        if token.is_set:
            return True
        if not duration > 0:
            return False

        deadline = self._clock() + duration
        while True:
            if token.is_set:
                logger.debug("대기 중 종료 요청 감지", duration=duration)
                return True
            remaining = deadline - self._clock()
            if remaining <= 0:
                return False
            # 토큰이 설정되면 Event.wait가 즉시 반환됨
            if token.wait(min(self.quantum, remaining)):
                logger.debug("대기 중 종료 요청 감지", duration=duration)
                return True

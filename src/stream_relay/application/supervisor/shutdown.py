"""
종료 토큰

프로세스 전역 종료 요청을 나타내는 일회성 취소 토큰입니다.
시그널 핸들러가 한 번 설정하며, 이후 해제되지 않습니다.
"""

from __future__ import annotations

import threading


class ShutdownToken:
    """
    종료 토큰

    false → true 로만 변하는 단조 플래그입니다.
    슈퍼바이저와 대기기(Waiter)에 참조로 전달되어 모든 폴링 지점에서 확인됩니다.
    다른 실행 컨텍스트(시그널 핸들러, 다른 스레드)에서 request()를 호출해도 안전합니다.

    Example:
        >>> token = ShutdownToken()
        >>> token.request("SIGINT")
        True
        >>> token.is_set
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    @property
    def is_set(self) -> bool:
        """종료가 요청되었는지 여부"""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """최초 종료 요청 사유 (시그널 이름 등)"""
        return self._reason

    def request(self, reason: str | None = None) -> bool:
        """
        종료를 요청합니다.

        Args:
            reason: 요청 사유

        Returns:
            이번 호출로 처음 설정되었으면 True, 이미 설정되어 있었으면 False
        """
        if self._event.is_set():
            return False
        # 사유를 먼저 기록해야 is_set을 본 쪽이 항상 reason을 읽을 수 있음
        self._reason = reason
        self._event.set()
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """
        종료 요청 또는 타임아웃까지 대기합니다.

        Returns:
            종료 요청 여부
        """
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"ShutdownToken(is_set={self.is_set}, reason={self._reason!r})"

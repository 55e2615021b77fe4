"""
전송 세션 인터페이스 정의

슈퍼바이저가 구동하는 전송 세션(소스 → 목적지 미디어 경로)의
인터페이스를 Protocol로 정의합니다. 실제 코덱/컨테이너 구성은
Infrastructure 계층의 구현체가 담당합니다.

이 모듈은 외부 라이브러리에 의존하지 않습니다.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from stream_relay.domain.models.session import SessionEvent


@runtime_checkable
class TransportSession(Protocol):
    """
    전송 세션 (Protocol)

    한 번의 시도에 해당하는 종단 간 미디어 경로입니다.
    슈퍼바이저가 독점 소유하며, 시도가 끝나면 반드시 stop()됩니다.

    Attributes:
        session_id: 세션 식별자 (로깅용)
    """

    session_id: str

    def poll_events(self, timeout: float) -> "SessionEvent":
        """
        다음 라이프사이클 이벤트를 기다립니다.

        timeout 안에 의미 있는 이벤트가 없으면 SessionEvent.other()를 반환하여
        호출자가 종료 요청을 다시 확인할 수 있게 합니다.

        Args:
            timeout: 최대 대기 시간 (초)

        Returns:
            HEALTHY / ERROR / END_OF_STREAM / OTHER 중 하나
        """
        ...

    def stop(self) -> None:
        """
        세션을 중지하고 모든 리소스를 해제합니다.

        여러 번 호출해도 안전해야 하며, 실패는 로그로만 남기고 예외를 던지지 않습니다.
        """
        ...


@runtime_checkable
class TransportBackend(Protocol):
    """
    전송 세션 생성기 (Protocol)

    미디어 엔진 구현체(ffmpeg 등)가 제공합니다.
    """

    def start(self, source: str, destination: str) -> TransportSession:
        """
        세션을 생성하고 실행 상태로 전이시킵니다.

        Args:
            source: 소스 엔드포인트
            destination: 목적지 엔드포인트

        Returns:
            실행 중인 TransportSession

        Raises:
            SessionConfigError: 엔드포인트 형식 오류 (치명적, 재시도 안 함)
            SessionStartError: 연결/시작 실패 (재시도 대상)
            EngineUnavailableError: 미디어 엔진 자체를 사용할 수 없음
        """
        ...

"""
인터페이스 모듈

슈퍼바이저가 소비하는 외부 협력자 인터페이스를 정의합니다.
"""

from stream_relay.domain.interfaces.transport import TransportBackend, TransportSession

__all__ = ["TransportBackend", "TransportSession"]

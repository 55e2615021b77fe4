"""
세션 슈퍼바이저

전송 세션의 생명주기(시작, 감시, 재시작, 중지)를 관리하는 상태 머신입니다.
종료 원인을 분류하고, 재시도 정책을 적용하며, 재시도 사이에는
종료 요청에 즉시 반응하는 대기를 수행합니다.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from stream_relay.application.supervisor.policy import RetryPolicy
from stream_relay.application.supervisor.shutdown import ShutdownToken
from stream_relay.application.supervisor.waiter import InterruptibleWaiter
from stream_relay.common.errors import EngineUnavailableError, SessionConfigError
from stream_relay.common.logging import (
    generate_trace_id,
    get_logger,
    set_session_context,
    set_trace_id,
)
from stream_relay.domain.interfaces.transport import TransportBackend, TransportSession
from stream_relay.domain.models.lifecycle import LifecycleEvent, LifecycleEventType
from stream_relay.domain.models.session import (
    AttemptState,
    FailureCause,
    SessionEventKind,
    StopReason,
    SupervisorConfig,
    SupervisorOutcome,
    SupervisorState,
    format_max_attempts,
    mask_url,
)

logger = get_logger(__name__, component="supervisor")

LifecycleCallback = Callable[[LifecycleEvent], None]


@dataclass(frozen=True)
class _AttemptResult:
    """한 번의 시도 결과 (내부용)"""

    failure: FailureCause | None = None
    stop: StopReason | None = None
    detail: str | None = None


class SessionSupervisor:
    """
    세션 슈퍼바이저

    한 번에 하나의 TransportSession만 소유하며, 이벤트 스트림을 소비하여
    재시작 또는 중지를 결정하고 결과를 보고합니다.

    상태 전이:
        IDLE → STARTING → STREAMING → RESTARTING → STARTING ... → STOPPED

    규칙:
    - 동기 시작 실패와 비동기 스트림 실패는 모두 한 번의 실패로 계산합니다.
    - Healthy 관측 시에만 연속 실패 카운터가 초기화됩니다.
    - 종료 요청은 모든 판단 지점에서 재시도 계산보다 우선합니다.
    - 설정 오류(SessionConfigError)는 재시도 없이 즉시 종료합니다.
    - 미디어 엔진 사용 불가(EngineUnavailableError)는 호출자에게 전파됩니다.

    Example:
        >>> supervisor = SessionSupervisor(config, backend, token)
        >>> outcome = supervisor.run()
        >>> sys.exit(outcome.exit_code)
    """

    DEFAULT_POLL_INTERVAL = 0.1

    def __init__(
        self,
        config: SupervisorConfig,
        backend: TransportBackend,
        shutdown: ShutdownToken,
        policy: RetryPolicy | None = None,
        waiter: InterruptibleWaiter | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_event: LifecycleCallback | None = None,
    ) -> None:
        """
        슈퍼바이저 초기화

        Args:
            config: 슈퍼바이저 설정
            backend: 전송 세션 생성기
            shutdown: 종료 토큰
            policy: 재시도 정책 (None이면 config 기반 고정 지연 정책)
            waiter: 재시도 대기기 (None이면 0.1초 quantum)
            poll_interval: poll_events 호출당 최대 대기 시간 (초)
            on_event: 라이프사이클 이벤트 콜백
        """
        if poll_interval <= 0:
            raise ValueError(f"poll_interval은 0보다 커야 합니다: {poll_interval}")

        self._config = config
        self._backend = backend
        self._shutdown = shutdown
        self._policy = policy or RetryPolicy(
            base_delay=config.reconnect_delay,
            max_attempts=config.max_attempts,
        )
        self._waiter = waiter or InterruptibleWaiter()
        self._poll_interval = poll_interval
        self._on_event = on_event

        self._attempts = AttemptState()
        self._state = SupervisorState.IDLE
        self._session: TransportSession | None = None
        self._outcome: SupervisorOutcome | None = None
        self._lock = threading.Lock()

        # 상태 조회용
        self._started_at: float | None = None
        self._streaming_since: float | None = None
        self._last_failure: dict[str, Any] | None = None

    @property
    def state(self) -> SupervisorState:
        """현재 상태"""
        return self._state

    @property
    def attempt_count(self) -> int:
        """현재 연속 실패 횟수"""
        return self._attempts.count

    @property
    def outcome(self) -> SupervisorOutcome | None:
        """최종 결과 (종료 전에는 None)"""
        return self._outcome

    @property
    def max_attempts(self) -> int:
        """최대 연속 실패 횟수 (0 = 무제한)"""
        return self._policy.max_attempts

    def set_on_event(self, callback: LifecycleCallback | None) -> None:
        """
        라이프사이클 이벤트 콜백을 설정합니다.

        Args:
            callback: (LifecycleEvent) -> None
        """
        self._on_event = callback

    def run(self) -> SupervisorOutcome:
        """
        종료 조건에 도달할 때까지 세션을 실행하고 재시작합니다.

        Returns:
            종료 원인을 담은 SupervisorOutcome

        Raises:
            EngineUnavailableError: 미디어 엔진을 사용할 수 없는 경우
            RuntimeError: 이미 실행된 슈퍼바이저를 다시 실행한 경우
        """
        with self._lock:
            if self._state != SupervisorState.IDLE:
                raise RuntimeError(f"슈퍼바이저가 이미 실행되었습니다 (state={self._state.value})")
            self._started_at = time.time()

        # 이 실행의 모든 로그를 하나의 trace_id로 묶음
        set_trace_id(generate_trace_id())

        logger.info(
            "릴레이 슈퍼바이저 시작",
            source=mask_url(self._config.source),
            destination=mask_url(self._config.destination),
            reconnect_delay=self._config.reconnect_delay,
            max_attempts=format_max_attempts(self.max_attempts),
        )

        try:
            while True:
                reason = self._policy.denial_reason(self._attempts.count, self._shutdown.is_set)
                if reason is not None:
                    return self._finish(reason)

                result = self._run_attempt()

                if result.stop is not None:
                    return self._finish(result.stop, result.detail)

                if result.failure is not None:
                    self._handle_failure(result.failure, result.detail)
        except EngineUnavailableError as e:
            logger.critical(f"미디어 엔진을 사용할 수 없습니다: {e.message}", **e.details)
            self._set_state(SupervisorState.STOPPED)
            raise
        finally:
            set_session_context(None)
            set_trace_id(None)

    # ------------------------------------------------------------------
    # 시도 단위 처리
    # ------------------------------------------------------------------

    def _run_attempt(self) -> _AttemptResult:
        """세션 하나를 시작하고 종료 이벤트까지 감시합니다."""
        set_session_context(None)
        self._set_state(SupervisorState.STARTING)
        self._attempts.record_start()
        attempt = self._attempts.count + 1

        self._emit(
            LifecycleEvent(
                type=LifecycleEventType.ATTEMPT_STARTED,
                attempt=attempt,
                max_attempts=self.max_attempts,
            ),
            f"소스 연결 시도 (attempt {attempt}/{format_max_attempts(self.max_attempts)}): "
            f"{mask_url(self._config.source)} -> {mask_url(self._config.destination)}",
        )

        try:
            session = self._backend.start(self._config.source, self._config.destination)
        except SessionConfigError as e:
            return _AttemptResult(stop=StopReason.FATAL_CONFIG_ERROR, detail=e.message)
        except EngineUnavailableError:
            raise
        except Exception as e:
            return _AttemptResult(failure=FailureCause.CONNECT_ERROR, detail=str(e))

        self._session = session
        # 실패 처리 로그까지 이 세션 ID가 붙도록 다음 시도 전까지 유지
        set_session_context(getattr(session, "session_id", None))
        try:
            return self._watch_session(session)
        finally:
            self._stop_session(session)

    def _watch_session(self, session: TransportSession) -> _AttemptResult:
        """종료 이벤트가 나올 때까지 세션 이벤트를 폴링합니다."""
        session_id = getattr(session, "session_id", None)

        while True:
            # 스트리밍 중에도 매 폴링마다 종료 요청을 확인
            if self._shutdown.is_set:
                return _AttemptResult(stop=StopReason.SHUTDOWN_REQUESTED)

            try:
                event = session.poll_events(self._poll_interval)
            except Exception as e:
                logger.exception(f"세션 이벤트 폴링 오류: {e}", session_id=session_id)
                return _AttemptResult(failure=self._classify_error(), detail=str(e))

            if event.kind == SessionEventKind.HEALTHY:
                self._mark_healthy(session_id)
            elif event.kind == SessionEventKind.ERROR:
                return _AttemptResult(failure=self._classify_error(), detail=event.detail)
            elif event.kind == SessionEventKind.END_OF_STREAM:
                return _AttemptResult(failure=FailureCause.END_OF_STREAM, detail=event.detail)
            elif event.detail:
                logger.debug(f"세션 메시지: {event.detail}", session_id=session_id)

    def _classify_error(self) -> FailureCause:
        """Healthy 이전 오류는 연결 실패, 이후 오류는 스트림 오류로 분류합니다."""
        if self._state == SupervisorState.STREAMING:
            return FailureCause.STREAM_ERROR
        return FailureCause.CONNECT_ERROR

    def _mark_healthy(self, session_id: str | None) -> None:
        """STARTING → STREAMING 전이. 연속 실패 카운터를 초기화합니다."""
        if self._state == SupervisorState.STREAMING:
            return

        attempt = self._attempts.count + 1
        with self._lock:
            self._state = SupervisorState.STREAMING
            self._streaming_since = time.time()
            self._attempts.reset()

        self._emit(
            LifecycleEvent(
                type=LifecycleEventType.ATTEMPT_SUCCEEDED,
                attempt=attempt,
                max_attempts=self.max_attempts,
            ),
            "세션 시작 성공, 송출 중",
            session_id=session_id,
        )

    def _stop_session(self, session: TransportSession) -> None:
        """세션을 중지합니다. 실패는 로그로만 남깁니다."""
        try:
            session.stop()
        except Exception as e:
            logger.warning(
                f"세션 중지 중 오류 (무시): {e}",
                session_id=getattr(session, "session_id", None),
            )
        finally:
            self._session = None
            with self._lock:
                self._streaming_since = None

    def _handle_failure(self, cause: FailureCause, detail: str | None) -> None:
        """실패를 기록하고, 허용되면 재시도 대기를 수행합니다."""
        with self._lock:
            self._state = SupervisorState.RESTARTING
            attempt = self._attempts.record_failure()
            self._last_failure = {
                "cause": cause.value,
                "detail": detail,
                "attempt": attempt,
                "ts": time.time(),
            }

        max_display = format_max_attempts(self.max_attempts)
        self._emit(
            LifecycleEvent(
                type=LifecycleEventType.ATTEMPT_FAILED,
                attempt=attempt,
                max_attempts=self.max_attempts,
                cause=cause,
                detail=detail,
            ),
            _failure_message(cause, detail, attempt, max_display),
            level="warning" if cause == FailureCause.END_OF_STREAM else "error",
        )

        if not self._policy.may_attempt(attempt, self._shutdown.is_set):
            return

        delay = self._policy.next_delay(attempt)
        self._emit(
            LifecycleEvent(
                type=LifecycleEventType.RETRY_SCHEDULED,
                attempt=attempt,
                max_attempts=self.max_attempts,
                delay=delay,
            ),
            f"{delay:g}초 후 재시도... (attempt {attempt}/{max_display})",
        )
        if self._waiter.wait(delay, self._shutdown):
            logger.debug("재시도 대기가 종료 요청으로 중단됨", attempt=attempt)

    # ------------------------------------------------------------------
    # 종료 처리
    # ------------------------------------------------------------------

    def _finish(self, reason: StopReason, detail: str | None = None) -> SupervisorOutcome:
        """STOPPED로 전이하고 종료 원인을 보고합니다."""
        attempts = self._attempts.count

        if reason == StopReason.SHUTDOWN_REQUESTED:
            shutdown_reason = self._shutdown.reason
            self._emit(
                LifecycleEvent(
                    type=LifecycleEventType.SHUTDOWN_REQUESTED,
                    attempt=attempts,
                    max_attempts=self.max_attempts,
                    detail=shutdown_reason,
                ),
                "종료 요청 수신, 파이프라인을 중지합니다",
            )
        elif reason == StopReason.RETRIES_EXHAUSTED:
            self._emit(
                LifecycleEvent(
                    type=LifecycleEventType.RETRIES_EXHAUSTED,
                    attempt=attempts,
                    max_attempts=self.max_attempts,
                ),
                f"최대 재시도 횟수({self.max_attempts})에 도달했습니다. 종료합니다.",
                level="error",
            )
        else:
            logger.error(f"치명적인 설정 오류로 종료합니다 (재시도 안 함): {detail}", detail=detail)

        outcome = SupervisorOutcome(
            reason=reason,
            attempts=attempts,
            total_attempts=self._attempts.total_started,
            detail=detail if detail is not None else self._shutdown.reason,
        )
        with self._lock:
            self._state = SupervisorState.STOPPED
            self._outcome = outcome

        self._emit(
            LifecycleEvent(
                type=LifecycleEventType.SUPERVISOR_STOPPED,
                attempt=attempts,
                max_attempts=self.max_attempts,
                reason=reason,
                detail=outcome.detail,
            ),
            f"릴레이 슈퍼바이저 종료 ({reason.value})",
        )
        return outcome

    # ------------------------------------------------------------------
    # 보조 함수
    # ------------------------------------------------------------------

    def _set_state(self, state: SupervisorState) -> None:
        with self._lock:
            self._state = state

    def _emit(
        self,
        event: LifecycleEvent,
        message: str,
        level: str = "info",
        **kwargs: Any,
    ) -> None:
        """이벤트를 로그로 남기고 콜백에 전달합니다. 콜백 오류는 무시합니다."""
        fields = event.to_dict()
        fields["event_type"] = fields.pop("type")
        fields.pop("timestamp", None)
        fields.update(kwargs)
        getattr(logger, level)(message, **fields)

        if self._on_event:
            try:
                self._on_event(event)
            except Exception as e:
                logger.error(f"라이프사이클 콜백 오류: {e}", event_type=event.type.value)

    def snapshot(self) -> dict[str, Any]:
        """
        현재 상태 요약을 반환합니다 (상태 API용).

        다른 스레드에서 호출해도 안전합니다.
        """
        with self._lock:
            now = time.time()
            return {
                "state": self._state.value,
                "session_id": getattr(self._session, "session_id", None),
                "source": mask_url(self._config.source),
                "destination": mask_url(self._config.destination),
                "attempt": self._attempts.count,
                "max_attempts": self.max_attempts,
                "total_attempts": self._attempts.total_started,
                "total_failures": self._attempts.total_failed,
                "healthy_count": self._attempts.healthy_count,
                "last_failure": dict(self._last_failure) if self._last_failure else None,
                "started_at": self._started_at,
                "streaming_since": self._streaming_since,
                "streaming_seconds": (
                    round(now - self._streaming_since, 1) if self._streaming_since else 0.0
                ),
                "shutdown_requested": self._shutdown.is_set,
                "outcome": self._outcome.to_dict() if self._outcome else None,
            }


def _failure_message(cause: FailureCause, detail: str | None, attempt: int, max_display: str) -> str:
    """실패 원인별 로그 메시지를 만듭니다."""
    suffix = f" (attempt {attempt}/{max_display})"
    if cause == FailureCause.CONNECT_ERROR:
        return f"파이프라인 시작 실패: {detail or '알 수 없는 오류'}{suffix}"
    if cause == FailureCause.STREAM_ERROR:
        return f"파이프라인 오류: {detail or '알 수 없는 오류'}{suffix}"
    return f"소스 스트림 종료(EOS), 재연결합니다{suffix}"

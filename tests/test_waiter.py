import threading
import time

import pytest

from doubles import FakeClock
from stream_relay.application.supervisor.shutdown import ShutdownToken
from stream_relay.application.supervisor.waiter import InterruptibleWaiter


class ClockedToken:
    """wait(timeout)이 실제로 자지 않고 가짜 시계를 전진시키는 토큰."""

    def __init__(self, clock: FakeClock, set_after: float | None = None) -> None:
        self._clock = clock
        self._set_at = None if set_after is None else clock() + set_after
        self.slices: list[float] = []

    @property
    def is_set(self) -> bool:
        return self._set_at is not None and self._clock() >= self._set_at

    def wait(self, timeout: float | None = None) -> bool:
        self.slices.append(timeout)
        self._clock.advance(timeout)
        return self.is_set


def test_wait_runs_full_duration_in_quantum_slices() -> None:
    clock = FakeClock()
    token = ClockedToken(clock)
    waiter = InterruptibleWaiter(quantum=0.1, clock=clock)

    interrupted = waiter.wait(1.0, token)

    assert interrupted is False
    assert clock() == pytest.approx(101.0)
    assert max(token.slices) <= 0.1 + 1e-9
    assert len(token.slices) == pytest.approx(10, abs=1)


def test_wait_wakes_within_one_quantum_of_shutdown() -> None:
    clock = FakeClock()
    token = ClockedToken(clock, set_after=0.25)
    waiter = InterruptibleWaiter(quantum=0.1, clock=clock)

    interrupted = waiter.wait(5.0, token)

    assert interrupted is True
    assert clock() - 100.0 <= 0.25 + 0.1 + 1e-9


def test_wait_returns_immediately_when_already_set() -> None:
    token = ShutdownToken()
    token.request("SIGINT")

    assert InterruptibleWaiter().wait(60.0, token) is True


def test_zero_duration_does_not_block() -> None:
    token = ShutdownToken()
    start = time.monotonic()

    assert InterruptibleWaiter().wait(0.0, token) is False
    assert time.monotonic() - start < 0.05


def test_nan_duration_does_not_block() -> None:
    token = ShutdownToken()
    start = time.monotonic()

    assert InterruptibleWaiter().wait(float("nan"), token) is False
    assert time.monotonic() - start < 0.05


def test_real_shutdown_from_other_thread_interrupts_long_wait() -> None:
    token = ShutdownToken()
    waiter = InterruptibleWaiter(quantum=0.1)
    timer = threading.Timer(0.2, token.request, args=("SIGTERM",))

    start = time.monotonic()
    timer.start()
    try:
        interrupted = waiter.wait(10.0, token)
    finally:
        timer.cancel()
    elapsed = time.monotonic() - start

    assert interrupted is True
    assert elapsed < 2.0


def test_quantum_must_be_positive() -> None:
    with pytest.raises(ValueError):
        InterruptibleWaiter(quantum=0)

import pytest

from stream_relay.application.supervisor.policy import (
    ExponentialRetryPolicy,
    RetryPolicy,
    calculate_exponential_backoff,
    may_attempt,
    policy_from_config,
)
from stream_relay.domain.models.session import StopReason
from stream_relay.interface.config.schema import RelayConfig


@pytest.mark.parametrize(
    ("count", "max_attempts", "shutdown", "expected"),
    [
        (0, 0, False, True),
        (1000, 0, False, True),
        (2, 3, False, True),
        (3, 3, False, False),
        (4, 3, False, False),
        (0, 0, True, False),
        (0, 3, True, False),
    ],
)
def test_may_attempt(count: int, max_attempts: int, shutdown: bool, expected: bool) -> None:
    assert may_attempt(count, max_attempts, shutdown) is expected


def test_fixed_policy_delay_does_not_grow() -> None:
    policy = RetryPolicy(base_delay=5.0, max_attempts=0)

    assert [policy.next_delay(n) for n in (1, 2, 10)] == [5.0, 5.0, 5.0]


def test_denial_reason_prefers_shutdown() -> None:
    policy = RetryPolicy(base_delay=1.0, max_attempts=2)

    assert policy.denial_reason(0, shutdown=False) is None
    assert policy.denial_reason(2, shutdown=False) == StopReason.RETRIES_EXHAUSTED
    assert policy.denial_reason(2, shutdown=True) == StopReason.SHUTDOWN_REQUESTED


def test_policy_rejects_negative_values() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=-1.0)
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=-1)
    with pytest.raises(ValueError):
        ExponentialRetryPolicy(base_delay=10.0, max_delay=5.0)


def test_policy_rejects_non_finite_delays() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=float("nan"))
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=float("inf"))
    with pytest.raises(ValueError):
        ExponentialRetryPolicy(base_delay=1.0, max_delay=float("nan"))


def test_exponential_backoff_without_jitter_is_capped() -> None:
    delays = [calculate_exponential_backoff(n, 1.0, 8.0, jitter=False) for n in range(6)]

    assert delays == [1.0, 2.0, 4.0, 8.0, 8.0, 8.0]


def test_exponential_backoff_jitter_range() -> None:
    assert calculate_exponential_backoff(1, 2.0, 60.0, jitter=True, rng=lambda: 0.0) == 2.0
    assert calculate_exponential_backoff(1, 2.0, 60.0, jitter=True, rng=lambda: 0.5) == 4.0


def test_exponential_policy_uses_failed_attempt_number() -> None:
    policy = ExponentialRetryPolicy(base_delay=2.0, max_attempts=0, max_delay=10.0)

    assert [policy.next_delay(n) for n in (1, 2, 3, 4)] == [2.0, 4.0, 8.0, 10.0]


def test_policy_from_config() -> None:
    fixed = policy_from_config(RelayConfig(reconnect_delay=3.0, max_retries=4))
    exponential = policy_from_config(
        RelayConfig(reconnect_delay=1.0, backoff="exponential", max_reconnect_delay=30.0)
    )

    assert type(fixed) is RetryPolicy
    assert fixed.base_delay == 3.0
    assert fixed.max_attempts == 4
    assert isinstance(exponential, ExponentialRetryPolicy)
    assert exponential.max_delay == 30.0

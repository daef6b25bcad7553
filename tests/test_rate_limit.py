"""Tests for the outgoing message rate limiter."""

import pytest

from auraspend.agent.rate_limit import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_window_limits_calls() -> None:
    clock = FakeClock()
    limiter = RateLimiter(window=10, max_calls=3, cooldown=0, clock=clock)

    assert [limiter.try_call() for _ in range(4)] == [True, True, True, False]
    assert limiter.remaining_calls() == 0
    clock.now = 10.5
    assert limiter.remaining_calls() == 3
    assert limiter.try_call() is True


def test_cooldown_between_calls() -> None:
    clock = FakeClock()
    limiter = RateLimiter(window=10, max_calls=5, cooldown=1, clock=clock)

    assert limiter.try_call() is True
    assert limiter.in_cooldown()
    assert limiter.try_call() is False
    clock.now = 1.0
    assert not limiter.in_cooldown()
    assert limiter.try_call() is True


def test_rejected_calls_are_not_counted() -> None:
    clock = FakeClock()
    limiter = RateLimiter(window=10, max_calls=2, cooldown=1, clock=clock)

    limiter.try_call()
    limiter.try_call()  # rejected by the cooldown
    assert limiter.remaining_calls() == 1


def test_reset() -> None:
    limiter = RateLimiter(window=10, max_calls=1, cooldown=5, clock=FakeClock())
    limiter.try_call()

    limiter.reset()

    assert limiter.try_call() is True


def test_invalid_configuration() -> None:
    with pytest.raises(ValueError):
        RateLimiter(window=0)
    with pytest.raises(ValueError):
        RateLimiter(max_calls=0)

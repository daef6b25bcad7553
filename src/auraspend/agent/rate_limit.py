"""Sliding-window rate limiter with a per-call cooldown, used to throttle outgoing user messages."""

import time
from collections import deque
from typing import (
    Callable,
    Deque,
)


class RateLimiter:
    """
    Allow at most *max_calls* within any *window* seconds, and at least *cooldown* seconds between
    two consecutive calls.

    Example: ``RateLimiter(window=10, max_calls=5, cooldown=1)`` accepts five messages per ten
    seconds, never two within the same second.
    """

    def __init__(
        self,
        window: float = 10.0,
        max_calls: int = 5,
        cooldown: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if window <= 0 or max_calls < 1 or cooldown < 0:
            raise ValueError("window and max_calls must be positive, cooldown non-negative")
        self.window = window
        self.max_calls = max_calls
        self.cooldown = cooldown
        self._clock = clock
        self._timestamps: Deque[float] = deque()
        self._last_call: float | None = None

    def _evict(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] > self.window:
            self._timestamps.popleft()

    def try_call(self) -> bool:
        """Record a call and return True, or return False if either limit would be exceeded."""
        now = self._clock()
        if self._last_call is not None and now - self._last_call < self.cooldown:
            return False
        self._evict(now)
        if len(self._timestamps) >= self.max_calls:
            return False
        self._timestamps.append(now)
        self._last_call = now
        return True

    def remaining_calls(self) -> int:
        self._evict(self._clock())
        return max(0, self.max_calls - len(self._timestamps))

    def in_cooldown(self) -> bool:
        if self._last_call is None:
            return False
        return self._clock() - self._last_call < self.cooldown

    def reset(self) -> None:
        self._timestamps.clear()
        self._last_call = None

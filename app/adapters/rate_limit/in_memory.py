"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- No queueing: a request over the limit is rejected, never delayed.
- Partitions whose window has elapsed are dropped every ``sweep_every``
  calls, so memory is bounded by the callers seen within one window.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class _WindowState:
    window_start: float
    count: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    A key's window opens at its first request and lasts ``window_seconds``;
    the first request after it elapses opens the next one. Windows are not
    aligned to the clock, so two keys usually reset at different instants.
    Rejected requests do not count against the window.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
        sweep_every: int = 256,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed units per window.
            window_seconds: Size of the fixed window in seconds.
            clock: Time source function returning UNIX time in seconds.
            sweep_every: Calls between sweeps of elapsed partitions.

        Raises:
            ValueError: If limit, window_seconds or sweep_every are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if sweep_every < 1:
            raise ValueError("sweep_every must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}
        self._sweep_every = sweep_every
        self._calls = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def partition_count(self) -> int:
        """Number of partitions currently held in memory."""
        with self._lock:
            return len(self._state_by_key)

    def _sweep_elapsed_locked(self, now: float) -> None:
        elapsed = [
            key
            for key, state in self._state_by_key.items()
            if now - state.window_start >= self._window_seconds
        ]
        for key in elapsed:
            del self._state_by_key[key]

    def _get_or_open_window(self, key: str, now: float) -> _WindowState:
        state = self._state_by_key.get(key)
        if state is None or now - state.window_start >= self._window_seconds:
            state = _WindowState(window_start=now, count=0)
            self._state_by_key[key] = state
        return state

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for the provided key.

        Args:
            key: Unique identifier for rate limiting (e.g. client address).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            now = self._clock()
            self._calls += 1
            if self._calls % self._sweep_every == 0:
                self._sweep_elapsed_locked(now)
            state = self._get_or_open_window(key, now)
            reset_at = state.window_start + self._window_seconds

            if state.count + cost <= self._limit:
                state.count += cost
                return RateLimitResult(
                    allowed=True,
                    limit=self._limit,
                    remaining=max(0, self._limit - state.count),
                    reset_at=int(math.ceil(reset_at)),
                    retry_after_seconds=None,
                )

            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                remaining=max(0, self._limit - state.count),
                reset_at=int(math.ceil(reset_at)),
                retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
            )

"""In-memory expiring counter store.

Notes:
- Per-process only: running multiple workers gives each its own counters.
- Thread-safe: uses a lock around shared state.
- Expiry is lazy: an expired entry is dropped on its next access, and every
  ``sweep_every`` writes all expired entries are removed, so keys that are
  never read again (e.g. yesterday's quota keys) do not accumulate.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.counter_store.base import AbstractCounterStore

logger = logging.getLogger(__name__)


@dataclass
class CounterEntry:
    """Stored count with its absolute expiry (UNIX seconds)."""

    count: int
    expires_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Dict-backed counter store with TTL expiry.

    Attributes:
        clock: Time source returning UNIX time in seconds.
        sweep_every: Number of writes between full sweeps of expired entries.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        sweep_every: int = 256,
    ) -> None:
        if sweep_every < 1:
            raise ValueError("sweep_every must be >= 1")

        self._clock = clock
        self._sweep_every = sweep_every
        self._lock = threading.RLock()
        self._entries: dict[str, CounterEntry] = {}
        self._expirations = 0
        self._writes = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryCounterStore(entries={len(self._entries)}, "
            f"expirations={self._expirations})"
        )

    def get_or_create(self, key: str, ttl_seconds: float) -> int:
        self._validate_key(key)
        with self._lock:
            now = self._clock()
            entry = self._live_entry_locked(key, now)
            if entry is None:
                entry = CounterEntry(count=0, expires_at=now + ttl_seconds)
                self._entries[key] = entry
                self._after_write_locked(now)
                logger.debug(
                    "counter_store.created",
                    extra={"key": key, "ttl_s": ttl_seconds},
                )
            return entry.count

    def set(self, key: str, count: int, ttl_seconds: float) -> None:
        self._validate_key(key)
        if count < 0:
            raise ValueError("count must be >= 0")

        with self._lock:
            now = self._clock()
            self._entries[key] = CounterEntry(count=count, expires_at=now + ttl_seconds)
            self._after_write_locked(now)

    def increment(self, key: str, ttl_seconds: float, *, amount: int = 1) -> int:
        self._validate_key(key)
        if amount < 1:
            raise ValueError("amount must be >= 1")

        with self._lock:
            now = self._clock()
            entry = self._live_entry_locked(key, now)
            current = entry.count if entry is not None else 0
            self._entries[key] = CounterEntry(
                count=current + amount,
                expires_at=now + ttl_seconds,
            )
            self._after_write_locked(now)
            return current + amount

    def peek(self, key: str) -> int | None:
        with self._lock:
            entry = self._live_entry_locked(key, self._clock())
            return entry.count if entry is not None else None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._expirations = 0
            self._writes = 0

    def stats(self) -> dict[str, int]:
        """Return entry and expiration counts without exposing keys."""

        with self._lock:
            return {
                "entries": len(self._entries),
                "expirations": self._expirations,
            }

    def _live_entry_locked(self, key: str, now: float) -> CounterEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if now >= entry.expires_at:
            del self._entries[key]
            self._expirations += 1
            return None
        return entry

    def _after_write_locked(self, now: float) -> None:
        self._writes += 1
        if self._writes % self._sweep_every == 0:
            self._evict_expired_locked(now)

    def _evict_expired_locked(self, now: float) -> None:
        expired_keys = [k for k, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired_keys:
            del self._entries[key]
        self._expirations += len(expired_keys)
        if expired_keys:
            logger.debug(
                "counter_store.swept",
                extra={"removed": len(expired_keys), "size": len(self._entries)},
            )

    @staticmethod
    def _validate_key(key: str) -> None:
        if not key:
            raise ValueError("key must be a non-empty string")

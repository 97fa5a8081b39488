"""Counter store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractCounterStore(ABC):
    """Interface for expiring integer counters.

    An entry is never read or incremented past its expiry; once expired it
    behaves as absent (count 0).
    """

    @abstractmethod
    def get_or_create(self, key: str, ttl_seconds: float) -> int:
        """Return the current count, creating a zero entry if absent or expired.

        Args:
            key: Rate limit key.
            ttl_seconds: Lifetime of a newly created entry.
        """
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, count: int, ttl_seconds: float) -> None:
        """Overwrite the count for ``key`` and reset its expiry to now + ttl."""
        raise NotImplementedError

    @abstractmethod
    def increment(self, key: str, ttl_seconds: float, *, amount: int = 1) -> int:
        """Atomically add ``amount`` to the count and return the new value.

        The expiry is reset to now + ttl.
        """
        raise NotImplementedError

    @abstractmethod
    def peek(self, key: str) -> int | None:
        """Return the live count for ``key`` without creating an entry."""
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError

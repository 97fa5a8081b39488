"""Daily quota per API key.

Every keyed request is counted against a per-key, per-UTC-day budget kept in
the counter store. Only successful (2xx) responses consume quota: a request
that fails downstream, or raises, leaves the count untouched.

Counter updates:
- atomic (default): ``store.increment`` after a successful response, so
  concurrent successes for the same key are never lost.
- reference: the count read before the request is written back plus one.
  Concurrent requests for the same key can all pass the check before any
  write lands, and their writes overwrite each other.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timedelta, timezone
from typing import AbstractSet, Callable

from app.adapters.counter_store.base import AbstractCounterStore
from app.core.logging import hash_identifier
from app.pipeline.context import Next, RequestContext

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
REMAINING_HEADER = "X-RateLimit-Remaining"
MISSING_KEY_MESSAGE = "API Key is missing."
QUOTA_EXCEEDED_MESSAGE = "Daily API rate limit exceeded."


def utc_day(now: float) -> date:
    return datetime.fromtimestamp(now, tz=timezone.utc).date()


def seconds_until_next_utc_midnight(now: float) -> float:
    """Return the time left in the UTC day containing ``now``."""

    next_midnight = datetime.combine(
        utc_day(now) + timedelta(days=1),
        datetime.min.time(),
        tzinfo=timezone.utc,
    )
    return next_midnight.timestamp() - now


def build_quota_key(api_key: str, day: date) -> str:
    """Build the counter key for one API key on one UTC day.

    The date suffix has a fixed width, so distinct (key, day) pairs never
    produce the same string.

    Examples:
        >>> build_quota_key("abc", date(2024, 3, 9))
        'api-key-daily-rate-limit-abc-20240309'
    """

    return f"api-key-daily-rate-limit-{api_key}-{day:%Y%m%d}"


class ApiKeyQuotaStage:
    """Enforce the per-key daily quota of successful calls.

    Args:
        store: Counter store shared by all requests.
        daily_limit: Successful calls allowed per key per UTC day.
        atomic_increment: Consume quota with ``store.increment`` instead of
            writing back the count read before the request.
        exempt_paths: Paths served without an API key.
        clock: Time source returning UNIX time in seconds.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        daily_limit: int,
        atomic_increment: bool = True,
        exempt_paths: AbstractSet[str] = frozenset(),
        clock: Callable[[], float] = time.time,
    ) -> None:
        if daily_limit < 0:
            raise ValueError("daily_limit must be >= 0")

        self.store = store
        self.daily_limit = daily_limit
        self.atomic_increment = atomic_increment
        self.exempt_paths = exempt_paths
        self._clock = clock

    async def __call__(self, ctx: RequestContext, call_next: Next) -> None:
        if ctx.path in self.exempt_paths:
            await call_next(ctx)
            return

        api_key = ctx.header(API_KEY_HEADER)
        if not api_key:
            logger.info("api_key_quota.missing_key", extra={"path": ctx.path})
            ctx.write(401, MISSING_KEY_MESSAGE)
            return

        key_hash = hash_identifier(api_key)
        now = self._clock()
        cache_key = build_quota_key(api_key, utc_day(now))

        count = self.store.get_or_create(cache_key, seconds_until_next_utc_midnight(now))
        if count >= self.daily_limit:
            logger.warning(
                "api_key_quota.exceeded",
                extra={
                    "api_key_hash": key_hash,
                    "limit": self.daily_limit,
                    "count": count,
                },
            )
            ctx.write(429, QUOTA_EXCEEDED_MESSAGE)
            return

        await call_next(ctx)

        if not ctx.is_success:
            logger.debug(
                "api_key_quota.not_consumed",
                extra={"api_key_hash": key_hash, "status_code": ctx.status_code},
            )
            return

        # TTL is re-derived after the downstream call; the day may have moved on.
        ttl = seconds_until_next_utc_midnight(self._clock())
        if self.atomic_increment:
            new_count = self.store.increment(cache_key, ttl)
        else:
            new_count = count + 1
            self.store.set(cache_key, new_count, ttl)

        remaining = self.daily_limit - new_count
        ctx.response_headers[REMAINING_HEADER] = str(remaining)
        logger.info(
            "api_key_quota.consumed",
            extra={
                "api_key_hash": key_hash,
                "limit": self.daily_limit,
                "remaining": remaining,
            },
        )

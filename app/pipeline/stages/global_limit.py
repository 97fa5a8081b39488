"""Per-address admission check.

Throttles callers by remote address before any API key handling happens.
Each address gets a fixed window (5 requests per 10 seconds by default);
a request over the limit is answered with 429 and never reaches later stages.
"""

from __future__ import annotations

import logging
from typing import AbstractSet

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.core.logging import hash_identifier
from app.pipeline.context import Next, RequestContext

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"
REJECTION_MESSAGE = "Too many requests. Try again later."


def partition_key(ctx: RequestContext) -> str:
    """Return the limiter partition for the caller's address."""

    return ctx.client_host or UNKNOWN_CLIENT


class GlobalRateLimitStage:
    """Reject callers that exceed the per-address fixed window."""

    def __init__(
        self,
        limiter: AbstractRateLimiter,
        *,
        include_headers: bool = True,
        exempt_paths: AbstractSet[str] = frozenset(),
    ) -> None:
        self.limiter = limiter
        self.include_headers = include_headers
        self.exempt_paths = exempt_paths

    async def __call__(self, ctx: RequestContext, call_next: Next) -> None:
        if ctx.path in self.exempt_paths:
            await call_next(ctx)
            return

        key = partition_key(ctx)
        result = self.limiter.consume(key)
        if result.allowed:
            await call_next(ctx)
            return

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "client_hash": hash_identifier(key),
                "path": ctx.path,
                "limit": result.limit,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        ctx.write(429, REJECTION_MESSAGE)
        if self.include_headers and result.retry_after_seconds is not None:
            ctx.response_headers["Retry-After"] = str(result.retry_after_seconds)

"""Pipeline runner: explicit composition of request stages.

A stage is an async callable ``stage(ctx, call_next)``. It may pass the
request on unchanged, mutate the context and pass it on, or short-circuit by
writing a response and never awaiting ``call_next``. Stages listed first
wrap the ones after them, so the outermost stage sees every response,
including short-circuited ones.
"""

from __future__ import annotations

import logging
import time
from functools import partial
from typing import Callable, Sequence

from app.adapters.counter_store.base import AbstractCounterStore
from app.adapters.rate_limit.base import AbstractRateLimiter
from app.core.config import Settings
from app.pipeline.context import Endpoint, Next, RequestContext, Stage
from app.pipeline.stages.api_key_quota import ApiKeyQuotaStage
from app.pipeline.stages.correlation import CorrelationStage
from app.pipeline.stages.fault_isolation import fault_isolation_stage
from app.pipeline.stages.global_limit import GlobalRateLimitStage
from app.pipeline.stages.logging import logging_stage

logger = logging.getLogger(__name__)


class Pipeline:
    """Fixed, linear chain of stages around a terminal endpoint."""

    def __init__(self, stages: Sequence[Stage]) -> None:
        self._stages: tuple[Stage, ...] = tuple(stages)

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    def compose(self, endpoint: Endpoint) -> Next:
        """Fold the stages around ``endpoint``, innermost last."""

        handler: Next = endpoint
        for stage in reversed(self._stages):
            handler = partial(stage, call_next=handler)
        return handler

    async def handle(self, ctx: RequestContext, endpoint: Endpoint) -> RequestContext:
        """Drive one request through every stage and return the finished context."""

        await self.compose(endpoint)(ctx)
        return ctx


def build_pipeline(
    settings: Settings,
    *,
    counter_store: AbstractCounterStore,
    limiter: AbstractRateLimiter | None,
    clock: Callable[[], float] = time.time,
) -> Pipeline:
    """Assemble the standard stage order.

    Correlation wraps everything so every response carries a request id and
    duration. The address limiter rejects before any logging or API key
    handling happens. Logging sits outside fault isolation so it records the
    final status of absorbed failures, and the quota stage sits inside it so
    raised failures never consume quota.

    Args:
        settings: Resolved application settings.
        counter_store: Process-wide store backing the daily quota.
        limiter: Address limiter, or None when global limiting is disabled.
        clock: UNIX time source shared by the quota stage.

    Returns:
        The composed pipeline.
    """

    rl = settings.rate_limit
    exempt = frozenset(rl.exempt_paths)

    stages: list[Stage] = [CorrelationStage(header_name=settings.log.request_id_header)]

    if limiter is not None:
        stages.append(
            GlobalRateLimitStage(
                limiter,
                include_headers=rl.global_include_headers,
                exempt_paths=exempt,
            )
        )
    else:
        logger.info("pipeline.global_limit_disabled")

    daily_limit = rl.api_key_daily_limit
    if daily_limit is None:
        logger.warning(
            "pipeline.api_key_daily_limit_not_configured",
            extra={
                "effective_limit": 0,
                "hint": "Set RATE_LIMIT_API_KEY_DAILY_LIMIT to allow keyed requests",
            },
        )
        daily_limit = 0

    stages.extend(
        [
            logging_stage,
            fault_isolation_stage,
            ApiKeyQuotaStage(
                counter_store,
                daily_limit=daily_limit,
                atomic_increment=rl.quota_atomic_increment,
                exempt_paths=exempt,
                clock=clock,
            ),
        ]
    )

    return Pipeline(stages)

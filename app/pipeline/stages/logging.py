"""Request start/finish logging."""

from __future__ import annotations

import logging
import time

from app.pipeline.context import Next, RequestContext

logger = logging.getLogger("app.access")


async def logging_stage(ctx: RequestContext, call_next: Next) -> None:
    """Log the request path on entry and its final status and latency on exit.

    Runs outside fault isolation, so the finish event reports the status of
    absorbed failures too.
    """

    logger.info(
        "request.started",
        extra={"method": ctx.method, "path": ctx.path},
    )
    start = time.perf_counter()

    await call_next(ctx)

    logger.info(
        "request.finished",
        extra={
            "method": ctx.method,
            "path": ctx.path,
            "status_code": ctx.status_code,
            "duration_ms": round((time.perf_counter() - start) * 1000, 2),
        },
    )

from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (state, pipeline, routers, docs) so tests can
build isolated instances with their own settings, store and clock.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI

from app.adapters.counter_store.base import AbstractCounterStore
from app.adapters.counter_store.in_memory import InMemoryCounterStore
from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.api.routes import forecast_router, health_router
from app.core.config import Settings, settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import PipelineMiddleware
from app.core.openapi import apply_openapi_customizations
from app.pipeline.runner import build_pipeline

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    counter_store: AbstractCounterStore | None = None,
    limiter: AbstractRateLimiter | None = None,
    clock: Callable[[], float] = time.time,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    The counter store and address limiter are created once here and live
    for the whole process; they are exposed on ``app.state``.

    Args:
        settings: Settings to use; defaults to the global instance.
        counter_store: Store for the daily API key quota.
        limiter: Per-address limiter; built from settings when omitted.
        clock: UNIX time source for the default store, limiter and quota.
        configure_logs: Install the JSON logging handlers.

    Returns:
        Configured FastAPI app with pipeline middleware, routers and docs.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(cfg.log)

    store = counter_store or InMemoryCounterStore(clock=clock)
    if limiter is None and cfg.rate_limit.global_enabled:
        limiter = InMemoryFixedWindowRateLimiter(
            limit=cfg.rate_limit.global_permit_limit,
            window_seconds=cfg.rate_limit.global_window_seconds,
            clock=clock,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("app.startup", extra={"app_env": cfg.app_env})
        yield
        store.clear()
        logger.info("app.shutdown")

    app = FastAPI(
        title=cfg.app.title,
        description=(
            "Demo API served through a request pipeline: per-address throttling, "
            "a daily quota per X-API-Key, request logging and centralized "
            "error translation."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    app.state.settings = cfg
    app.state.counter_store = store
    app.state.limiter = limiter

    pipeline = build_pipeline(cfg, counter_store=store, limiter=limiter, clock=clock)
    app.state.pipeline = pipeline
    app.add_middleware(PipelineMiddleware, pipeline=pipeline)

    setup_exception_handlers(app)

    # Routers
    app.include_router(forecast_router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app, exempt_paths=cfg.rate_limit.exempt_paths)

    return app

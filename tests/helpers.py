"""Helpers for driving pipeline stages from synchronous tests."""

from __future__ import annotations

import asyncio

from app.pipeline.context import RequestContext

# 2024-03-09 12:00:00 UTC
NOON = 1_709_985_600.0


def run(coro):
    """Run a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


def responder(status_code: int = 200, body: str = "ok"):
    """Build a terminal endpoint that writes a fixed response."""

    calls: list[RequestContext] = []

    async def endpoint(ctx: RequestContext) -> None:
        calls.append(ctx)
        ctx.write(status_code, body)

    endpoint.calls = calls  # type: ignore[attr-defined]
    return endpoint


def raiser(exc: BaseException):
    """Build a terminal endpoint that raises ``exc``."""

    async def endpoint(ctx: RequestContext) -> None:
        raise exc

    return endpoint

"""Pytest configuration and fixtures shared across all test modules.

This file is loaded by pytest before any test module, so the environment
below is in place before ``app.core.config`` builds the global settings.
"""

from __future__ import annotations

import os
from typing import Callable
from unittest.mock import Mock

import pytest

# Set before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("RATE_LIMIT_API_KEY_DAILY_LIMIT", "100")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.adapters.counter_store.in_memory import InMemoryCounterStore  # noqa: E402
from app.pipeline.context import RequestContext  # noqa: E402
from helpers import NOON  # noqa: E402


@pytest.fixture
def clock() -> Mock:
    """Mutable UNIX clock; set ``clock.return_value`` to move time."""
    return Mock(return_value=NOON)


@pytest.fixture
def store(clock: Mock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def make_context() -> Callable[..., RequestContext]:
    def _make(
        path: str = "/v1/forecast",
        headers: dict[str, str] | None = None,
        **kwargs,
    ) -> RequestContext:
        return RequestContext.create("GET", path, headers or {}, **kwargs)

    return _make

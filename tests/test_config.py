"""Tests for settings parsing from the environment."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.core.config import LogSettings, RateLimitSettings


def test_global_limiter_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "RATE_LIMIT_GLOBAL_PERMIT_LIMIT",
        "RATE_LIMIT_GLOBAL_WINDOW_SECONDS",
        "RATE_LIMIT_API_KEY_DAILY_LIMIT",
        "RATE_LIMIT_EXEMPT_PATHS",
    ):
        monkeypatch.delenv(name, raising=False)

    cfg = RateLimitSettings()

    assert cfg.global_enabled is True
    assert cfg.global_permit_limit == 5
    assert cfg.global_window_seconds == 10
    assert cfg.api_key_daily_limit is None
    assert cfg.quota_atomic_increment is True
    assert cfg.exempt_paths == []


def test_daily_limit_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_API_KEY_DAILY_LIMIT", "250")

    assert RateLimitSettings().api_key_daily_limit == 250


@pytest.mark.parametrize("value", ["lots", "-1", "1.5"])
def test_unparseable_daily_limit_fails_fast(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("RATE_LIMIT_API_KEY_DAILY_LIMIT", value)

    with pytest.raises(ValidationError):
        RateLimitSettings()


def test_exempt_paths_from_json(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_EXEMPT_PATHS", '["/health", "/status"]')

    assert RateLimitSettings().exempt_paths == ["/health", "/status"]


def test_permit_limit_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_GLOBAL_PERMIT_LIMIT", "0")

    with pytest.raises(ValidationError):
        RateLimitSettings()


def test_log_settings_defaults() -> None:
    cfg = LogSettings()

    assert cfg.request_id_header == "X-Request-ID"
    assert cfg.format == "json"

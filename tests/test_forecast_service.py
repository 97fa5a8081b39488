"""Unit tests for the forecast service behind the demo endpoints."""

from __future__ import annotations

import datetime as dt

import pytest

from app.core.errors import NotFoundAppError, ValidationAppError
from app.services.forecast_service import MAX_DAYS, get_forecast

TODAY = dt.date(2024, 3, 9)


def test_forecast_is_deterministic() -> None:
    first = get_forecast("Oslo", 3, today=TODAY)
    second = get_forecast("oslo", 3, today=TODAY)

    assert first == second
    assert first.city == "oslo"
    assert [f.day for f in first.forecasts] == [
        TODAY,
        TODAY + dt.timedelta(days=1),
        TODAY + dt.timedelta(days=2),
    ]


@pytest.mark.parametrize("days", [0, -3, MAX_DAYS + 1])
def test_days_out_of_range(days: int) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        get_forecast("oslo", days, today=TODAY)

    assert exc_info.value.code == "invalid_days"


def test_unknown_city() -> None:
    with pytest.raises(NotFoundAppError) as exc_info:
        get_forecast("atlantis", 1, today=TODAY)

    assert exc_info.value.details == {"resource": "city", "identifier": "atlantis"}

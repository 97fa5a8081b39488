"""Forecast service backing the demo endpoints.

Values are derived from a hash of (city, day), so the same request always
returns the same forecast.
"""

from __future__ import annotations

import datetime as dt
import hashlib

from app.core.errors import NotFoundAppError, ValidationAppError
from app.schemas.forecast import Forecast, ForecastResponse

MIN_DAYS = 1
MAX_DAYS = 14
DEFAULT_CITY = "lisbon"

SUMMARIES = (
    "Freezing",
    "Bracing",
    "Chilly",
    "Cool",
    "Mild",
    "Warm",
    "Balmy",
    "Hot",
    "Sweltering",
    "Scorching",
)

# Base temperature (Celsius) per known city
CITIES: dict[str, int] = {
    "lisbon": 18,
    "oslo": 4,
    "cairo": 28,
    "london": 11,
    "sao-paulo": 22,
}


def _day_forecast(city: str, day: dt.date) -> Forecast:
    digest = hashlib.sha256(f"{city}:{day.isoformat()}".encode()).digest()
    temperature = CITIES[city] + (digest[0] % 11) - 5
    index = min(len(SUMMARIES) - 1, max(0, (temperature + 10) // 5))
    return Forecast(day=day, temperature_c=temperature, summary=SUMMARIES[index])


def get_forecast(city: str, days: int, *, today: dt.date | None = None) -> ForecastResponse:
    """Build a forecast for ``city`` covering ``days`` days from ``today``.

    Raises:
        ValidationAppError: If days is outside [MIN_DAYS, MAX_DAYS].
        NotFoundAppError: If the city is unknown.
    """

    if not MIN_DAYS <= days <= MAX_DAYS:
        raise ValidationAppError(
            code="invalid_days",
            message=f"days must be between {MIN_DAYS} and {MAX_DAYS}",
            details={"field": "days", "actual_value": days},
        )

    key = city.strip().lower()
    if key not in CITIES:
        raise NotFoundAppError(
            code="city_not_found",
            message=f"No forecast available for city {city!r}",
            details={"resource": "city", "identifier": city},
        )

    start = today or dt.datetime.now(dt.timezone.utc).date()
    forecasts = [_day_forecast(key, start + dt.timedelta(days=offset)) for offset in range(days)]
    return ForecastResponse(city=key, days=days, forecasts=forecasts)

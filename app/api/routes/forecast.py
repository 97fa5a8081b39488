from __future__ import annotations

from fastapi import APIRouter

from app.schemas.forecast import ForecastResponse
from app.services.forecast_service import DEFAULT_CITY, get_forecast

router = APIRouter(tags=["Forecast"])


@router.get("/forecast", response_model=ForecastResponse)
async def default_forecast(days: int = 5) -> ForecastResponse:
    """Forecast for the default city.

    Requires the X-API-Key header. Each successful call consumes one unit of
    the key's daily quota; the remaining budget is returned in
    X-RateLimit-Remaining.
    """

    return get_forecast(DEFAULT_CITY, days)


@router.get("/forecast/{city}", response_model=ForecastResponse)
async def city_forecast(city: str, days: int = 5) -> ForecastResponse:
    """Forecast for a named city; unknown cities answer 404."""

    return get_forecast(city, days)

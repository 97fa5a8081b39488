"""Pydantic schemas for forecast responses."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field


class Forecast(BaseModel):
    """One day of forecast for one city."""

    day: dt.date = Field(..., description="Calendar day (UTC) of the forecast.")
    temperature_c: int = Field(..., description="Expected temperature in Celsius.")
    summary: str = Field(..., description="Short description of the weather.")


class ForecastResponse(BaseModel):
    """Multi-day forecast for one city."""

    city: str = Field(..., description="City the forecast applies to.")
    days: int = Field(..., description="Number of days returned.")
    forecasts: list[Forecast] = Field(default_factory=list)

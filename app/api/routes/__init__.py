from __future__ import annotations

from app.api.routes.forecast import router as forecast_router
from app.api.routes.health import router as health_router

__all__ = ["forecast_router", "health_router"]

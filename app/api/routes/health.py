from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe.

    Goes through the full pipeline like any other route; add it to
    ``RATE_LIMIT_EXEMPT_PATHS`` to serve it without an API key.
    """

    return {"status": "ok"}

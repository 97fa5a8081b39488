"""Fault isolation: the one place downstream exceptions are handled.

Every exception raised below this stage is classified through
``app.core.errors.ERROR_TABLE`` and rendered as
``{"StatusCode": ..., "Message": ...}``. The exception detail goes to the
server log only; clients get the generic message for its class. Nothing
above this stage ever sees a raised exception.
"""

from __future__ import annotations

import logging

from app.core.errors import AppError, resolve_error
from app.core.logging import get_request_id
from app.pipeline.context import Next, RequestContext
from app.schemas.errors import ErrorResponse

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"


def render_error(ctx: RequestContext, exc: Exception) -> None:
    """Log ``exc`` and replace the response with its classified error body."""

    kind, mapping = resolve_error(exc)

    extra = {
        "error_kind": kind.value,
        "error_type": type(exc).__name__,
        "error_msg": str(exc),
        "status_code": mapping.status_code,
        "request_path": ctx.path,
        "request_method": ctx.method,
        "request_id": get_request_id(),
    }
    if isinstance(exc, AppError):
        extra["error_code"] = exc.code
        if exc.details:
            extra["error_details"] = exc.details

    logger.log(
        mapping.log_level,
        "unhandled_exception" if mapping.status_code >= 500 else "app_error_handled",
        extra=extra,
        exc_info=exc if mapping.status_code >= 500 else None,
    )

    body = ErrorResponse(status_code=mapping.status_code, message=mapping.message)
    ctx.reset_response()
    ctx.write(
        mapping.status_code,
        body.model_dump_json(by_alias=True),
        media_type=JSON_MEDIA_TYPE,
    )


async def fault_isolation_stage(ctx: RequestContext, call_next: Next) -> None:
    try:
        await call_next(ctx)
    except Exception as exc:
        render_error(ctx, exc)

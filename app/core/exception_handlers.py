"""Exception handlers that hand framework errors to the pipeline.

FastAPI answers some failures inside the router, before the pipeline's fault
isolation stage can see them. The handlers registered here turn those
failures into ``AppError`` subclasses and re-raise them, so every error
response is rendered through the same classification table.

- RequestValidationError (bad query/path/body values) → ValidationAppError → 400
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from app.core.errors import ValidationAppError


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Re-raise request validation failures as ``ValidationAppError``.

    Only the locations of the rejected fields are kept in the error details;
    the rejected values are dropped so they never reach a log line.

    Raises:
        ValidationAppError: Always.
    """

    fields = [
        ".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()
    ]
    raise ValidationAppError(
        code="request_validation_failed",
        message="Request parameters failed validation",
        details={"field": ", ".join(fields)},
    ) from exc


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the framework-error handlers with ``app``.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """

    app.exception_handler(RequestValidationError)(request_validation_handler)

"""Application-level exception types and their HTTP classification.

Endpoints raise these (or the builtin equivalents listed in
``classify_exception``); the fault isolation stage turns them into
responses through ``ERROR_TABLE``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for server-side logs.

    Never returned to clients.
    """

    code: str
    message: str
    hint: str
    resource: str
    identifier: str
    field: str
    actual_value: Any
    request_id: str
    context: NotRequired[dict[str, Any]]


class ErrorKind(str, Enum):
    """Closed set of failure classes understood by the pipeline."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    INVALID_ARGUMENT = "invalid_argument"
    UNEXPECTED = "unexpected"


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message (logged, not sent to clients).
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    kind = ErrorKind.UNEXPECTED

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class AuthenticationAppError(AppError):
    """Raised when the caller's identity cannot be established."""

    kind = ErrorKind.AUTHENTICATION


class AuthorizationAppError(AppError):
    """Raised when an identified caller may not access a resource."""

    kind = ErrorKind.AUTHORIZATION


class NotFoundAppError(AppError):
    """Raised when a requested resource does not exist."""

    kind = ErrorKind.NOT_FOUND


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""

    kind = ErrorKind.INVALID_ARGUMENT


@dataclass(frozen=True)
class ErrorMapping:
    """HTTP rendering of one error kind."""

    status_code: int
    message: str
    log_level: int


ERROR_TABLE: dict[ErrorKind, ErrorMapping] = {
    ErrorKind.AUTHENTICATION: ErrorMapping(
        401, "Authentication failed.", logging.WARNING
    ),
    ErrorKind.AUTHORIZATION: ErrorMapping(
        401, "You are not authorized to access this resource.", logging.WARNING
    ),
    ErrorKind.NOT_FOUND: ErrorMapping(
        404, "The requested resource was not found.", logging.WARNING
    ),
    ErrorKind.INVALID_ARGUMENT: ErrorMapping(
        400, "Invalid request parameters.", logging.WARNING
    ),
    ErrorKind.UNEXPECTED: ErrorMapping(
        500, "An unexpected error occurred. Please try again later.", logging.ERROR
    ),
}


def classify_exception(exc: BaseException) -> ErrorKind:
    """Map an exception to its error kind.

    ``AppError`` subclasses carry their kind. Builtins are matched by type:
    ``PermissionError`` is an authorization failure, ``KeyError`` a missing
    resource and ``ValueError`` a bad argument. Anything else is unexpected.
    """

    if isinstance(exc, AppError):
        return exc.kind
    if isinstance(exc, PermissionError):
        return ErrorKind.AUTHORIZATION
    if isinstance(exc, KeyError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, ValueError):
        return ErrorKind.INVALID_ARGUMENT
    return ErrorKind.UNEXPECTED


def resolve_error(exc: BaseException) -> tuple[ErrorKind, ErrorMapping]:
    """Classify ``exc`` and look up its mapping (unknown kinds fall back to 500)."""

    kind = classify_exception(exc)
    mapping = ERROR_TABLE.get(kind, ERROR_TABLE[ErrorKind.UNEXPECTED])
    return kind, mapping

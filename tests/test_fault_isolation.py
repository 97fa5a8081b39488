"""Tests for the fault isolation stage.

Validates that every failure class maps to its status and generic message,
that the body is the structured JSON error, and that no internal detail
leaks to the client.
"""

from __future__ import annotations

import json
import logging

import pytest

from app.core.errors import (
    ERROR_TABLE,
    AuthenticationAppError,
    AuthorizationAppError,
    ErrorKind,
    NotFoundAppError,
    ValidationAppError,
    classify_exception,
)
from app.pipeline.stages.fault_isolation import fault_isolation_stage
from helpers import raiser, responder, run


@pytest.mark.parametrize(
    ("exc", "status_code", "message"),
    [
        (
            AuthenticationAppError(code="bad_token", message="token expired"),
            401,
            "Authentication failed.",
        ),
        (
            AuthorizationAppError(code="forbidden", message="role missing"),
            401,
            "You are not authorized to access this resource.",
        ),
        (
            PermissionError("no access to /etc/shadow"),
            401,
            "You are not authorized to access this resource.",
        ),
        (
            NotFoundAppError(code="city_not_found", message="no row 42"),
            404,
            "The requested resource was not found.",
        ),
        (KeyError("user:42"), 404, "The requested resource was not found."),
        (
            ValidationAppError(code="invalid_days", message="days=99"),
            400,
            "Invalid request parameters.",
        ),
        (ValueError("invalid literal for int()"), 400, "Invalid request parameters."),
        (
            RuntimeError("database connection failed"),
            500,
            "An unexpected error occurred. Please try again later.",
        ),
    ],
)
def test_failure_classes_map_to_status_and_message(
    make_context, exc, status_code, message
) -> None:
    ctx = make_context()

    run(fault_isolation_stage(ctx, raiser(exc)))

    assert ctx.status_code == status_code
    assert ctx.media_type == "application/json"
    assert json.loads(bytes(ctx.body)) == {"StatusCode": status_code, "Message": message}


def test_not_found_body_is_exact_and_hides_detail(make_context) -> None:
    ctx = make_context()

    run(fault_isolation_stage(ctx, raiser(KeyError("secret table users_v2 row 17"))))

    assert bytes(ctx.body) == (
        b'{"StatusCode":404,"Message":"The requested resource was not found."}'
    )


def test_unexpected_error_never_leaks_internals(make_context) -> None:
    ctx = make_context()

    run(fault_isolation_stage(ctx, raiser(ZeroDivisionError("division by zero in billing.py"))))

    text = bytes(ctx.body).decode()
    assert ctx.status_code == 500
    assert "billing" not in text
    assert "ZeroDivisionError" not in text
    assert "Traceback" not in text


def test_partial_response_is_discarded(make_context) -> None:
    async def half_written(ctx) -> None:
        ctx.write(200, "partial")
        ctx.response_headers["X-Custom"] = "1"
        raise ValueError("late failure")

    ctx = make_context()
    run(fault_isolation_stage(ctx, half_written))

    assert ctx.status_code == 400
    assert "X-Custom" not in ctx.response_headers
    assert b"partial" not in bytes(ctx.body)


def test_passes_successful_response_through(make_context) -> None:
    ctx = make_context()

    run(fault_isolation_stage(ctx, responder(201, "created")))

    assert ctx.status_code == 201
    assert bytes(ctx.body) == b"created"


def test_client_errors_logged_as_warning(make_context, caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="app.pipeline.stages.fault_isolation")

    run(fault_isolation_stage(make_context(), raiser(KeyError("row 17"))))

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.error_kind == "not_found"
    assert "row 17" in record.error_msg


def test_unexpected_errors_logged_as_error_with_traceback(make_context, caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="app.pipeline.stages.fault_isolation")

    run(fault_isolation_stage(make_context(), raiser(RuntimeError("db down"))))

    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    assert record.error_type == "RuntimeError"
    assert record.exc_info is not None


def test_app_error_code_is_logged(make_context, caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="app.pipeline.stages.fault_isolation")

    exc = ValidationAppError(code="invalid_days", message="bad", details={"field": "days"})
    run(fault_isolation_stage(make_context(), raiser(exc)))

    record = caplog.records[-1]
    assert record.error_code == "invalid_days"
    assert record.error_details == {"field": "days"}


class TestClassification:
    def test_table_covers_every_kind(self) -> None:
        assert set(ERROR_TABLE) == set(ErrorKind)

    def test_subclasses_inherit_builtin_mapping(self) -> None:
        assert classify_exception(UnicodeDecodeError("utf-8", b"", 0, 1, "x")) is ErrorKind.INVALID_ARGUMENT
        assert classify_exception(IndexError("x")) is ErrorKind.UNEXPECTED
        assert classify_exception(TypeError("x")) is ErrorKind.UNEXPECTED

    def test_app_error_str_is_message(self) -> None:
        exc = NotFoundAppError(code="c", message="missing thing")
        assert str(exc) == "missing thing"

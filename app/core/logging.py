"""Logging setup for the request pipeline.

Every pipeline stage logs through the standard ``logging`` module with
event-style messages (``request.finished``, ``rate_limit.exceeded``) and
structured ``extra`` fields. This module wires the root logger:

- the current request id is kept in a context variable and stamped on records
- API keys never reach a handler in clear text: credential fields are
  redacted and quota keys have the embedded key replaced by its fingerprint
- records are rendered as one JSON object per line, or a plain text line
- output goes to stdout or a rotating file
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from app.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "api_key",
        "x-api-key",
        "x_api_key",
        "authorization",
        "token",
        "secret",
        "password",
        "cookie",
        "set-cookie",
    }
)

# api-key-daily-rate-limit-{api_key}-{YYYYMMDD}
_QUOTA_KEY_RE = re.compile(r"^(api-key-daily-rate-limit-)(.+)(-\d{8})$")

# Attributes every LogRecord has; anything else was passed through ``extra``
_RECORD_ATTRS = frozenset(
    LogRecord("", logging.NOTSET, "", 0, "", None, None).__dict__
) | {"message", "asctime", "stack"}

_SILENCED_LOGGERS = ("uvicorn", "uvicorn.access")

# Set on a record once its extras are redacted; masking is not idempotent
_REDACTED_FLAG = "_redacted"


def get_request_id() -> str | None:
    """Return the id of the request being processed, if any."""

    return _request_id_var.get()


@contextmanager
def request_id_scope(request_id: str) -> Iterator[str]:
    """Bind ``request_id`` for the duration of the block.

    The previous value is restored on exit, also when the block raises, so
    ids never leak from one request into the next.
    """

    token = _request_id_var.set(request_id)
    try:
        yield request_id
    finally:
        _request_id_var.reset(token)


def hash_identifier(value: str) -> str:
    """Return a short, stable fingerprint of a secret for log correlation.

    Examples:
        >>> len(hash_identifier("my-api-key"))
        16
    """

    return hashlib.sha256(value.encode()).hexdigest()[:16]


def mask_quota_key(value: str) -> str:
    """Replace the API key inside a daily quota key with its fingerprint.

    Values that are not quota keys are returned unchanged.

    Examples:
        >>> mask_quota_key("api-key-daily-rate-limit-abc-20240309")[:25]
        'api-key-daily-rate-limit-'
        >>> mask_quota_key("10.0.0.1")
        '10.0.0.1'
    """

    match = _QUOTA_KEY_RE.match(value)
    if match is None:
        return value
    prefix, api_key, day = match.groups()
    return f"{prefix}{hash_identifier(api_key)}{day}"


def _redact(value: Any, sensitive_keys: frozenset[str]) -> Any:
    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in sensitive_keys else _redact(v, sensitive_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_redact(v, sensitive_keys) for v in value)
    if isinstance(value, str):
        return mask_quota_key(value)
    return value


def record_extras(
    record: LogRecord,
    sensitive_keys: frozenset[str],
    *,
    redact: bool = True,
) -> dict[str, Any]:
    """Return the ``extra`` fields of ``record`` with credentials removed.

    With ``redact=False`` the extras are returned as they are; used for
    records a ``SensitiveDataFilter`` has already rewritten.
    """

    extras: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        if not redact:
            extras[key] = value
        elif key.lower() in sensitive_keys:
            extras[key] = REDACTED
        else:
            extras[key] = _redact(value, sensitive_keys)
    return extras


class RequestIdFilter(logging.Filter):
    """Stamp the current request id on records that carry none."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact credentials in the record's extras before any formatter runs."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(
            k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)
        )

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if not getattr(record, _REDACTED_FLAG, False):
            record.__dict__.update(record_extras(record, self.sensitive_keys))
            setattr(record, _REDACTED_FLAG, True)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: envelope fields first, then the extras."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(
            k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)
        )
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = record_extras(
            record,
            self.sensitive_keys,
            redact=not getattr(record, _REDACTED_FLAG, False),
        )
        request_id = extras.pop("request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id
        payload.update(extras)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


class PlainFormatter(logging.Formatter):
    """Human-readable lines for local runs, tagged with the request id."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: LogRecord) -> str:  # noqa: D401
        line = super().format(record)
        request_id = getattr(record, "request_id", None)
        return f"{line} [request_id={request_id}]" if request_id else line


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Return the stdout handler, or a file handler when output is "file"."""

    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/app.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(file_path, encoding="utf-8")
    return RotatingFileHandler(
        file_path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install a single redacting handler on the root logger.

    Args:
        log_settings: Logging section of the settings; the global one if omitted.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(
        PlainFormatter() if cfg.format.lower() == "plain" else JsonFormatter()
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn installs its own handlers; keep its records out of ours
    for name in _SILENCED_LOGGERS:
        logging.getLogger(name).propagate = False

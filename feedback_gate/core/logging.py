"""Logging utilities with JSON formatting, redaction, and request correlation.

Submissions carry patient feedback, so this module is strict about what
reaches a log line:
- request ids flow through contextvars and are stamped on every record
- form content, client addresses and secrets are redacted before formatting
- deployments can widen the redaction set with LOG_REDACT_FIELDS
- JSON lines go to stdout or to an optionally rotating file
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from feedback_gate.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Answers, client addresses and credentials; matched case-insensitively
SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "authorization",
        "token",
        "secret",
        "password",
        "cookie",
        "set-cookie",
        "x-forwarded-for",
        "client_ip",
        "form_data",
        "formdata",
        "submission",
        "existing",
        "data",
        "email",
        "phone",
        "name",
        "feedbacktext",
        "feedback_text",
    }
)

# LogRecord attributes that are never copied into the JSON payload
_EXCLUDED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "stack",
    }
)


def set_request_id(request_id: str | None) -> None:
    """Bind a correlation id to the current request context.

    Args:
        request_id: Id echoed in the X-Request-ID header and every log line.
    """

    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    """Return the correlation id bound to the current context, if any."""

    return _request_id_var.get()


def clear_request_id() -> None:
    """Unbind the correlation id once a request has finished."""

    _request_id_var.set(None)


def resolve_sensitive_keys(log_settings: LogSettings | None = None) -> frozenset[str]:
    """Combine the built-in redaction keys with configured extras.

    Args:
        log_settings: Settings whose ``redact_fields`` lists extra keys,
            comma separated. Defaults to the global settings.

    Returns:
        Lower-cased keys whose values must never be logged.
    """

    cfg = log_settings or settings.log
    extras = {part.strip().lower() for part in cfg.redact_fields.split(",") if part.strip()}
    return SENSITIVE_KEYS_DEFAULT | extras


def _is_sensitive_key(key: Any, sensitive_keys: Iterable[str]) -> bool:
    return str(key).lower() in sensitive_keys


def _redact_value(value: Any, sensitive_keys: frozenset[str]) -> Any:
    """Walk mappings and sequences, masking values stored under sensitive keys.

    Args:
        value: Any value attached to a record through ``extra``.
        sensitive_keys: Lower-cased keys to mask.

    Returns:
        A copy of value with masked entries; scalars are returned unchanged.
    """

    if isinstance(value, Mapping):
        return {
            k: REDACTED if _is_sensitive_key(k, sensitive_keys) else _redact_value(v, sensitive_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(v, sensitive_keys) for v in value)
    return value


def _sanitize_record(record: LogRecord, sensitive_keys: frozenset[str]) -> dict[str, Any]:
    """Collect the ``extra`` fields of a record with sensitive values masked.

    Args:
        record: Record about to be emitted.
        sensitive_keys: Lower-cased keys to mask.

    Returns:
        Field name to safe value, excluding standard LogRecord attributes.
    """

    return {
        key: REDACTED if _is_sensitive_key(key, sensitive_keys) else _redact_value(value, sensitive_keys)
        for key, value in record.__dict__.items()
        if key not in _EXCLUDED_ATTRS and not key.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Stamp the context's request id on records that lack one."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask sensitive ``extra`` fields in place so every formatter sees safe values."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT))

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in _sanitize_record(record, self.sensitive_keys).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON line.

    The line carries timestamp, level, logger, message, the request id when
    known, every sanitized ``extra`` field and, for errors, the traceback.
    """

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT))
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        record_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            record_data["request_id"] = request_id

        record_data.update(_sanitize_record(record, self.sensitive_keys))

        if record.exc_info:
            record_data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(record_data, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Create the output handler for the configured destination.

    Args:
        log_settings: Output, file path and rotation settings.

    Returns:
        A stdout stream handler, or a file handler that rotates when
        ``max_bytes`` is set.
    """

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
    """Install the redacting handler on the root logger.

    Replaces any handlers already on the root logger, so calling it again
    (for example from a second app instance in tests) does not duplicate output.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log
    sensitive_keys = resolve_sensitive_keys(cfg)

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter(sensitive_keys))

    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter(sensitive_keys=sensitive_keys))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn installs its own handlers; stop its records reaching the root twice
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False

"""Logging configuration and helpers for the Crewline API.

Two output formats are supported:

* human-readable console lines, and
* one JSON object per line for log shipping.

Request handlers bind a correlation ID through :func:`bind_request_context`
and every formatter stamps it on the records emitted while it is bound.
Structured fields travel through ``extra=log_context(...)``.
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from crewline_api.settings import Settings

# Request-scoped correlation ID, set/cleared by RequestContextMiddleware.
_CORRELATION_ID: ContextVar[str | None] = ContextVar(
    "crewline_correlation_id",
    default=None,
)

# Attributes already handled by logging; not copied into the key=value list.
_STANDARD_ATTRS: set[str] = {
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
    "message",
    "asctime",
    "correlation_id",
    "taskName",
    "color_message",
}

_CONFIGURED_FLAG = "_crewline_configured"
_SERVICE_NAME = "crewline-api"


def _format_timestamp(record: logging.LogRecord, pattern: str) -> str:
    dt = datetime.fromtimestamp(record.created, tz=UTC)
    return f"{dt.strftime(pattern)}.{int(record.msecs):03d}Z"


class ConsoleLogFormatter(logging.Formatter):
    """Render log records as single-line console output.

    Example line:

        2026-03-02T10:14:09.114Z INFO  crewline_api.features.rbac.roles [cid=5f0c]
        rbac.role.created role_id=... role_name=Estimator
    """

    _time_format = "%Y-%m-%dT%H:%M:%S"

    def __init__(self) -> None:
        fmt = "%(asctime)s %(levelname)-5s %(name)s [cid=%(correlation_id)s] %(message)s"
        super().__init__(fmt=fmt, datefmt=self._time_format)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _format_timestamp(record, datefmt or self._time_format)

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - std signature
        record.correlation_id = (
            getattr(record, "correlation_id", None) or _CORRELATION_ID.get() or "-"
        )
        base = super().format(record)

        extras = [
            f"{key}={_format_extra_value(value)}"
            for key, value in sorted(_record_extras(record).items())
        ]
        if extras:
            return f"{base} " + " ".join(extras)
        return base


class JsonLogFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    _time_format = "%Y-%m-%dT%H:%M:%S"

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _format_timestamp(record, datefmt or self._time_format)

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - std signature
        cid = getattr(record, "correlation_id", None) or _CORRELATION_ID.get() or "-"
        record.correlation_id = cid
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self._time_format),
            "level": record.levelname,
            "service": _SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": cid,
        }
        payload.update(_record_extras(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default, separators=(",", ":"))


def setup_logging(settings: Settings) -> None:
    """Configure root logging for the Crewline API process.

    Installs a single StreamHandler on the root logger and routes uvicorn and
    SQLAlchemy loggers through it so every line shares one format.
    """
    root_logger = logging.getLogger()
    level = getattr(logging, settings.log_level)

    configured = getattr(root_logger, _CONFIGURED_FLAG, False)
    if not configured or not root_logger.handlers:
        root_logger.handlers = [logging.StreamHandler()]
        setattr(root_logger, _CONFIGURED_FLAG, True)
    else:
        root_logger.handlers = [root_logger.handlers[0]]

    handler = root_logger.handlers[0]
    handler.setFormatter(_build_formatter(settings.log_format))
    root_logger.setLevel(level)

    for name in (
        "uvicorn",
        "uvicorn.error",
        "uvicorn.access",
        "crewline_api.request",
        "sqlalchemy",
        "sqlalchemy.engine",
        "sqlalchemy.pool",
    ):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.disabled = False
        logger.setLevel(logging.NOTSET)

    logging.getLogger("uvicorn").setLevel(level)
    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("crewline_api.request").setLevel(
        getattr(logging, settings.effective_request_log_level)
    )

    access_logger = logging.getLogger("uvicorn.access")
    if settings.access_log_enabled:
        access_logger.setLevel(level)
    else:
        access_logger.propagate = False
        access_logger.disabled = True

    # SQL traces only on request: CREWLINE_DATABASE_LOG_LEVEL=INFO|DEBUG.
    db_level = getattr(logging, settings.database_log_level or "WARNING")
    for name in ("sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool"):
        logging.getLogger(name).setLevel(db_level)


def bind_request_context(correlation_id: str | None) -> None:
    """Bind a correlation ID to the logging context for the current request."""
    _CORRELATION_ID.set(correlation_id)


def clear_request_context() -> None:
    """Clear the request-scoped logging context."""
    _CORRELATION_ID.set(None)


def current_request_id() -> str | None:
    """Return the current request/correlation ID if bound."""
    return _CORRELATION_ID.get()


def log_context(
    *,
    role_id: UUID | str | None = None,
    user_id: UUID | str | None = None,
    actor_id: UUID | str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a consistent ``extra`` payload for structured logs.

    Example:
        logger.info(
            "rbac.member.assigned",
            extra=log_context(role_id=role.id, user_id=user_id),
        )
    """
    ctx: dict[str, Any] = {}

    if role_id is not None:
        ctx["role_id"] = str(role_id)
    if user_id is not None:
        ctx["user_id"] = str(user_id)
    if actor_id is not None:
        ctx["actor_id"] = str(actor_id)

    for key, value in extra.items():
        ctx[key] = value

    return ctx


def _format_extra_value(value: Any) -> str:
    if value is None:
        return "null"
    return str(value)


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    extras: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_ATTRS or key.startswith("_"):
            continue
        extras[key] = value
    return extras


def _json_default(value: Any) -> str:
    return str(value)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return JsonLogFormatter()
    return ConsoleLogFormatter()


__all__ = [
    "ConsoleLogFormatter",
    "JsonLogFormatter",
    "bind_request_context",
    "clear_request_context",
    "current_request_id",
    "log_context",
    "setup_logging",
]

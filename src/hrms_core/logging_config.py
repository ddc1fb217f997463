"""Structured JSON logging for the HRMS core."""

from __future__ import annotations

import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

_LOGGER_PREFIX = "hrms_core"


class LogContext:
    """Async-safe holder for request-scoped log fields."""

    _tenant_id: ContextVar[str | None] = ContextVar("log_tenant_id", default=None)
    _subject_id: ContextVar[str | None] = ContextVar("log_subject_id", default=None)
    _document_id: ContextVar[str | None] = ContextVar("log_document_id", default=None)
    _correlation_id: ContextVar[str | None] = ContextVar(
        "log_correlation_id", default=None
    )

    _FIELD_NAMES = ("tenant_id", "subject_id", "document_id", "correlation_id")

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Return all non-None context fields as a dict."""
        ctx: dict[str, str] = {}
        for name in cls._FIELD_NAMES:
            val = getattr(cls, f"_{name}").get()
            if val is not None:
                ctx[name] = val
        return ctx

    @classmethod
    def clear(cls) -> None:
        """Reset all context fields to None."""
        for name in cls._FIELD_NAMES:
            getattr(cls, f"_{name}").set(None)

    @classmethod
    def bind(cls, **kwargs: Any) -> _LogContextManager:
        """Context manager that sets fields on entry and restores on exit."""
        return _LogContextManager(**kwargs)


class _LogContextManager:
    def __init__(self, **kwargs: Any):
        self._kwargs = kwargs
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> type[LogContext]:
        for key, val in self._kwargs.items():
            if val is None:
                continue
            var = getattr(LogContext, f"_{key}", None)
            if var is not None:
                self._tokens[key] = var.set(str(val))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        for key, token in self._tokens.items():
            getattr(LogContext, f"_{key}").reset(token)


_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class _JSONEncoder(json.JSONEncoder):
    """Handle UUID, datetime and Decimal in log payloads."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (UUID, Decimal)):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the hrms_core namespace."""
    if name.startswith(f"{_LOGGER_PREFIX}.") or name == _LOGGER_PREFIX:
        return logging.getLogger(name)
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    json_format: bool = True,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Configure the hrms_core logger hierarchy (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    if json_format:
        h.setFormatter(StructuredFormatter())
    else:
        h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Reset logging configuration. For tests only."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True

from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Mapping

__all__ = ["LOG_FORMAT_CONSOLE", "LOG_FORMAT_ENV", "LOG_FORMAT_JSON", "LogContext", "StructuredConsoleFormatter", "StructuredJSONFormatter", "get_logger"]


LOG_FORMAT_ENV = "PORTMAPPER_LOG_FORMAT"
LOG_FORMAT_JSON = "json"
LOG_FORMAT_CONSOLE = "console"

_DEFAULT_CONTEXT_KEYS = ("operation", "service_name", "port")
_LOG_CONTEXT: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar("portmapper_log_context")

_DEFAULT_CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s operation=%(operation)s service_name=%(service_name)s port=%(port)s"

_RESERVED_FIELDS = {"timestamp", "level", "logger", "message", "exception", "stack"}

_LOG_RECORD_ATTRS = {"name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs", "relativeCreated", "thread", "threadName", "processName", "process", "taskName", "message", "asctime"}


def _normalize_log_format(value: str | None) -> str:
    if not value:
        return LOG_FORMAT_JSON
    normalized = value.strip().lower()
    if normalized in {LOG_FORMAT_JSON, LOG_FORMAT_CONSOLE}:
        return normalized
    return LOG_FORMAT_JSON


def _json_default(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return repr(value)


def _extract_extras(record: logging.LogRecord) -> dict[str, Any]:
    extras: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _LOG_RECORD_ATTRS or key.startswith("_"):
            continue
        extras[key] = value
    return extras


def _context_snapshot() -> dict[str, Any]:
    current = _LOG_CONTEXT.get({})
    snapshot: dict[str, Any] = {key: current.get(key) for key in _DEFAULT_CONTEXT_KEYS}
    for key, value in current.items():
        if key not in snapshot:
            snapshot[key] = value
    return snapshot


def _filter_reserved(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if key not in _RESERVED_FIELDS}


def _handler_exists(logger: logging.Logger, format_kind: str) -> bool:
    for handler in logger.handlers:
        if getattr(handler, "_portmapper_handler", False) and getattr(
            handler, "_format_kind", None
        ) == format_kind:
            return True
    return False


class LogContext:
    """Async-safe structured logging context.

    Values bound here are attached to every record emitted while the context
    is active, including records emitted by tasks spawned inside it.

    Args:
        **values: Context fields, e.g. ``operation``, ``service_name``, ``port``.
    """

    def __init__(self, **values: Any) -> None:
        self._values = {key: value for key, value in values.items() if value is not None}
        self._token: contextvars.Token[dict[str, Any]] | None = None

    def __enter__(self) -> LogContext:
        current = _LOG_CONTEXT.get({})
        self._token = _LOG_CONTEXT.set({**current, **self._values})
        return self

    def __exit__(self, exc_type, exc, traceback) -> None:
        if self._token is not None:
            _LOG_CONTEXT.reset(self._token)
            self._token = None

    @classmethod
    def clear(cls) -> None:
        _LOG_CONTEXT.set({})

    @classmethod
    def snapshot(cls) -> dict[str, Any]:
        return _context_snapshot()


class ContextFilter(logging.Filter):

    def filter(self, record: logging.LogRecord) -> bool:
        context = _context_snapshot()
        for key, value in context.items():
            if hasattr(record, key):
                continue
            record.__dict__[key] = "-" if value is None else value
        return True


class StructuredJSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects.

    Args:
        datefmt: Optional date format string.
        ensure_ascii: Whether to escape non-ASCII characters.
    """

    def __init__(self, *, datefmt: str | None = None, ensure_ascii: bool = True) -> None:
        super().__init__(datefmt=datefmt)
        self._ensure_ascii = ensure_ascii

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_filter_reserved(_context_snapshot()))
        payload.update(_filter_reserved(_extract_extras(record)))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info
        return json.dumps(payload, default=_json_default, ensure_ascii=self._ensure_ascii)


class StructuredConsoleFormatter(logging.Formatter):

    def __init__(self, fmt: str | None = None, *, datefmt: str | None = None) -> None:
        super().__init__(fmt=fmt or _DEFAULT_CONSOLE_FORMAT, datefmt=datefmt)


def get_logger(
    name: str,
    *,
    log_format: str | None = None,
    level: int | None = None,
    stream: Any | None = None,
) -> logging.Logger:
    """Return a logger with a structured handler attached.

    The format is taken from ``log_format`` or the ``PORTMAPPER_LOG_FORMAT``
    environment variable, defaulting to JSON. Calling this twice for the same
    logger and format does not add a second handler.
    """
    resolved_format = _normalize_log_format(log_format or os.getenv(LOG_FORMAT_ENV))
    if resolved_format == LOG_FORMAT_CONSOLE:
        formatter: logging.Formatter = StructuredConsoleFormatter()
    else:
        formatter = StructuredJSONFormatter()
    logger = logging.getLogger(name)
    if _handler_exists(logger, resolved_format):
        return logger
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    handler.setLevel(level or logging.NOTSET)
    handler._portmapper_handler = True
    handler._format_kind = resolved_format
    logger.addHandler(handler)
    if level is not None:
        logger.setLevel(level)
    elif logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger

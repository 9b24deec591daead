"""Structured logging for Nexa Search.

Every log line is a JSON object. Keyword arguments passed to a logger call
become top-level fields, and the fields of the request being served (request
id, method, path) are attached automatically while that request is active,
so a degraded table or a failed analytics write can be traced back to the
search that caused it.

Usage:
    logger = get_logger(__name__)
    logger.warning("Timed out searching table", index_id="partners")

    table_log = logger.bind(index_id="users")
    table_log.info("Fetched page", rows=20)
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_SERVICE_NAME = "nexa-search"

# Attributes every LogRecord carries; anything else was passed as a field
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

# Libraries that are too chatty at INFO for a search service
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "httpx")

_loggers: dict[str, "StructuredLogger"] = {}


# =============================================================================
# REQUEST CONTEXT
# =============================================================================


@dataclass
class RequestContext:
    """Fields identifying the request a log line belongs to."""

    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    method: Optional[str] = None
    path: Optional[str] = None
    query: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        fields = {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "query": self.query,
        }
        fields = {k: v for k, v in fields.items() if v is not None}
        fields.update(self.extra)
        return fields


_current_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "nexa_search_request_context", default=None
)


def bind_request_context(context: RequestContext) -> Token:
    """Make ``context`` the active request for this task and its children."""
    return _current_context.set(context)


def reset_request_context(token: Token) -> None:
    _current_context.reset(token)


def current_request_context() -> Optional[RequestContext]:
    return _current_context.get()


class RequestContextFilter(logging.Filter):
    """Copy the active request's fields onto each record passing through.

    Fields already present on the record win over the request's.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = _current_context.get()
        if context is not None:
            for key, value in context.to_dict().items():
                if not hasattr(record, key):
                    setattr(record, key, value)
        return True


# =============================================================================
# FORMATTER
# =============================================================================


def _json_safe(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON line."""

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        if record.levelno >= logging.WARNING:
            entry["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            entry["exception"] = "".join(traceback.format_exception(*record.exc_info))

        entry.update(
            (key, _json_safe(value))
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        )

        return json.dumps(entry)


# =============================================================================
# LOGGER
# =============================================================================


class StructuredLogger:
    """Logger whose keyword arguments become structured fields.

    ``bind()`` returns a child logger that adds fixed fields to every call.
    """

    def __init__(self, name: str, bound: Optional[dict[str, Any]] = None):
        self.name = name
        self.bound: dict[str, Any] = dict(bound or {})
        self._logger = logging.getLogger(name)

    def bind(self, **fields: Any) -> "StructuredLogger":
        return StructuredLogger(self.name, {**self.bound, **fields})

    def _log(
        self,
        level: int,
        msg: str,
        context: Optional[RequestContext] = None,
        exc_info: bool = False,
        **fields: Any,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return

        extra = dict(self.bound)
        if context is not None:
            extra.update(context.to_dict())
        extra.update(fields)

        self._logger.log(level, msg, exc_info=exc_info, extra=extra, stacklevel=3)

    def debug(self, msg: str, context: Optional[RequestContext] = None, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, context, **fields)

    def info(self, msg: str, context: Optional[RequestContext] = None, **fields: Any) -> None:
        self._log(logging.INFO, msg, context, **fields)

    def warning(self, msg: str, context: Optional[RequestContext] = None, **fields: Any) -> None:
        self._log(logging.WARNING, msg, context, **fields)

    def error(
        self,
        msg: str,
        context: Optional[RequestContext] = None,
        exc_info: bool = False,
        **fields: Any,
    ) -> None:
        self._log(logging.ERROR, msg, context, exc_info=exc_info, **fields)


def get_logger(name: str) -> StructuredLogger:
    """Get the shared StructuredLogger for ``name``."""
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name)
    return _loggers[name]


def configure_logging(
    level: str = DEFAULT_LOG_LEVEL,
    json_format: bool = True,
    service_name: str = DEFAULT_SERVICE_NAME,
) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Emit JSON lines instead of plain text.
        service_name: Value of the ``service`` field in JSON lines.
    """
    numeric_level = getattr(logging, level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.addFilter(RequestContextFilter())
    if json_format:
        handler.setFormatter(JsonFormatter(service_name=service_name))
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

"""Observability package for logging and metrics."""

from nexa_search.observability.logging import (
    JsonFormatter,
    RequestContext,
    RequestContextFilter,
    StructuredLogger,
    bind_request_context,
    configure_logging,
    current_request_context,
    get_logger,
    reset_request_context,
)
from nexa_search.observability.metrics import (
    MetricsCollector,
    get_collector,
)

__all__ = [
    "JsonFormatter",
    "MetricsCollector",
    "RequestContext",
    "RequestContextFilter",
    "StructuredLogger",
    "bind_request_context",
    "configure_logging",
    "current_request_context",
    "get_collector",
    "get_logger",
    "reset_request_context",
]

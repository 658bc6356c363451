from __future__ import annotations

from portmapper.observability.events import (
    AttemptOutcome,
    CollectingEventSink,
    EventSink,
    LoggingEventSink,
    RegistryEvent,
)
from portmapper.observability.logging import (
    LOG_FORMAT_CONSOLE,
    LOG_FORMAT_ENV,
    LOG_FORMAT_JSON,
    LogContext,
    StructuredConsoleFormatter,
    StructuredJSONFormatter,
    get_logger,
)
from portmapper.observability.metrics import Counter, MetricLabels, RegistryMetrics

__all__ = [
    "AttemptOutcome",
    "CollectingEventSink",
    "EventSink",
    "LoggingEventSink",
    "RegistryEvent",
    "LOG_FORMAT_CONSOLE",
    "LOG_FORMAT_ENV",
    "LOG_FORMAT_JSON",
    "LogContext",
    "StructuredConsoleFormatter",
    "StructuredJSONFormatter",
    "get_logger",
    "Counter",
    "MetricLabels",
    "RegistryMetrics",
]

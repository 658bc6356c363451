"""Structured events describing every store attempt made by the registry."""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field

from portmapper.observability.metrics import RegistryMetrics

__all__ = [
    "AttemptOutcome",
    "CollectingEventSink",
    "EventSink",
    "LoggingEventSink",
    "RegistryEvent",
]


class AttemptOutcome(str, enum.Enum):
    SUCCESS = "success"
    # deadline exceeded, will retry
    RETRY = "retry"
    # non-timeout failure, not retried
    FAILED = "failed"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RegistryEvent:
    operation: str
    service_name: str | None
    port: int | None
    attempt: int
    outcome: AttemptOutcome
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["outcome"] = self.outcome.value
        return data


class EventSink(ABC):
    """Receives one event per store attempt and one per final outcome."""

    @abstractmethod
    async def emit(self, event: RegistryEvent) -> None:
        raise NotImplementedError


class LoggingEventSink(EventSink):
    """Logs events and counts attempts."""

    _LEVELS = {
        AttemptOutcome.SUCCESS: logging.INFO,
        AttemptOutcome.RETRY: logging.WARNING,
        AttemptOutcome.FAILED: logging.ERROR,
        AttemptOutcome.EXHAUSTED: logging.ERROR,
    }

    def __init__(self, logger: logging.Logger | None = None,
                 metrics: RegistryMetrics | None = None) -> None:
        self._logger = logger or logging.getLogger("portmapper.events")
        self.metrics = metrics or RegistryMetrics()

    async def emit(self, event: RegistryEvent) -> None:
        await self.metrics.record_attempt(event.operation, event.outcome.value)
        if event.service_name is None:
            target = "registry"
        elif event.port is None:
            target = event.service_name
        else:
            target = f"{event.service_name}:{event.port}"
        if event.outcome is AttemptOutcome.SUCCESS:
            msg = f"{event.operation} succeeded for {target}"
        elif event.outcome is AttemptOutcome.RETRY:
            msg = f"{event.operation} exceeded deadline for {target}, retrying"
        elif event.outcome is AttemptOutcome.EXHAUSTED:
            msg = f"{event.operation} gave up for {target} after {event.attempt} attempts"
        else:
            msg = f"{event.operation} failed for {target}: {event.error}"
        self._logger.log(self._LEVELS[event.outcome], msg, extra=event.to_dict())


@dataclass
class CollectingEventSink(EventSink):
    """Keeps events in memory; useful for inspection and tests."""

    events: list[RegistryEvent] = field(default_factory=list)

    async def emit(self, event: RegistryEvent) -> None:
        self.events.append(event)

    def outcomes(self, operation: str | None = None) -> list[AttemptOutcome]:
        return [e.outcome for e in self.events if operation is None or e.operation == operation]

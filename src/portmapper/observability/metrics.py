from __future__ import annotations

from dataclasses import dataclass
import threading

__all__ = [
    "MetricLabels",
    "Counter",
    "RegistryMetrics",
]


@dataclass(frozen=True)
class MetricLabels:
    operation: str = ""
    outcome: str = ""


class Counter:

    def __init__(self, name: str, description: str) -> None:
        self.name = name
        self.description = description
        self._values: dict[tuple[str, str], float] = {}
        self._lock = threading.Lock()

    async def record(self, value: float, labels: MetricLabels) -> None:
        key = (labels.operation, labels.outcome)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + value

    async def inc(self, labels: MetricLabels) -> None:
        await self.record(1.0, labels)

    def get(self) -> dict[tuple[str, str], float]:
        with self._lock:
            return dict(self._values)

    def reset(self) -> None:
        with self._lock:
            self._values.clear()


class RegistryMetrics:
    """Counters for store attempts, per sink instance."""

    def __init__(self) -> None:
        self.attempts_total = Counter(
            "portmapper_store_attempts_total",
            "Store attempts by operation and outcome",
        )

    async def record_attempt(self, operation: str, outcome: str) -> None:
        await self.attempts_total.inc(MetricLabels(operation=operation, outcome=outcome))

    def count(self, operation: str, outcome: str) -> int:
        return int(self.attempts_total.get().get((operation, outcome), 0.0))

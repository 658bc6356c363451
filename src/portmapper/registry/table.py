from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace

from portmapper.config.models import PortmapperConfig
from portmapper.entities.service_record import ServiceRecord
from portmapper.registry.client import RetryingStoreClient
from portmapper.registry.heartbeat import HeartbeatScheduler, SchedulerState

logger = logging.getLogger(__name__)


@dataclass
class RegistrationEntry:
    """A locally declared service and the outcome of its last re-assertion."""

    record: ServiceRecord
    # unix seconds, 0 = never attempted
    last_attempt_timestamp: int = 0
    last_error: BaseException | None = None

    @property
    def healthy(self) -> bool:
        return self.last_attempt_timestamp > 0 and self.last_error is None


class RegistrationTable:
    """Process-wide map of service name -> RegistrationEntry.

    The first :meth:`upsert` starts the heartbeat scheduler; later upserts only
    replace entries. Safe to read and write from several threads and tasks.
    """

    def __init__(self, config: PortmapperConfig, client: RetryingStoreClient) -> None:
        self._config = config
        self._client = client
        self._lock = threading.Lock()
        self._entries: dict[str, RegistrationEntry] = {}
        self._heartbeat = HeartbeatScheduler(self, client, config.heartbeat_period_seconds)

    @property
    def heartbeat(self) -> HeartbeatScheduler:
        return self._heartbeat

    async def upsert(self, name: str, port: int, host: str | None = None) -> None:
        """Declare ``name`` on ``port``. Never contacts the store and never fails.

        Must be called from within a running event loop the first time, since
        that is where the heartbeat task is created. Raises RuntimeError once
        the heartbeat has been stopped.
        """
        if self._heartbeat.state is SchedulerState.STOPPED:
            raise RuntimeError(f"Cannot register {name}: heartbeat scheduler has been stopped")
        record = self._client.make_record(name, port, host)
        with self._lock:
            previous = self._entries.get(name)
            self._entries[name] = RegistrationEntry(record=record)
        if previous is not None and previous.record != record:
            logger.info(f"Replaced registration {previous.record.instance_id} with {record.instance_id}")
        self._heartbeat.ensure_started()

    def remove(self, name: str) -> RegistrationEntry | None:
        """Stop re-asserting ``name``. Does not touch the store."""
        with self._lock:
            return self._entries.pop(name, None)

    def get(self, name: str) -> RegistrationEntry | None:
        with self._lock:
            entry = self._entries.get(name)
            return None if entry is None else replace(entry)

    def snapshot(self) -> dict[str, RegistrationEntry]:
        """Point-in-time copy of every entry."""
        with self._lock:
            return {name: replace(entry) for name, entry in self._entries.items()}

    def record_attempt(self, name: str, record: ServiceRecord, timestamp: int,
                       error: BaseException | None) -> None:
        """Store the outcome of re-asserting ``record``.

        Ignored when the entry has since been replaced or removed.
        """
        with self._lock:
            entry = self._entries.get(name)
            if entry is None or entry.record is not record:
                return
            entry.last_attempt_timestamp = timestamp
            entry.last_error = error

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

from __future__ import annotations

import asyncio
import enum
import logging
import threading
import time
from typing import TYPE_CHECKING

from portmapper.observability.logging import LogContext
from portmapper.registry.client import RetryingStoreClient

if TYPE_CHECKING:
    from portmapper.registry.table import RegistrationEntry, RegistrationTable

logger = logging.getLogger(__name__)


class SchedulerState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class HeartbeatScheduler:
    """Periodically re-registers every entry of a RegistrationTable.

    One cycle snapshots the table, registers every entry concurrently, waits
    for all of them, then sleeps for ``period_seconds``. A failing entry is
    recorded on that entry and never stops the cycle.
    """

    def __init__(self, table: RegistrationTable, client: RetryingStoreClient,
                 period_seconds: float) -> None:
        self._table = table
        self._client = client
        self._period = period_seconds
        self._start_lock = threading.Lock()
        self._state = SchedulerState.IDLE
        self._task: asyncio.Task | None = None
        # name -> re-registrations not yet finished
        self._inflight: dict[str, set[asyncio.Task]] = {}
        self._cycles = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def cycles(self) -> int:
        """Number of completed cycles."""
        return self._cycles

    @property
    def running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    def ensure_started(self) -> bool:
        """Start the background loop once. Returns True only for the call that started it.

        Raises RuntimeError once the scheduler has been stopped.
        """
        if self._state is SchedulerState.RUNNING:
            return False
        with self._start_lock:
            if self._state is SchedulerState.STOPPED:
                raise RuntimeError("Heartbeat scheduler has been stopped")
            if self._state is SchedulerState.RUNNING:
                return False
            loop = asyncio.get_running_loop()
            self._task = loop.create_task(self._run(), name="portmapper-heartbeat")
            self._state = SchedulerState.RUNNING
        logger.info(f"Heartbeat started, period={self._period}s")
        return True

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        with self._start_lock:
            task = self._task
            self._task = None
            self._state = SchedulerState.STOPPED
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            logger.info("Heartbeat stopped")

    async def run_cycle(self) -> None:
        """Re-register every entry of the current snapshot and wait for all of them."""
        snapshot = self._table.snapshot()
        if snapshot:
            logger.debug(f"Heartbeat cycle: re-registering {sorted(snapshot)}")
            tasks = {
                name: asyncio.ensure_future(self._reassert(name, entry))
                for name, entry in snapshot.items()
            }
            for name, task in tasks.items():
                self._inflight.setdefault(name, set()).add(task)
            try:
                # a task cancelled by discard() must not abort its siblings
                results = await asyncio.gather(*tasks.values(), return_exceptions=True)
            finally:
                for name, task in tasks.items():
                    pending = self._inflight.get(name)
                    if pending is not None:
                        pending.discard(task)
                        if not pending:
                            del self._inflight[name]
            for result in results:
                if isinstance(result, Exception):
                    raise result
        self._cycles += 1

    async def discard(self, name: str) -> None:
        """Cancel in-flight re-registrations of ``name`` and wait for them to end.

        Call after removing ``name`` from the table so that a write started by
        the current cycle cannot land after the key is deleted.
        """
        pending = [t for t in self._inflight.pop(name, ()) if not t.done()]
        if not pending:
            return
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.debug(f"Cancelled in-flight heartbeat for {name}")

    async def _reassert(self, name: str, entry: RegistrationEntry) -> None:
        record = entry.record
        timestamp = int(time.time())
        error: BaseException | None = None
        with LogContext(operation="heartbeat", service_name=record.name, port=record.port):
            try:
                await self._client.register(record)
            except Exception as exc:  # noqa: BLE001
                error = exc
                logger.warning(f"Heartbeat registration failed for {record.instance_id}: {exc}")
        self._table.record_attempt(name, record, timestamp, error)

    async def _run(self) -> None:
        while True:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Heartbeat cycle failed")
            await asyncio.sleep(self._period)

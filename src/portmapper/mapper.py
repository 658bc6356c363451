"""Process-scoped entry point tying the store, client, table and heartbeat together.

Example:
    async with PortMapper(PortmapperConfig(registry_root="/opsee.co/portmapper")) as mapper:
        await mapper.register("web", 8080)       # kept alive by the heartbeat
        services = await mapper.services()
        await mapper.unregister("web", 8080)
"""

from __future__ import annotations

import logging

from portmapper.config.models import PortmapperConfig
from portmapper.entities.service_record import ServiceRecord
from portmapper.observability.events import EventSink
from portmapper.registry.client import RetryingStoreClient
from portmapper.registry.table import RegistrationEntry, RegistrationTable
from portmapper.store import KeyValueStore, KeyValueStoreFactory

logger = logging.getLogger(__name__)


class PortMapper:
    """Owns the registry components for one process.

    Args:
        config: Registry configuration; defaults to built-in values.
        store: Backend store. When omitted one is created from
            ``config.store_type`` and closed by :meth:`aclose`.
        sink: Receiver of per-attempt events; defaults to logging.
    """

    def __init__(self, config: PortmapperConfig | None = None,
                 store: KeyValueStore | None = None,
                 sink: EventSink | None = None) -> None:
        self.config = config or PortmapperConfig()
        self._owns_store = store is None
        if store is None:
            store = KeyValueStoreFactory.create(
                self.config.store_type,
                store_endpoint=self.config.store_endpoint,
                request_timeout_seconds=float(self.config.per_attempt_timeout_seconds),
            )
        self.store = store
        self.client = RetryingStoreClient(self.config, store, sink)
        self.table = RegistrationTable(self.config, self.client)

    async def register(self, name: str, port: int, host: str | None = None) -> None:
        """Keep ``(name, port)`` advertised for the life of this process.

        Returns immediately; the first write happens on the next heartbeat
        cycle and failures are recorded on the table entry. Raises RuntimeError
        once the mapper has been closed.
        """
        await self.table.upsert(name, port, host)

    async def unregister(self, name: str, port: int) -> None:
        """Stop re-asserting ``name`` and delete its key from the store."""
        entry = self.table.get(name)
        if entry is not None and entry.record.port == port:
            self.table.remove(name)
            await self.table.heartbeat.discard(name)
            logger.info(f"Stopped heartbeat for {entry.record.instance_id}")
        await self.client.unregister(name, port)

    async def register_once(self, name: str, port: int, host: str | None = None) -> None:
        """Write the record once, without the heartbeat."""
        await self.client.register(self.client.make_record(name, port, host))

    async def unregister_once(self, name: str, port: int) -> None:
        await self.client.unregister(name, port)

    async def services(self) -> list[ServiceRecord]:
        return await self.client.list()

    def registrations(self) -> dict[str, RegistrationEntry]:
        return self.table.snapshot()

    async def aclose(self) -> None:
        await self.table.heartbeat.stop()
        if self._owns_store:
            await self.store.close()

    async def __aenter__(self) -> PortMapper:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

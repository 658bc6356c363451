"""One-shot register / unregister / list against the backend store."""

from __future__ import annotations

import logging

from portmapper.config.models import PortmapperConfig
from portmapper.entities.service_record import ServiceRecord
from portmapper.exceptions import KeyNotFoundError, ServiceDecodeError
from portmapper.observability.events import EventSink, LoggingEventSink
from portmapper.observability.logging import LogContext
from portmapper.resilience.retry_policy import RetryExecutor
from portmapper.store.base import KeyValueStore

logger = logging.getLogger(__name__)

OP_REGISTER = "register"
OP_UNREGISTER = "unregister"
OP_LIST = "list"


class RetryingStoreClient:
    """Wraps a KeyValueStore with validation, encoding and bounded retries.

    Every operation validates before touching the store, retries only on
    deadline failures, and raises the first terminal error unchanged. The
    client keeps no mutable state besides its configuration.
    """

    def __init__(self, config: PortmapperConfig, store: KeyValueStore,
                 sink: EventSink | None = None) -> None:
        self._config = config
        self._store = store
        self._executor = RetryExecutor(config.retry_policy(), sink or LoggingEventSink())

    @property
    def config(self) -> PortmapperConfig:
        return self._config

    @property
    def registry_root(self) -> str:
        return self._config.registry_root

    def make_record(self, name: str, port: int, host: str | None = None) -> ServiceRecord:
        return ServiceRecord.create(name, port, host, host_env_var=self._config.host_env_var)

    async def register(self, record: ServiceRecord) -> None:
        """Write ``record`` to its key.

        Raises:
            ValidationError: the record is invalid; the store is not contacted.
            RetriesExhaustedError: every attempt timed out.
            StoreError: the store rejected the write.
        """
        with LogContext(operation=OP_REGISTER, service_name=record.name, port=record.port):
            record.validate_record()
            payload = record.encode()
            key = record.key(self.registry_root)
            await self._executor.execute(
                OP_REGISTER,
                lambda: self._store.set(key, payload),
                service_name=record.name,
                port=record.port,
            )
            logger.debug(f"Registered service {record.instance_id} at {key}")

    async def unregister(self, name: str, port: int) -> None:
        """Delete the key for ``(name, port)``. A missing key counts as success."""
        record = self.make_record(name, port)
        with LogContext(operation=OP_UNREGISTER, service_name=name, port=port):
            record.validate_record()
            key = record.key(self.registry_root)

            async def delete() -> bool:
                try:
                    await self._store.delete(key)
                except KeyNotFoundError:
                    return False
                return True

            existed = await self._executor.execute(
                OP_UNREGISTER, delete, service_name=name, port=port
            )
            if not existed:
                logger.debug(f"Service {record.instance_id} was not registered at {key}")

    async def list(self) -> list[ServiceRecord]:
        """Return every record under the registry root, in store key order.

        Raises:
            ServiceDecodeError: any stored value is malformed; no partial result.
            RetriesExhaustedError: every attempt timed out.
        """
        with LogContext(operation=OP_LIST):
            entries = await self._executor.execute(
                OP_LIST, lambda: self._store.list(self.registry_root)
            )
            services: list[ServiceRecord] = []
            for key, value in entries:
                try:
                    services.append(ServiceRecord.decode(value))
                except ServiceDecodeError as exc:
                    logger.error(f"Malformed service record at {key}: {exc}")
                    raise
            return services

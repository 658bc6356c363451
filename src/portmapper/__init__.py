"""Advertise (name, port) services in a shared key-value store and keep them alive.

This package provides:
- ServiceRecord: the validated, JSON-encoded record stored per service
- RetryingStoreClient: one-shot register / unregister / list with bounded retries
- RegistrationTable and HeartbeatScheduler: periodic re-assertion of local services
- PortMapper: the process-scoped context owning all of the above
"""

from portmapper.config import PortmapperConfig, load_config
from portmapper.entities import ServiceRecord
from portmapper.exceptions import (
    ConfigError,
    InvalidNameError,
    InvalidPortError,
    KeyNotFoundError,
    PortmapperException,
    RetriesExhaustedError,
    ServiceDecodeError,
    StoreError,
    StoreRequestError,
    StoreTimeoutError,
    ValidationError,
)
from portmapper.mapper import PortMapper
from portmapper.registry import (
    HeartbeatScheduler,
    RegistrationEntry,
    RegistrationTable,
    RetryingStoreClient,
)
from portmapper.resilience import RetryPolicy
from portmapper.store import EtcdKeyValueStore, InMemoryKeyValueStore, KeyValueStore

__version__ = "0.2.0"
__all__ = [
    "ConfigError",
    "EtcdKeyValueStore",
    "HeartbeatScheduler",
    "InMemoryKeyValueStore",
    "InvalidNameError",
    "InvalidPortError",
    "KeyNotFoundError",
    "KeyValueStore",
    "PortMapper",
    "PortmapperConfig",
    "PortmapperException",
    "RegistrationEntry",
    "RegistrationTable",
    "RetriesExhaustedError",
    "RetryPolicy",
    "RetryingStoreClient",
    "ServiceDecodeError",
    "ServiceRecord",
    "StoreError",
    "StoreRequestError",
    "StoreTimeoutError",
    "ValidationError",
    "load_config",
]

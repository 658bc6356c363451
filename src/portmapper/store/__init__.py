from .base import KeyValueStore
from .store_factory import KeyValueStoreFactory, store
from .in_memory import InMemoryKeyValueStore
from .etcd import EtcdKeyValueStore

__all__ = [
    "EtcdKeyValueStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "KeyValueStoreFactory",
    "store",
]

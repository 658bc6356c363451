import inspect
import logging
from typing import Any

from portmapper.store.base import KeyValueStore

logger = logging.getLogger(__name__)


def store(name: str):
    """Decorator to register a key-value store implementation."""

    def decorator(cls: Any):
        if name:
            KeyValueStoreFactory.register_store(name, cls)
            logger.debug(f"registered key-value store: {name}")
        else:
            logger.warning("No store name specified. Skipping registration.")
        return cls

    return decorator


class KeyValueStoreFactory:
    """Factory class for creating KeyValueStore instances."""

    store_classes: dict[str, Any] = {}

    @classmethod
    def create(cls, store_type: str, *args, **kwargs) -> KeyValueStore:
        """Creates a KeyValueStore instance.

        Keyword arguments the implementation does not accept are dropped, so
        callers may pass the full set of store options regardless of type.

        Args:
            store_type: The registered name of the store to create.
        Returns:
            An instance of the KeyValueStore.
        """
        store_class = cls.store_classes.get(store_type)
        if not store_class:
            raise ValueError(f"Key-value store '{store_type}' not found.")

        sig = inspect.signature(store_class.__init__)
        param_names = [p for p in sig.parameters.keys() if p != "self"]

        valid_kwargs = {k: v for k, v in kwargs.items() if k in sig.parameters}
        valid_args = []
        for i, a in enumerate(args):
            if i >= len(param_names):
                break
            if param_names[i] in valid_kwargs:
                continue
            valid_args.append(a)

        return store_class(*valid_args, **valid_kwargs)

    @classmethod
    def register_store(cls, name: str, store_class) -> None:
        """Registers a KeyValueStore class with the factory."""
        cls.store_classes[name] = store_class

    @classmethod
    def list_stores(cls) -> list[str]:
        """Lists the names of all registered store implementations."""
        return sorted(cls.store_classes)

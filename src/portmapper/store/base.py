from __future__ import annotations

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Abstract base class for the hierarchical key-value store backing the registry."""

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the value stored at ``key``.

        Raises:
            KeyNotFoundError: if the key does not exist.
        """

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        """Store ``value`` at ``key``, overwriting any previous value.

        Args:
            key: The full store key.
            value: Encoded bytes to store.
            ttl: Optional lifetime in seconds; ``None`` keeps the key until deleted.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete ``key``.

        Raises:
            KeyNotFoundError: if the key does not exist.
        """

    @abstractmethod
    async def list(self, prefix: str) -> list[tuple[str, bytes]]:
        """Return the ``(key, value)`` pairs directly under ``prefix``, ordered by key.

        A prefix with no children yields an empty list.
        """

    async def close(self) -> None:
        """Release any transport resources held by the store."""

from __future__ import annotations

import logging
import threading
import time

from portmapper.exceptions import KeyNotFoundError
from portmapper.store.base import KeyValueStore
from portmapper.store.store_factory import store

logger = logging.getLogger(__name__)


@store(name='in-memory')
class InMemoryKeyValueStore(KeyValueStore):
    """In-memory implementation of the KeyValueStore."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._now = time.monotonic
        # key -> (value, expiry as a monotonic timestamp or None)
        self._data: dict[str, tuple[bytes, float | None]] = {}

    def _live(self, key: str) -> bytes | None:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and expires_at <= self._now():
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> bytes:
        with self._lock:
            value = self._live(key)
        if value is None:
            raise KeyNotFoundError(data=key)
        return value

    async def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        expires_at = self._now() + ttl if ttl else None
        with self._lock:
            self._data[key] = (bytes(value), expires_at)
        logger.debug(f"Set key: {key}")

    async def delete(self, key: str) -> None:
        with self._lock:
            if self._live(key) is None:
                raise KeyNotFoundError(data=key)
            del self._data[key]
        logger.debug(f"Deleted key: {key}")

    async def list(self, prefix: str) -> list[tuple[str, bytes]]:
        base = prefix.rstrip("/") + "/"
        with self._lock:
            children = []
            for key in sorted(self._data):
                if not key.startswith(base) or "/" in key[len(base):]:
                    continue
                value = self._live(key)
                if value is not None:
                    children.append((key, value))
        return children

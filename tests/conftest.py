from __future__ import annotations

import asyncio
from typing import Iterator

import pytest

from portmapper.config import PortmapperConfig
from portmapper.exceptions import StoreTimeoutError
from portmapper.observability import CollectingEventSink, LogContext
from portmapper.registry import RetryingStoreClient
from portmapper.store import InMemoryKeyValueStore

HANG = "hang"
TIMEOUT = "timeout"


class ScriptedStore(InMemoryKeyValueStore):
    """In-memory store whose calls can be scripted to fail.

    ``script[op]`` is consumed one item per call: ``None`` lets the call
    through, ``TIMEOUT`` raises a store timeout, ``HANG`` blocks forever and an
    exception instance is raised as-is. Once the script is empty ``default``
    applies.
    """

    def __init__(self) -> None:
        super().__init__()
        self.script: dict[str, list[object]] = {}
        self.default: dict[str, object] = {}
        self.calls: dict[str, int] = {"get": 0, "set": 0, "delete": 0, "list": 0}

    async def _step(self, op: str) -> None:
        self.calls[op] += 1
        queue = self.script.get(op) or []
        action = queue.pop(0) if queue else self.default.get(op)
        if action is None:
            return
        if action == TIMEOUT:
            raise StoreTimeoutError(data=op)
        if action == HANG:
            await asyncio.Event().wait()
        if isinstance(action, BaseException):
            raise action

    async def get(self, key: str) -> bytes:
        await self._step("get")
        return await super().get(key)

    async def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        await self._step("set")
        await super().set(key, value, ttl)

    async def delete(self, key: str) -> None:
        await self._step("delete")
        await super().delete(key)

    async def list(self, prefix: str) -> list[tuple[str, bytes]]:
        await self._step("list")
        return await super().list(prefix)


@pytest.fixture(autouse=True)
def clear_log_context() -> Iterator[None]:
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture(autouse=True)
def fixed_hostname(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setenv("HOSTNAME", "test-host")
    return "test-host"


@pytest.fixture()
def config() -> PortmapperConfig:
    # zero backoff keeps retry tests fast
    return PortmapperConfig(registry_root="/opsee.co/portmapper", backoff_base_ms=0,
                            heartbeat_period_seconds=3600)


@pytest.fixture()
def store() -> ScriptedStore:
    return ScriptedStore()


@pytest.fixture()
def sink() -> CollectingEventSink:
    return CollectingEventSink()


@pytest.fixture()
def client(config: PortmapperConfig, store: ScriptedStore,
           sink: CollectingEventSink) -> RetryingStoreClient:
    return RetryingStoreClient(config, store, sink)

from __future__ import annotations

import asyncio

import pytest

from portmapper import PortMapper, PortmapperConfig, ServiceRecord
from portmapper.exceptions import InvalidPortError
from portmapper.store import EtcdKeyValueStore, InMemoryKeyValueStore


@pytest.mark.asyncio
async def test_register_then_services_then_unregister(config, store, sink):
    async with PortMapper(config, store, sink) as mapper:
        await mapper.register_once("web", 8080)
        services = await mapper.services()
        assert any(s.name == "web" and s.port == 8080 for s in services)

        await mapper.unregister_once("web", 8080)
        services = await mapper.services()
        assert not any(s.name == "web" and s.port == 8080 for s in services)


@pytest.mark.asyncio
async def test_register_keeps_service_alive_via_heartbeat(config, store):
    async with PortMapper(config, store) as mapper:
        await mapper.register("web", 8080)
        assert mapper.table.heartbeat.running
        await mapper.table.heartbeat.run_cycle()
        assert await mapper.services() == [ServiceRecord(name="web", port=8080, host="test-host")]


@pytest.mark.asyncio
async def test_unregister_stops_reassertion(config, store):
    async with PortMapper(config, store) as mapper:
        await mapper.register("web", 8080)
        await mapper.table.heartbeat.run_cycle()
        await mapper.unregister("web", 8080)
        await mapper.table.heartbeat.run_cycle()
        assert mapper.registrations() == {}
        assert await mapper.services() == []


@pytest.mark.asyncio
async def test_unregister_of_other_port_keeps_heartbeat_entry(config, store):
    async with PortMapper(config, store) as mapper:
        await mapper.register("web", 8080)
        await mapper.unregister("web", 9090)
        assert "web" in mapper.registrations()


@pytest.mark.asyncio
async def test_register_never_fails_synchronously(config, store):
    async with PortMapper(config, store) as mapper:
        await mapper.register("web", 0)
        await mapper.table.heartbeat.run_cycle()
        assert isinstance(mapper.registrations()["web"].last_error, InvalidPortError)


@pytest.mark.asyncio
async def test_register_once_propagates_validation_errors(config, store):
    async with PortMapper(config, store) as mapper:
        with pytest.raises(InvalidPortError):
            await mapper.register_once("web", 70000)
    assert store.calls["set"] == 0


@pytest.mark.asyncio
async def test_aclose_stops_heartbeat_and_keeps_injected_store_open(config, store):
    mapper = PortMapper(config, store)
    await mapper.register("web", 8080)
    await mapper.aclose()
    assert not mapper.table.heartbeat.running
    # injected store still usable
    await store.set("/k", b"v")


@pytest.mark.asyncio
async def test_store_is_built_from_config():
    mapper = PortMapper(PortmapperConfig(store_type="in-memory"))
    assert isinstance(mapper.store, InMemoryKeyValueStore)
    await mapper.aclose()

    mapper = PortMapper(PortmapperConfig(store_endpoint="http://etcd:2379"))
    assert isinstance(mapper.store, EtcdKeyValueStore)
    assert mapper.store.endpoint == "http://etcd:2379"
    await mapper.aclose()


def test_unknown_store_type_is_rejected():
    with pytest.raises(ValueError):
        PortMapper(PortmapperConfig(store_type="zookeeper"))


@pytest.mark.asyncio
async def test_unregister_cancels_heartbeat_write_in_flight(config, store):
    release = asyncio.Event()
    started = asyncio.Event()
    original_set = store.set

    async def gated_set(key, value, ttl=None):
        started.set()
        await release.wait()
        await original_set(key, value, ttl)

    store.set = gated_set  # type: ignore[method-assign]
    async with PortMapper(config, store) as mapper:
        await mapper.register("web", 8080)
        cycle = asyncio.create_task(mapper.table.heartbeat.run_cycle())
        await asyncio.wait_for(started.wait(), timeout=1)

        await mapper.unregister("web", 8080)
        release.set()
        await cycle

        assert mapper.registrations() == {}
        assert await mapper.services() == []


@pytest.mark.asyncio
async def test_register_after_close_is_rejected(config, store):
    mapper = PortMapper(config, store)
    await mapper.register("web", 8080)
    await mapper.aclose()
    with pytest.raises(RuntimeError, match="stopped"):
        await mapper.register("db", 5432)
    assert "db" not in mapper.registrations()

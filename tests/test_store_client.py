from __future__ import annotations

import pytest

from conftest import TIMEOUT, ScriptedStore
from portmapper.entities import ServiceRecord
from portmapper.exceptions import (
    InvalidNameError,
    InvalidPortError,
    RetriesExhaustedError,
    ServiceDecodeError,
    StoreRequestError,
)
from portmapper.observability import AttemptOutcome
from portmapper.registry import OP_LIST, OP_REGISTER, RetryingStoreClient

ROOT = "/opsee.co/portmapper"


@pytest.mark.asyncio
async def test_register_writes_encoded_record_under_key(client, store):
    record = ServiceRecord(name="web", port=8080, host="box-1")
    await client.register(record)
    assert await store.get(f"{ROOT}/web:8080") == record.encode()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "record, error",
    [
        (ServiceRecord(name="", port=80), InvalidNameError),
        (ServiceRecord(name="web", port=0), InvalidPortError),
        (ServiceRecord(name="web", port=65536), InvalidPortError),
    ],
)
async def test_invalid_register_never_touches_store(client, store, sink, record, error):
    with pytest.raises(error):
        await client.register(record)
    assert store.calls == {"get": 0, "set": 0, "delete": 0, "list": 0}
    assert sink.events == []


@pytest.mark.asyncio
async def test_invalid_unregister_never_touches_store(client, store):
    with pytest.raises(InvalidPortError):
        await client.unregister("web", -1)
    assert store.calls["delete"] == 0


@pytest.mark.asyncio
async def test_register_gives_up_after_max_retries(config, store, sink):
    store.default["set"] = TIMEOUT
    client = RetryingStoreClient(config, store, sink)
    with pytest.raises(RetriesExhaustedError):
        await client.register(ServiceRecord(name="web", port=80))
    assert store.calls["set"] == config.max_retries == 11
    assert sink.outcomes(OP_REGISTER)[-1] is AttemptOutcome.EXHAUSTED


@pytest.mark.asyncio
async def test_register_returns_terminal_error_on_third_attempt(client, store):
    terminal = StoreRequestError(data="rejected")
    store.script["set"] = [TIMEOUT, TIMEOUT, terminal]
    with pytest.raises(StoreRequestError) as excinfo:
        await client.register(ServiceRecord(name="web", port=80))
    assert excinfo.value is terminal
    assert store.calls["set"] == 3


@pytest.mark.asyncio
async def test_unregister_missing_key_succeeds(client, store):
    await client.unregister("ghost", 1234)
    assert store.calls["delete"] == 1


@pytest.mark.asyncio
async def test_unregister_removes_key(client, store):
    await client.register(ServiceRecord(name="web", port=80))
    await client.unregister("web", 80)
    assert await store.list(ROOT) == []


@pytest.mark.asyncio
async def test_unregister_only_removes_matching_port(client):
    await client.register(ServiceRecord(name="web", port=80))
    await client.register(ServiceRecord(name="web", port=81))
    await client.unregister("web", 80)
    assert [(s.name, s.port) for s in await client.list()] == [("web", 81)]


@pytest.mark.asyncio
async def test_list_returns_every_record(client):
    await client.register(ServiceRecord(name="b", port=2000))
    await client.register(ServiceRecord(name="a", port=1000, host="h"))
    services = await client.list()
    assert services == [
        ServiceRecord(name="a", port=1000, host="h"),
        ServiceRecord(name="b", port=2000),
    ]


@pytest.mark.asyncio
async def test_list_of_empty_registry_is_empty(client):
    assert await client.list() == []


@pytest.mark.asyncio
async def test_list_ignores_keys_outside_root(client, store):
    await store.set("/elsewhere/x:1", b'{"name":"x","port":1}')
    await store.set(f"{ROOT}/nested/y:2", b'{"name":"y","port":2}')
    await client.register(ServiceRecord(name="a", port=1))
    assert [s.name for s in await client.list()] == ["a"]


@pytest.mark.asyncio
async def test_one_corrupt_entry_fails_the_whole_listing(client, store):
    await client.register(ServiceRecord(name="a", port=1000))
    await store.set(f"{ROOT}/b:2000", b"\x00garbage")
    await client.register(ServiceRecord(name="c", port=3000))
    with pytest.raises(ServiceDecodeError):
        await client.list()


@pytest.mark.asyncio
async def test_list_retries_timeouts(client, store, sink):
    store.script["list"] = [TIMEOUT]
    await client.register(ServiceRecord(name="a", port=1))
    assert len(await client.list()) == 1
    assert sink.outcomes(OP_LIST) == [AttemptOutcome.RETRY, AttemptOutcome.SUCCESS]


@pytest.mark.asyncio
async def test_same_name_and_port_collide_last_writer_wins(client):
    await client.register(ServiceRecord(name="web", port=80, host="first"))
    await client.register(ServiceRecord(name="web", port=80, host="second"))
    assert await client.list() == [ServiceRecord(name="web", port=80, host="second")]


@pytest.mark.asyncio
async def test_unregister_emits_event_for_service(client, sink):
    await client.unregister("web", 80)
    assert sink.events[-1].service_name == "web"


def test_make_record_uses_configured_env_var(config, store, monkeypatch):
    monkeypatch.setenv("POD_NAME", "pod-9")
    client = RetryingStoreClient(config.with_overrides(host_env_var="POD_NAME"), store)
    assert client.make_record("web", 80).host == "pod-9"


def test_registry_root_comes_from_config(config):
    client = RetryingStoreClient(config, ScriptedStore())
    assert client.registry_root == ROOT

"""etcd v3 key-value store reached through the etcd JSON gateway.

The gateway exposes the gRPC KV API as ``POST /v3/<service>/<method>`` with
base64-encoded keys and values. Only the calls the registry needs are wrapped.
"""
from __future__ import annotations

import base64
import logging
from typing import Any

import httpx

from portmapper.exceptions import KeyNotFoundError, StoreRequestError, StoreTimeoutError
from portmapper.store.base import KeyValueStore
from portmapper.store.store_factory import store

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://127.0.0.1:2379"


def _b64(raw: bytes | str) -> str:
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def _unb64(text: str) -> bytes:
    return base64.b64decode(text)


def _prefix_end(prefix: bytes) -> bytes:
    """Return the smallest key greater than every key starting with ``prefix``."""
    end = bytearray(prefix)
    for i in range(len(end) - 1, -1, -1):
        if end[i] < 0xFF:
            end[i] += 1
            return bytes(end[: i + 1])
    # every byte is 0xff: range to the end of the keyspace
    return b"\x00"


@store(name='etcd')
class EtcdKeyValueStore(KeyValueStore):
    """KeyValueStore backed by etcd's v3 HTTP/JSON gateway."""

    def __init__(
        self,
        store_endpoint: str = DEFAULT_ENDPOINT,
        request_timeout_seconds: float = 5.0,
        httpx_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = store_endpoint.rstrip("/")
        self._owns_client = httpx_client is None
        self._client = httpx_client or httpx.AsyncClient(timeout=request_timeout_seconds)

    async def _call(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.endpoint}{path}"
        try:
            response = await self._client.post(url, json=payload)
        except httpx.TimeoutException as exc:
            raise StoreTimeoutError(data=url, cause=exc) from exc
        except httpx.HTTPError as exc:
            raise StoreRequestError(data=f"{url}: {exc}", cause=exc) from exc

        if response.status_code != 200:
            detail = response.text
            try:
                body = response.json()
                detail = body.get("message") or body.get("error") or detail
            except ValueError:
                pass
            raise StoreRequestError(data=f"{url}: HTTP {response.status_code} {detail}")
        try:
            return response.json()
        except ValueError as exc:
            raise StoreRequestError(data=f"{url}: invalid JSON response", cause=exc) from exc

    async def _grant_lease(self, ttl: int) -> str:
        body = await self._call("/v3/lease/grant", {"TTL": ttl})
        lease_id = body.get("ID")
        if not lease_id:
            raise StoreRequestError(data=f"lease grant returned no ID for ttl={ttl}")
        return str(lease_id)

    async def get(self, key: str) -> bytes:
        body = await self._call("/v3/kv/range", {"key": _b64(key)})
        kvs = body.get("kvs") or []
        if not kvs:
            raise KeyNotFoundError(data=key)
        return _unb64(kvs[0].get("value", ""))

    async def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        payload: dict[str, Any] = {"key": _b64(key), "value": _b64(value)}
        if ttl:
            payload["lease"] = await self._grant_lease(ttl)
        await self._call("/v3/kv/put", payload)

    async def delete(self, key: str) -> None:
        body = await self._call("/v3/kv/deleterange", {"key": _b64(key)})
        if int(body.get("deleted", 0)) == 0:
            raise KeyNotFoundError(data=key)

    async def list(self, prefix: str) -> list[tuple[str, bytes]]:
        base = prefix.rstrip("/") + "/"
        raw_base = base.encode("utf-8")
        body = await self._call(
            "/v3/kv/range",
            {
                "key": _b64(raw_base),
                "range_end": _b64(_prefix_end(raw_base)),
                "sort_order": "ASCEND",
                "sort_target": "KEY",
            },
        )
        children: list[tuple[str, bytes]] = []
        for kv in body.get("kvs") or []:
            key = _unb64(kv["key"]).decode("utf-8")
            # only direct children of the prefix
            if "/" in key[len(base):]:
                continue
            children.append((key, _unb64(kv.get("value", ""))))
        return children

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

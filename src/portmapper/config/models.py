from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any, cast

from portmapper.entities.service_record import HOST_ENV_VAR
from portmapper.exceptions import ConfigError
from portmapper.resilience.retry_policy import (
    DEFAULT_BACKOFF_BASE_MS,
    DEFAULT_MAX_RETRIES,
    RetryPolicy,
)

DEFAULT_REGISTRY_ROOT = "/registry"
DEFAULT_STORE_ENDPOINT = "http://127.0.0.1:2379"
DEFAULT_STORE_TYPE = "etcd"
DEFAULT_PER_ATTEMPT_TIMEOUT_SECONDS = 5
DEFAULT_HEARTBEAT_PERIOD_SECONDS = 60

ENV_PREFIX = "PORTMAPPER_"
# accepted for compatibility with existing deployments
LEGACY_ENDPOINT_ENV = "PORTMAPPER_ETCD_HOST"


def _ensure_mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise TypeError(f"{field_name} must be a mapping")
    return cast(Mapping[str, Any], value)


def _coerce_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise TypeError(f"{field_name} must be an int")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise ValueError(f"{field_name} must be an int, got {value!r}") from exc
    raise TypeError(f"{field_name} must be an int")


def _coerce_optional_int(value: Any, field_name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in {"", "none", "null"}:
        return None
    return _coerce_int(value, field_name)


def _coerce_str(value: Any, field_name: str) -> str:
    if isinstance(value, str):
        return value
    return str(value)


def _coerce_optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    return _coerce_str(value, field_name)


def _require_positive(value: int, field_name: str) -> int:
    if value < 1:
        raise ValueError(f"{field_name} must be >= 1")
    return value


_COERCERS = {
    "registry_root": _coerce_str,
    "store_endpoint": _coerce_str,
    "store_type": _coerce_str,
    "max_retries": _coerce_int,
    "per_attempt_timeout_seconds": _coerce_int,
    "heartbeat_period_seconds": _coerce_int,
    "backoff_base_ms": _coerce_int,
    "max_backoff_ms": _coerce_optional_int,
    "host_env_var": _coerce_str,
    "log_format": _coerce_optional_str,
}


@dataclass(frozen=True)
class PortmapperConfig:
    """Process-wide registry configuration. Read-only once built."""

    registry_root: str = DEFAULT_REGISTRY_ROOT
    store_endpoint: str = DEFAULT_STORE_ENDPOINT
    store_type: str = DEFAULT_STORE_TYPE
    max_retries: int = DEFAULT_MAX_RETRIES
    per_attempt_timeout_seconds: int = DEFAULT_PER_ATTEMPT_TIMEOUT_SECONDS
    heartbeat_period_seconds: int = DEFAULT_HEARTBEAT_PERIOD_SECONDS
    backoff_base_ms: int = DEFAULT_BACKOFF_BASE_MS
    max_backoff_ms: int | None = None
    host_env_var: str = HOST_ENV_VAR
    log_format: str | None = None

    def __post_init__(self) -> None:
        if not self.registry_root:
            raise ValueError("registry_root must not be empty")
        _require_positive(self.max_retries, "max_retries")
        _require_positive(self.per_attempt_timeout_seconds, "per_attempt_timeout_seconds")
        _require_positive(self.heartbeat_period_seconds, "heartbeat_period_seconds")
        if self.backoff_base_ms < 0:
            raise ValueError("backoff_base_ms must be >= 0")
        if self.max_backoff_ms is not None and self.max_backoff_ms < 0:
            raise ValueError("max_backoff_ms must be >= 0")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> PortmapperConfig:
        """Build a config from a mapping, ignoring unknown keys."""
        if data is None:
            return cls()
        payload = _ensure_mapping(data, "portmapper")
        kwargs: dict[str, Any] = {}
        try:
            for name, coerce in _COERCERS.items():
                if name in payload:
                    kwargs[name] = coerce(payload[name], name)
            return cls(**kwargs)
        except (TypeError, ValueError) as exc:
            raise ConfigError(str(exc)) from exc

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None,
                 base: PortmapperConfig | None = None) -> PortmapperConfig:
        """Overlay ``PORTMAPPER_<FIELD>`` environment variables onto ``base``."""
        env = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        legacy = env.get(LEGACY_ENDPOINT_ENV)
        if legacy:
            overrides["store_endpoint"] = legacy
        for name in _COERCERS:
            value = env.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None and value != "":
                overrides[name] = value
        merged = (base or cls()).to_dict()
        merged.update(overrides)
        return cls.from_dict(merged)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def with_overrides(self, **changes: Any) -> PortmapperConfig:
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            request_timeout_seconds=float(self.per_attempt_timeout_seconds),
            backoff_base_ms=self.backoff_base_ms,
            max_backoff_ms=self.max_backoff_ms,
        )

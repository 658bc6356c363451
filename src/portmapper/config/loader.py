from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from portmapper.exceptions import ConfigError

from .models import PortmapperConfig

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*?))?\}")


def get_default_config_path() -> Path | None:
    """Return the first default config path that exists."""
    candidates = [
        Path.cwd() / "portmapper.yaml",
        Path.cwd() / "portmapper.yml",
        Path.home() / ".portmapper.yaml",
        Path.home() / ".portmapper.yml",
        Path("/etc/portmapper/config.yaml"),
        Path("/etc/portmapper/config.yml"),
    ]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def load_config(path: str | Path | None = None, *, use_env: bool = True) -> PortmapperConfig:
    """Load a YAML config file, then overlay ``PORTMAPPER_*`` environment variables.

    With no path the default locations are searched; when none exists the
    built-in defaults are used.
    """
    if not path:
        path = get_default_config_path()
    data: dict[str, Any] = {} if path is None else _load_config_mapping(path)
    try:
        config = PortmapperConfig.from_dict(data)
    except ConfigError:
        raise
    except Exception as exc:  # pragma: no cover - defensive
        raise ConfigError(f"Failed to build config from {path}") from exc
    if use_env:
        config = PortmapperConfig.from_env(base=config)
    return config


def _load_config_mapping(path: str | Path) -> dict[str, Any]:
    config_path = Path(path).expanduser()
    if config_path.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigError(f"Unsupported config file type: {config_path.suffix}")
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        content = config_path.read_text(encoding="utf-8")
        parsed = yaml.safe_load(content) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to load config file: {config_path}") from exc
    if not isinstance(parsed, Mapping):
        raise ConfigError("Configuration must be a mapping")
    return _normalize_config_root(_expand_env_in_data(parsed))


def _expand_env_in_data(value: Any) -> Any:
    if isinstance(value, str):
        return _expand_env_value(value)
    if isinstance(value, Mapping):
        return {key: _expand_env_in_data(val) for key, val in value.items()}
    if isinstance(value, list):
        return [_expand_env_in_data(item) for item in value]
    return value


def _expand_env_value(value: str) -> str:
    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        default = match.group(2)
        env_value = os.getenv(name)
        if env_value is None or env_value == "":
            if default is None:
                raise ConfigError(
                    f"Environment variable '{name}' is not set and no default provided"
                )
            return default
        return env_value

    return _ENV_PATTERN.sub(replace, value)


def _normalize_config_root(data: Mapping[str, Any]) -> dict[str, Any]:
    if "portmapper" not in data:
        return dict(data)
    nested = data["portmapper"]
    if not isinstance(nested, Mapping):
        raise ConfigError("portmapper section must be a mapping")
    merged = dict(nested)
    for key, value in data.items():
        if key == "portmapper":
            continue
        merged.setdefault(key, value)
    return merged

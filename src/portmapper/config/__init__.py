"""Configuration helpers."""

from .loader import get_default_config_path, load_config
from .models import PortmapperConfig

__all__ = [
    "PortmapperConfig",
    "get_default_config_path",
    "load_config",
]

from __future__ import annotations

import argparse
import logging
import sys
from typing import Final

from portmapper.config import PortmapperConfig, load_config
from portmapper.exceptions import ConfigError
from portmapper.observability.logging import get_logger

EXIT_SUCCESS: Final = 0
EXIT_ERROR: Final = 1

PACKAGE_LOGGER: Final = "portmapper"


def add_registry_options(parser: argparse.ArgumentParser) -> None:
    """Options that select which registry the command talks to."""
    group = parser.add_argument_group("registry")
    group.add_argument(
        "--config",
        type=str,
        help="Path to a YAML configuration file.",
    )
    group.add_argument(
        "--registry-root",
        type=str,
        help="Key prefix the services live under (overrides config).",
    )
    group.add_argument(
        "--endpoint",
        type=str,
        help="Store endpoint URL (overrides config).",
    )


def log_level(args: argparse.Namespace) -> int:
    if getattr(args, "verbose", False):
        return logging.DEBUG
    if getattr(args, "quiet", False):
        return logging.WARNING
    return logging.INFO


def configure_logging(config: PortmapperConfig, level: int) -> logging.Logger:
    """Route package logs to stderr in ``config.log_format``.

    Replaces a structured handler left by an earlier call.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_portmapper_handler", False):
            logger.removeHandler(handler)
    return get_logger(PACKAGE_LOGGER, log_format=config.log_format, level=level, stream=sys.stderr)


def resolve_config(args: argparse.Namespace) -> PortmapperConfig | None:
    """Load configuration from ``--config`` / environment, apply CLI overrides
    and set up logging.

    Prints the problem and returns None when the configuration is unusable.
    """
    try:
        config = load_config(getattr(args, "config", None))
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return None
    config = config.with_overrides(
        registry_root=getattr(args, "registry_root", None),
        store_endpoint=getattr(args, "endpoint", None),
    )
    configure_logging(config, log_level(args))
    return config

"""Command line entry point: ``portmapper [-v|-q] [registry options] <command>``.

Each command lives in its own module under ``portmapper.cli.commands`` and
exposes ``register_parser(subparsers)``. Logging is configured by the command
once its configuration is resolved, so ``log_format`` from a config file or
``PORTMAPPER_LOG_FORMAT`` applies.
"""
from __future__ import annotations

import argparse
import importlib
from collections.abc import Callable, Sequence

from portmapper.cli.commands.common import EXIT_ERROR, add_registry_options

SubparsersAction = argparse._SubParsersAction  # Runtime-safe alias for type hints
CommandRegistrar = Callable[[SubparsersAction], None]

_COMMAND_MODULES: dict[str, str] = {
    "register": "portmapper.cli.commands.register",
    "unregister": "portmapper.cli.commands.unregister",
    "services": "portmapper.cli.commands.services",
    "version": "portmapper.cli.commands.version",
}


def _load_registrar(module_path: str) -> CommandRegistrar:
    module = importlib.import_module(module_path)
    registrar = getattr(module, "register_parser", None)
    if not callable(registrar):
        raise ValueError(
            f"Command module '{module_path}' must expose a callable 'register_parser'"
        )
    return registrar


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portmapper", description="Advertise and enumerate services in the registry"
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level.")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Log warnings and errors only.")
    add_registry_options(parser)

    subparsers = parser.add_subparsers(dest="command", required=True)
    for module_path in _COMMAND_MODULES.values():
        _load_registrar(module_path)(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    handler = getattr(args, "handler", None)
    if handler is None:
        return EXIT_ERROR
    result = handler(args)
    return int(result) if isinstance(result, int) else 0


__all__ = ["build_parser", "main"]

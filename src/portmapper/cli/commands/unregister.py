"""Unregister command for the portmapper CLI."""
from __future__ import annotations

import argparse
import asyncio
import sys

from portmapper.exceptions import PortmapperException
from portmapper.mapper import PortMapper

from .common import EXIT_ERROR, EXIT_SUCCESS, resolve_config

__all__ = ["register_parser", "run"]


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "unregister",
        help="Remove a service.",
        description="Delete a service record from the registry. Removing an absent service succeeds.",
    )
    parser.add_argument("name", help="Service name.")
    parser.add_argument("port", type=int, help="Service port.")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace) -> int:
    config = resolve_config(args)
    if config is None:
        return EXIT_ERROR
    return asyncio.run(_unregister(config, args))


async def _unregister(config, args: argparse.Namespace) -> int:
    async with PortMapper(config) as mapper:
        try:
            await mapper.unregister_once(args.name, args.port)
        except PortmapperException as e:
            print(f"Error: Failed to unregister {args.name}:{args.port}: {e}", file=sys.stderr)
            return EXIT_ERROR
    print(f"Unregistered {args.name}:{args.port}")
    return EXIT_SUCCESS

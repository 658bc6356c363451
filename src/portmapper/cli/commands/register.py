"""Register command for the portmapper CLI."""
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
        "register",
        help="Advertise a service.",
        description="Write a service record to the registry.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  portmapper register web 8080
  portmapper register web 8080 --host web-1
  portmapper register web 8080 --keep-alive
        """,
    )
    parser.add_argument("name", help="Service name.")
    parser.add_argument("port", type=int, help="Service port.")
    parser.add_argument(
        "--host",
        default=None,
        help="Host identifier (default: $HOSTNAME).",
    )
    parser.add_argument(
        "--keep-alive",
        action="store_true",
        help="Keep re-registering on the heartbeat period until interrupted.",
    )
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace) -> int:
    config = resolve_config(args)
    if config is None:
        return EXIT_ERROR
    try:
        return asyncio.run(_register(config, args))
    except KeyboardInterrupt:
        return EXIT_SUCCESS


async def _register(config, args: argparse.Namespace) -> int:
    async with PortMapper(config) as mapper:
        try:
            await mapper.register_once(args.name, args.port, args.host)
        except PortmapperException as e:
            print(f"Error: Failed to register {args.name}:{args.port}: {e}", file=sys.stderr)
            return EXIT_ERROR
        print(f"Registered {args.name}:{args.port}")
        if not args.keep_alive:
            return EXIT_SUCCESS
        await mapper.register(args.name, args.port, args.host)
        try:
            # runs until cancelled by Ctrl-C
            await asyncio.Event().wait()
        finally:
            await mapper.unregister(args.name, args.port)
            print(f"Unregistered {args.name}:{args.port}")
    return EXIT_SUCCESS

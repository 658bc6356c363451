"""Services command for the portmapper CLI.

Lists every service currently advertised under the registry root.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys

from portmapper.entities import ServiceRecord
from portmapper.exceptions import PortmapperException
from portmapper.mapper import PortMapper

from .common import EXIT_ERROR, EXIT_SUCCESS, resolve_config

__all__ = ["register_parser", "run", "format_services"]


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "services",
        help="List registered services.",
        description="Enumerate every service record under the registry root.",
    )
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text).",
    )
    parser.set_defaults(handler=run)


def format_services(services: list[ServiceRecord], output_format: str) -> str:
    """Render services as text lines or a JSON array."""
    if output_format == "json":
        return json.dumps(
            [s.model_dump(by_alias=True, exclude_defaults=True) for s in services],
            indent=2,
        )
    if not services:
        return "No services registered."
    lines = []
    for s in services:
        host = f" ({s.host})" if s.host else ""
        lines.append(f"{s.name}:{s.port}{host}")
    return "\n".join(lines)


def run(args: argparse.Namespace) -> int:
    config = resolve_config(args)
    if config is None:
        return EXIT_ERROR
    return asyncio.run(_services(config, args))


async def _services(config, args: argparse.Namespace) -> int:
    async with PortMapper(config) as mapper:
        try:
            services = await mapper.services()
        except PortmapperException as e:
            print(f"Error: Failed to list services: {e}", file=sys.stderr)
            return EXIT_ERROR
    print(format_services(services, args.format))
    return EXIT_SUCCESS

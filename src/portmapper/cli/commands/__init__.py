"""Subcommands of the portmapper CLI."""

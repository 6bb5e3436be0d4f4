"""Command-line interface for versesync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- status: Show pending work
- list: List queued items
- enqueue: Record an action manually
- retry: Reset failed items to pending
- purge: Remove failed items that reached the retry ceiling
- clear: Discard the whole queue
"""

from __future__ import annotations

import logging
import sys

import click

from versesync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_queue_config,
    load_config,
)
from versesync.client.cli.queue import clear, enqueue, list_items, purge, retry, status

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False) -> None:
    """Send versesync logs to stderr.

    Args:
        verbose: Log DEBUG and above instead of WARNING and above.
    """
    versesync_logger = logging.getLogger("versesync")
    for handler in versesync_logger.handlers[:]:
        versesync_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    versesync_logger.addHandler(handler)
    versesync_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    versesync_logger.propagate = False


@click.group()
@click.version_option(package_name="versesync")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """versesync - Offline queue for verse favorites and reflections."""
    setup_logging(verbose)


# Inspection commands
cli.add_command(status)
cli.add_command(list_items)

# Mutation commands
cli.add_command(enqueue)
cli.add_command(retry)
cli.add_command(purge)
cli.add_command(clear)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    "setup_logging",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_queue_config",
    "load_config",
]

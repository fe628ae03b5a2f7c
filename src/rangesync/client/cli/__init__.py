"""Command-line interface for rangesync.

Commands:
- configure: Store the server connection and signed-in user
- status: Show pending changes and last sync times
- sync: Push pending changes and pull remote data
- links: Manage player links and import linked ranges
- server: Run the document server and issue tokens
"""

from __future__ import annotations

import click

from rangesync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_state_db_path,
    load_config,
    save_config,
)
from rangesync.client.cli.links import links
from rangesync.client.cli.server import server
from rangesync.client.cli.sync import configure, status, sync


@click.group()
@click.version_option()
def cli() -> None:
    """RangeSync - offline-first sync for poker ranges."""


cli.add_command(configure)
cli.add_command(status)
cli.add_command(sync)
cli.add_command(links)
cli.add_command(server)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "get_config_dir",
    "get_config_file",
    "get_state_db_path",
    "load_config",
    "main",
    "save_config",
]

"""Sync commands for the rangesync CLI.

Commands:
- configure: Store the server URL, token and user
- status: Show pending changes and last sync times
- sync: Push pending changes and pull remote data
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

import click

from rangesync.client.cli.config import (
    build_context,
    get_config_file,
    load_config,
    require_config,
    save_config,
)


def setup_logging(verbose: bool) -> None:
    """Send rangesync logs to stderr."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logger = logging.getLogger("rangesync")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.addHandler(handler)


def _format_ms(value: int | None) -> str:
    if not value:
        return "never"
    return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M:%S")


@click.command()
@click.option("--server", required=True, help="Server URL (e.g., http://localhost:8000).")
@click.option("--token", required=True, help="Auth token issued by the server admin.")
@click.option("--user-id", required=True, help="Your user id.")
@click.option("--name", "display_name", default=None, help="Display name shown to friends.")
def configure(server: str, token: str, user_id: str, display_name: str | None) -> None:
    """Store the server connection and the signed-in user."""
    import httpx

    server_url = server.rstrip("/")
    try:
        response = httpx.get(f"{server_url}/health", timeout=10.0)
        if response.status_code != 200:
            click.echo(f"Warning: Server health check returned {response.status_code}", err=True)
    except httpx.RequestError as e:
        click.echo(f"Warning: Could not reach server: {e}", err=True)

    config = load_config()
    config.update({
        "server_url": server_url,
        "auth_token": token,
        "user_id": user_id,
        "display_name": display_name or user_id,
    })
    save_config(config)
    click.echo(f"Configuration saved to {get_config_file()}")


@click.command()
def status() -> None:
    """Show pending changes and last sync times."""
    config = require_config()

    async def run() -> None:
        async with build_context(config) as ctx:
            stats = ctx.outbox.stats()
            online = await ctx.probe.is_online()
            click.echo(f"Server:     {config['server_url']} ({'online' if online else 'offline'})")
            click.echo(f"User:       {config.get('display_name')} ({config['user_id']})")
            click.echo(f"Pending:    {stats['total']}")
            for collection in ("players", "player_ranges", "sessions"):
                if stats.get(collection):
                    click.echo(f"  {collection}: {stats[collection]}")
            last_push = ctx.store.get_state("last_push_at")
            click.echo(f"Last push:  {_format_ms(int(last_push) if last_push else None)}")
            click.echo(f"Last pull:  {_format_ms(ctx.store.get_last_pull_at())}")

    asyncio.run(run())


@click.command()
@click.option("--push-only", is_flag=True, help="Only push pending local changes.")
@click.option("--pull-only", is_flag=True, help="Only pull remote data.")
@click.option("--watch", "-w", is_flag=True, help="Keep running and retry in the background.")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs.")
def sync(push_only: bool, pull_only: bool, watch: bool, verbose: bool) -> None:
    """Push pending local changes, then pull remote data."""
    if push_only and pull_only:
        click.echo("Error: --push-only and --pull-only are mutually exclusive.", err=True)
        sys.exit(1)

    config = require_config()
    setup_logging(verbose)

    async def run_once() -> None:
        async with build_context(config) as ctx:
            if not pull_only:
                push = await ctx.synchronizer.push_pending()
                if push.skipped:
                    click.echo(f"Push skipped ({ctx.synchronizer.status.value})")
                else:
                    click.echo(
                        f"Pushed {push.pushed}, purged {push.purged}, failed {push.failed}"
                    )
            if not push_only:
                pull = await ctx.synchronizer.pull_from_cloud()
                if pull.error:
                    click.echo(f"Pull failed: {pull.error}", err=True)
                elif pull.skipped:
                    click.echo(f"Pull skipped ({ctx.synchronizer.status.value})")
                else:
                    click.echo(
                        f"Pulled {pull.players} players, {pull.ranges} range sets, "
                        f"{pull.sessions} sessions"
                    )
                    if pull.skipped_pending:
                        click.echo(f"Kept {len(pull.skipped_pending)} entities with pending changes")
            click.echo(f"Status: {ctx.synchronizer.status.value}")

    async def run_watch() -> None:
        async with build_context(config) as ctx:
            ctx.synchronizer.add_status_listener(lambda s: click.echo(f"Status: {s.value}"))
            ctx.auto_sync.start()
            click.echo("Watching (Ctrl+C to stop)...")
            try:
                await asyncio.Event().wait()
            finally:
                await ctx.auto_sync.stop()

    try:
        asyncio.run(run_watch() if watch else run_once())
    except KeyboardInterrupt:
        click.echo("\nStopped.")

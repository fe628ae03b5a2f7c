"""Player link commands for the rangesync CLI.

Commands:
- links list: Show links and their update status
- links check: Check active links for new peer ranges
- links sync: Import ranges from a linked player
- links mark-synced: Acknowledge a peer's ranges without importing
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

import click

from rangesync.client.cli.config import build_context, require_config

if TYPE_CHECKING:
    from rangesync.client.context import ClientContext

T = TypeVar("T")


def _run(action: Callable[[ClientContext], Awaitable[T]]) -> T:
    """Run an async action against a fresh context, reporting user errors."""
    from rangesync.client.api import APIError
    from rangesync.client.errors import RangeSyncError

    config = require_config()

    async def run() -> T:
        async with build_context(config) as ctx:
            return await action(ctx)

    try:
        return asyncio.run(run())
    except (RangeSyncError, APIError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
def links() -> None:
    """Player link commands."""


@links.command("list")
def list_cmd() -> None:
    """Show all links (pending and active)."""

    async def action(ctx: ClientContext) -> None:
        all_links = await ctx.links.refresh()
        if not all_links:
            click.echo("No player links.")
            return
        for link in all_links:
            role = "sent" if link.is_initiator else "received"
            mine = link.my_player_name or "-"
            theirs = link.their_player_name or "-"
            click.echo(
                f"{link.id}  {link.status.value:<8} {role:<9} "
                f"{mine} <-> {theirs} ({link.their_user_name})"
            )
        quota = await ctx.links.remaining_links()
        click.echo(f"{quota.used}/{quota.max} links used")

    _run(action)


@links.command()
def check() -> None:
    """Check active links for ranges you have not seen yet."""

    async def action(ctx: ClientContext) -> None:
        active = await ctx.links.list_active()
        results = await ctx.updates.check_all_for_updates(active)
        for link in active:
            result = results.get(link.id)
            if result is None:
                click.echo(f"{link.id}  check failed")
            elif result.has_updates:
                click.echo(
                    f"{link.id}  updates available "
                    f"(v{result.their_version}, yours: v{link.my_last_synced_version})"
                )
            else:
                click.echo(f"{link.id}  up to date (v{result.their_version})")

    _run(action)


@links.command("sync")
@click.argument("link_id")
@click.option("--key", "keys", multiple=True, help="Import only this range key (repeatable).")
@click.option("--yes", "-y", is_flag=True, help="Allow replacing ranges you already have.")
def sync_cmd(link_id: str, keys: tuple[str, ...], yes: bool) -> None:
    """Import ranges from a linked player.

    Without --key only empty slots are filled. With --key exactly the
    given ranges are imported; replacing existing ranges needs --yes.
    """
    from rangesync.client.errors import OverwriteNotConfirmedError

    async def action(ctx: ClientContext) -> None:
        try:
            if keys:
                result = await ctx.links.sync_selected(link_id, list(keys), confirm_overwrite=yes)
            else:
                result = await ctx.links.sync(link_id)
        except OverwriteNotConfirmedError as e:
            click.echo(f"Error: {e}", err=True)
            click.echo("Re-run with --yes to replace them.", err=True)
            sys.exit(1)
        click.echo(f"Added {result.added}, skipped {result.skipped} (peer v{result.new_version})")
        for key in result.range_keys_added:
            click.echo(f"  + {key}")
        for key in result.range_keys_skipped:
            click.echo(f"  = {key}")
        if result.added:
            push = await ctx.synchronizer.push_pending()
            if not push.skipped:
                click.echo(f"Pushed {push.pushed} changes")

    _run(action)


@links.command("mark-synced")
@click.argument("link_id")
def mark_synced(link_id: str) -> None:
    """Acknowledge the peer's current ranges without importing."""

    async def action(ctx: ClientContext) -> None:
        version = await ctx.links.mark_as_synced(link_id)
        click.echo(f"Marked as synced at v{version}")

    _run(action)

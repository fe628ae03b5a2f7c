"""Tests for the background AutoSync loop."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from rangesync.client.context import ClientContext
from rangesync.client.models import Player
from rangesync.client.sync import AutoSync
from rangesync.core.types import SyncState
from rangesync.server.database import Database


async def wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll a condition until it holds or the timeout expires."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestAutoSync:
    """Tests for AutoSync."""

    @pytest.mark.asyncio
    async def test_initial_full_sync_and_interval_push(
        self,
        make_context: Callable[..., ClientContext],
        server_db: Database,
    ) -> None:
        """Start runs a full sync; later edits go out on the interval."""
        ctx = make_context("u1")
        auto = AutoSync(ctx.synchronizer, ctx.probe, interval=0.05)
        auto.start()
        assert auto.running

        await wait_until(lambda: ctx.store.get_last_pull_at() is not None)
        ctx.repository.save_player(Player(id="p1", name="V"))
        await wait_until(lambda: len(ctx.outbox) == 0)
        await auto.stop()

        assert not auto.running
        assert server_db.get_document("users/u1/players/p1") is not None

    @pytest.mark.asyncio
    async def test_push_when_back_online(
        self,
        make_context: Callable[..., ClientContext],
    ) -> None:
        """An offline -> online transition triggers a push."""
        ctx = make_context("u1")
        auto = AutoSync(ctx.synchronizer, ctx.probe, interval=3600)
        auto.start()
        await wait_until(lambda: ctx.store.get_last_pull_at() is not None)

        ctx.probe.set_online(False)
        assert ctx.synchronizer.status is SyncState.OFFLINE

        ctx.repository.save_player(Player(id="p1", name="V"))
        ctx.probe.set_online(True)
        await wait_until(lambda: len(ctx.outbox) == 0)
        await auto.stop()

        assert ctx.synchronizer.status is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_context_close_stops_loop(
        self,
        make_context: Callable[..., ClientContext],
    ) -> None:
        """Closing the context stops a running loop."""
        ctx = make_context("u1")
        ctx.auto_sync.start()
        await wait_until(lambda: ctx.store.get_last_pull_at() is not None)
        await ctx.auto_sync.stop()
        assert not ctx.auto_sync.running

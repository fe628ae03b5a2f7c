"""Tests for the in-memory range cache."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from rangesync.client.cache import RangeCache
from rangesync.client.models import PlayerRanges


def make_cache(store: dict[str, PlayerRanges] | None = None) -> RangeCache[PlayerRanges]:
    """Create a cache reading from a dict."""
    backing = store if store is not None else {}
    return RangeCache(key=lambda r: r.player_id, loader=backing.get)


class TestReadThrough:
    """Tests for load()."""

    def test_miss_reads_store_once(self) -> None:
        """A miss reads the store and populates the cache."""
        calls: list[str] = []
        ranges = PlayerRanges(player_id="p1")

        def loader(entity_id: str) -> PlayerRanges | None:
            calls.append(entity_id)
            return ranges if entity_id == "p1" else None

        cache: RangeCache[PlayerRanges] = RangeCache(key=lambda r: r.player_id, loader=loader)
        assert cache.load("p1") is ranges
        assert cache.load("p1") is ranges
        assert calls == ["p1"]
        assert "p1" in cache

    def test_miss_not_in_store(self) -> None:
        """Missing entities stay uncached."""
        cache = make_cache()
        assert cache.load("nope") is None
        assert len(cache) == 0

    def test_load_does_not_notify(self) -> None:
        """Populating from the store is not a change."""
        cache = make_cache({"p1": PlayerRanges(player_id="p1")})
        seen: list[str] = []
        cache.subscribe(lambda key, value: seen.append(key))
        cache.load("p1")
        assert seen == []


class TestWriteThrough:
    """Tests for set() and subscribers."""

    def test_set_notifies_all_subscribers(self) -> None:
        """Every observer sees the write synchronously."""
        cache = make_cache()
        first: list[Any] = []
        second: list[Any] = []
        cache.subscribe(lambda key, value: first.append((key, value)))
        cache.subscribe(lambda key, value: second.append((key, value)))

        ranges = PlayerRanges(player_id="p1", ranges={"early_call": {"AA": "manual-selected"}})
        cache.set(ranges)

        assert first == [("p1", ranges)]
        assert second == [("p1", ranges)]
        assert cache.get("p1") is ranges

    def test_unsubscribe(self) -> None:
        """Unsubscribed callbacks stop receiving updates."""
        cache = make_cache()
        seen: list[str] = []
        unsubscribe = cache.subscribe(lambda key, value: seen.append(key))
        unsubscribe()
        cache.set(PlayerRanges(player_id="p1"))
        assert seen == []

    def test_invalidate_notifies_none(self) -> None:
        """Invalidation publishes None for cached entities only."""
        cache = make_cache()
        seen: list[Any] = []
        cache.set(PlayerRanges(player_id="p1"))
        cache.subscribe(lambda key, value: seen.append((key, value)))
        cache.invalidate("p1")
        cache.invalidate("p2")
        assert seen == [("p1", None)]

    def test_reset_drops_subscribers(self) -> None:
        """Reset clears entries and subscribers."""
        cache = make_cache()
        seen: list[str] = []
        cache.subscribe(lambda key, value: seen.append(key))
        cache.set(PlayerRanges(player_id="p1"))
        cache.reset()
        cache.set(PlayerRanges(player_id="p2"))
        assert seen == ["p1"]
        assert "p1" not in cache

    def test_init_rebinds_loader(self) -> None:
        """init() swaps the loader and empties the cache."""
        cache = make_cache()
        cache.set(PlayerRanges(player_id="p1"))
        other = PlayerRanges(player_id="p1", hands_observed=5)
        cache.init(loader={"p1": other}.get)
        assert cache.get("p1") is None
        assert cache.load("p1") is other


class TestRefresh:
    """Tests for background refresh."""

    @pytest.mark.asyncio
    async def test_concurrent_refresh_shares_fetch(self) -> None:
        """Two refreshes of one id issue a single fetch."""
        cache = make_cache()
        calls = 0
        gate = asyncio.Event()

        async def fetch(entity_id: str) -> PlayerRanges:
            nonlocal calls
            calls += 1
            await gate.wait()
            return PlayerRanges(player_id=entity_id, hands_observed=7)

        first = asyncio.create_task(cache.refresh("p1", fetch))
        second = asyncio.create_task(cache.refresh("p1", fetch))
        await asyncio.sleep(0)
        gate.set()
        a, b = await asyncio.gather(first, second)

        assert calls == 1
        assert a is b
        assert cache.get("p1") is a

    @pytest.mark.asyncio
    async def test_refresh_error_propagates(self) -> None:
        """A failed fetch raises and leaves the cache untouched."""
        cache = make_cache()

        async def fetch(entity_id: str) -> PlayerRanges:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await cache.refresh("p1", fetch)
        assert cache.get("p1") is None

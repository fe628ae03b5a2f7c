"""Pull-based version checks for player links.

This module provides:
- LinkUpdateChecker: compares a peer's range_version against this side's
  my_last_synced_version, with a per-link TTL cache
- UpdatePoller: re-runs the batched check on an interval while started

Checking reads only the small peer player document; nothing subscribes to
the peer's ranges.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rangesync.client.api import NotFoundError
from rangesync.client.models import UpdateCheck
from rangesync.core.config import SyncSettings

if TYPE_CHECKING:
    from rangesync.client.models import UserPlayerLink
    from rangesync.client.remote import PlayersRemote

logger = logging.getLogger(__name__)

_DEFAULTS = SyncSettings()
CACHE_TTL = _DEFAULTS.link_cache_ttl
UPDATE_CHECK_BATCH_SIZE = _DEFAULTS.update_batch_size

UpdateCallback = Callable[[dict[str, UpdateCheck]], None]
LinksProvider = Callable[[], Awaitable[list["UserPlayerLink"]]]


@dataclass
class _CacheEntry:
    their_version: int
    checked_at: float


class LinkUpdateChecker:
    """Answers "does the peer have ranges I have not seen yet?".

    The cache stores the peer version observed per link. has_updates is
    always computed against the link passed in, so advancing
    my_last_synced_version takes effect without waiting for the TTL.
    """

    def __init__(
        self,
        players: PlayersRemote,
        ttl: float = CACHE_TTL,
        batch_size: int = UPDATE_CHECK_BATCH_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the checker.

        Args:
            players: Remote players adapter used to read peer versions.
            ttl: Seconds a cached peer version stays valid.
            batch_size: Concurrent checks per batch in check_all_for_updates().
            clock: Monotonic time source (injectable for tests).
        """
        self._players = players
        self._ttl = ttl
        self._batch_size = max(1, batch_size)
        self._clock = clock
        self._cache: dict[str, _CacheEntry] = {}

    def _cached(self, link_id: str) -> _CacheEntry | None:
        entry = self._cache.get(link_id)
        if entry is None:
            return None
        if self._clock() - entry.checked_at >= self._ttl:
            del self._cache[link_id]
            return None
        return entry

    def seed(self, link_id: str, their_version: int) -> None:
        """Record a freshly observed peer version."""
        self._cache[link_id] = _CacheEntry(their_version, self._clock())

    def invalidate(self, link_id: str) -> None:
        self._cache.pop(link_id, None)

    def clear(self) -> None:
        self._cache.clear()

    async def check_for_updates(self, link: UserPlayerLink) -> UpdateCheck:
        """Check whether the peer's range_version moved past ours.

        Links without a peer player, or whose peer player is gone, report
        no updates and version 0.
        """
        if not link.their_player_id:
            return UpdateCheck(has_updates=False, their_version=0)

        entry = self._cached(link.id)
        if entry is None:
            try:
                version = await self._players.get_range_version(
                    link.their_user_id, link.their_player_id
                )
            except NotFoundError:
                logger.debug("Linked player %s not found", link.their_player_id)
                return UpdateCheck(has_updates=False, their_version=0)
            self.seed(link.id, version)
            their_version = version
        else:
            their_version = entry.their_version

        return UpdateCheck(
            has_updates=their_version > link.my_last_synced_version,
            their_version=their_version,
        )

    async def check_all_for_updates(
        self, links: list[UserPlayerLink]
    ) -> dict[str, UpdateCheck]:
        """Check every active link, batch by batch.

        A link whose check fails is logged and left out of the result.

        Returns:
            Mapping of link id to UpdateCheck.
        """
        active = [link for link in links if link.is_active]
        results: dict[str, UpdateCheck] = {}
        for start in range(0, len(active), self._batch_size):
            batch = active[start : start + self._batch_size]
            checks = await asyncio.gather(
                *(self.check_for_updates(link) for link in batch),
                return_exceptions=True,
            )
            for link, check in zip(batch, checks):
                if isinstance(check, BaseException):
                    if isinstance(check, asyncio.CancelledError):
                        raise check
                    logger.warning("Update check failed for link %s: %s", link.id, check)
                    continue
                results[link.id] = check
        return results


class UpdatePoller:
    """Re-runs the batched update check on a fixed interval.

    Usage:
        poller = UpdatePoller(checker, links_provider, on_results)
        poller.start()
        ...
        await poller.stop()
    """

    def __init__(
        self,
        checker: LinkUpdateChecker,
        links: LinksProvider,
        on_results: UpdateCallback,
        interval: float = CACHE_TTL,
    ) -> None:
        self._checker = checker
        self._links = links
        self._on_results = on_results
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._stop_event), name="UpdatePoller"
        )

    async def stop(self) -> None:
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            await self._task
            self._task = None

    async def poll_once(self) -> dict[str, UpdateCheck]:
        """Run one batched check and deliver the results."""
        links = await self._links()
        results = await self._checker.check_all_for_updates(links)
        self._on_results(results)
        return results

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Link update poll failed")
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)

"""Client wiring.

This module provides:
- ClientContext: builds and owns one instance of every client component

Components are plain objects injected into each other here; none of them
is a module-level global. init() loads durable state, reset() drops
in-memory state (sign-out, test isolation), close() releases resources.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from rangesync.client.api import DocumentClient
from rangesync.client.cache import RangeCache
from rangesync.client.connectivity import ConnectivityProbe
from rangesync.client.errors import NotAuthenticatedError
from rangesync.client.links.lifecycle import PlayerLinkService
from rangesync.client.links.sharing import RangeShareService
from rangesync.client.links.updates import LinkUpdateChecker
from rangesync.client.models import Player, PlayerRanges
from rangesync.client.outbox import Outbox
from rangesync.client.rate_limit import RateLimiter
from rangesync.client.remote import RemoteStore
from rangesync.client.repository import LocalRepository
from rangesync.client.state import LocalStore
from rangesync.client.sync.auto import AutoSync
from rangesync.client.sync.synchronizer import Synchronizer
from rangesync.core.config import SyncSettings

if TYPE_CHECKING:
    import httpx

    from rangesync.client.identity import FriendChecker, IdentityProvider
    from rangesync.core.config import RemoteConfig

logger = logging.getLogger(__name__)


class ClientContext:
    """Everything a signed-in client needs, wired together.

    Usage:
        async with ClientContext(config, db_path, identity) as ctx:
            ctx.repository.save_player(player)
            await ctx.synchronizer.push_pending()
    """

    def __init__(
        self,
        config: RemoteConfig,
        db_path: Path | str,
        identity: IdentityProvider,
        settings: SyncSettings | None = None,
        friends: FriendChecker | None = None,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Build the client components.

        Args:
            config: Remote server settings.
            db_path: Local SQLite database (":memory:" for tests).
            identity: Source of the signed-in user.
            settings: Timing knobs (defaults if omitted).
            friends: Friendship capability (defaults to the remote friends list).
            rate_limiter: Rate limiter (a fresh one if omitted).
            transport: Optional httpx transport for the document client.
        """
        self.settings = settings or SyncSettings()
        self.identity = identity

        self.store = LocalStore(db_path)
        self.outbox = Outbox(self.store)
        self.ranges_cache: RangeCache[PlayerRanges] = RangeCache(key=lambda r: r.player_id)
        self.repository = LocalRepository(self.store, self.outbox, self.ranges_cache)

        self.client = DocumentClient(config, transport=transport)
        self.remote = RemoteStore(self.client)
        self.probe = ConnectivityProbe(self.client.health_check, ttl=self.settings.connectivity_ttl)
        self.rate_limiter = rate_limiter or RateLimiter()

        self.synchronizer = Synchronizer(
            self.store, self.repository, self.outbox, self.remote, self.probe, identity
        )
        self.auto_sync = AutoSync(self.synchronizer, self.probe, self.settings.auto_sync_interval)

        self.updates = LinkUpdateChecker(
            self.remote.players,
            ttl=self.settings.link_cache_ttl,
            batch_size=self.settings.update_batch_size,
        )
        self.links = PlayerLinkService(
            self.remote,
            self.repository,
            self.store,
            identity,
            friends or self.remote.friends,
            self.updates,
            self.rate_limiter,
        )
        self.shares = RangeShareService(
            self.remote,
            self.repository,
            identity,
            friends or self.remote.friends,
            self.rate_limiter,
        )

    def init(self) -> None:
        """Load the outbox from disk and start with an empty cache."""
        self.outbox.init()
        self.ranges_cache.init()
        logger.debug("Client context initialized (%s)", self.store.path)

    def reset(self) -> None:
        """Drop in-memory state and pending outbox entries."""
        self.synchronizer.reset()
        self.outbox.reset()
        self.ranges_cache.reset()
        self.updates.clear()
        self.rate_limiter.reset()

    def migrate_guest_data(self) -> list[Player]:
        """Give guest-created players to the signed-in user.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
        """
        user = self.identity.current_user()
        if user is None:
            raise NotAuthenticatedError("Sign in before migrating guest data")
        return self.repository.migrate_guest_data(user.user_id)

    async def close(self) -> None:
        """Stop background work and release the connection and database."""
        if self.auto_sync.running:
            await self.auto_sync.stop()
        await self.remote.close()
        self.store.close()

    async def __aenter__(self) -> ClientContext:
        self.init()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

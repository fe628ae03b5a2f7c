"""One-shot range shares between friends.

This module provides:
- RangeShareService: send a snapshot of a player's ranges to a friend,
  list received shares, import them (fill-empty-only) or dismiss them
- share_id_for: deterministic share id

Only ranges travel in a share, never notes. A share lives in the
recipient's inbox (users/{uid}/range_shares) until it is imported or
dismissed. Sending again for the same (sender, recipient, player name)
replaces the previous share instead of adding a second one.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rangesync.client.errors import (
    NoRangesToShareError,
    NotAuthenticatedError,
    NotFriendsError,
    PlayerNotFoundError,
    ShareLimitError,
    ShareNotFoundError,
)
from rangesync.client.links.merge import merge_fill_empty
from rangesync.client.models import ImportRangesResult, Player, RangeShare, new_id, now_ms
from rangesync.client.rate_limit import NoRateLimit
from rangesync.core.ranges import keys_with_content, to_sparse_range

if TYPE_CHECKING:
    from rangesync.client.identity import CurrentUser, FriendChecker, IdentityProvider
    from rangesync.client.rate_limit import RateLimitGate
    from rangesync.client.remote import RemoteStore
    from rangesync.client.repository import LocalRepository

logger = logging.getLogger(__name__)

MAX_PENDING_SHARES_PER_USER = 20


def share_id_for(from_user_id: str, to_user_id: str, player_name: str) -> str:
    """Id of the share slot for (sender, recipient, player name)."""
    return uuid.uuid5(uuid.NAMESPACE_URL, f"{from_user_id}/{to_user_id}/{player_name}").hex


@dataclass
class PendingSharesSummary:
    """Number of pending shares from one friend (for per-friend badges)."""

    friend_id: str
    friend_name: str
    count: int


class RangeShareService:
    """Range sharing for the signed-in user."""

    def __init__(
        self,
        remote: RemoteStore,
        repository: LocalRepository,
        identity: IdentityProvider,
        friends: FriendChecker,
        rate_limiter: RateLimitGate | None = None,
    ) -> None:
        self._remote = remote
        self._repository = repository
        self._identity = identity
        self._friends = friends
        self._rate_limiter = rate_limiter or NoRateLimit()

    def _require_user(self) -> CurrentUser:
        user = self._identity.current_user()
        if user is None:
            raise NotAuthenticatedError("You must be logged in to share ranges")
        return user

    async def send_share(self, to_user_id: str, player_id: str) -> RangeShare:
        """Send the current ranges of one of my players to a friend.

        Empty ranges are left out; a player with no content cannot be shared.

        Raises:
            NotFriendsError, PlayerNotFoundError, NoRangesToShareError, ShareLimitError
        """
        user = self._require_user()
        self._rate_limiter.check(user.user_id, "SEND_RANGE_SHARE")

        if not await self._friends.is_friend(user.user_id, to_user_id):
            raise NotFriendsError("You can only share ranges with friends")

        player = self._repository.get_player(player_id)
        if player is None:
            raise PlayerNotFoundError("Player not found")
        player_ranges = self._repository.get_player_ranges(player_id)
        ranges = player_ranges.ranges if player_ranges else {}
        keys = keys_with_content(ranges)
        if not keys:
            raise NoRangesToShareError("This player has no ranges to share")

        share_id = share_id_for(user.user_id, to_user_id, player.name)
        inbox = await self._remote.shares.list(to_user_id)
        if len([s for s in inbox if s.id != share_id]) >= MAX_PENDING_SHARES_PER_USER:
            raise ShareLimitError("This friend has too many pending shares")

        share = RangeShare(
            id=share_id,
            from_user_id=user.user_id,
            from_user_name=user.display_name,
            to_user_id=to_user_id,
            player_name=player.name,
            ranges={key: to_sparse_range(ranges[key]) for key in keys},
            range_keys=keys,
            range_count=len(keys),
            created_at=now_ms(),
        )
        await self._remote.shares.put(share)
        logger.info("Sent %d ranges of %s to %s", len(keys), player.id, to_user_id)
        return share

    # === Inbox ===

    async def list_pending(self, from_user_id: str | None = None) -> list[RangeShare]:
        """Shares waiting for me, newest first, optionally from one friend."""
        user = self._require_user()
        return await self._remote.shares.list(user.user_id, from_user_id=from_user_id)

    async def pending_count(self) -> int:
        return len(await self.list_pending())

    async def pending_by_friend(self) -> list[PendingSharesSummary]:
        summaries: dict[str, PendingSharesSummary] = {}
        for share in await self.list_pending():
            summary = summaries.get(share.from_user_id)
            if summary is None:
                summaries[share.from_user_id] = PendingSharesSummary(
                    share.from_user_id, share.from_user_name, 1
                )
            else:
                summary.count += 1
        return list(summaries.values())

    async def _require_share(self, user_id: str, share_id: str) -> RangeShare:
        share = await self._remote.shares.get(user_id, share_id)
        if share is None:
            raise ShareNotFoundError("Share not found")
        return share

    async def import_to_existing_player(self, share_id: str, player_id: str) -> ImportRangesResult:
        """Fill the empty range slots of one of my players, then drop the share.

        Keys where the player already has observations are skipped.
        """
        user = self._require_user()
        share = await self._require_share(user.user_id, share_id)
        if self._repository.get_player(player_id) is None:
            raise PlayerNotFoundError("Player not found")

        existing = self._repository.get_player_ranges(player_id)
        outcome = merge_fill_empty(existing.ranges if existing else {}, share.ranges)
        if outcome.added:
            self._repository.save_player_ranges(player_id, outcome.ranges)

        await self._remote.shares.delete(user.user_id, share_id)
        logger.info(
            "Imported share %s into %s: %d added, %d skipped",
            share_id,
            player_id,
            len(outcome.added),
            len(outcome.skipped),
        )
        return outcome.to_result()

    async def import_to_new_player(
        self, share_id: str, player_name: str, color: str | None = None
    ) -> Player:
        """Create a player from a share, then drop the share."""
        user = self._require_user()
        share = await self._require_share(user.user_id, share_id)

        player = self._repository.save_player(
            Player(id=new_id(), name=player_name, color=color, created_by=user.user_id)
        )
        if share.ranges:
            self._repository.save_player_ranges(player.id, share.ranges)

        await self._remote.shares.delete(user.user_id, share_id)
        logger.info("Imported share %s as new player %s", share_id, player.id)
        return player

    async def dismiss(self, share_id: str) -> None:
        user = self._require_user()
        await self._require_share(user.user_id, share_id)
        await self._remote.shares.delete(user.user_id, share_id)

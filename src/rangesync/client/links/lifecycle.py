"""Player-link lifecycle and range sync.

This module provides:
- PlayerLinkService: create/accept/decline/cancel/remove links, query
  them, and pull a linked peer's ranges with the fill-empty-only merge
- VALID_TRANSITIONS: the link state machine

State machine (None means "no link record"):

    None    -> pending          create
    pending -> active           accept (recipient only)
    pending -> None             decline (recipient) / cancel (initiator)
    active  -> None             remove (either party)

Each side keeps its own copy of a link under users/{uid}/player_links.
Both copies share the same id and are written together; every
validation runs before the first write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from rangesync.client.api import NotFoundError
from rangesync.client.errors import (
    InvalidLinkTransitionError,
    LinkExistsError,
    LinkLimitError,
    LinkNotFoundError,
    LinkPermissionError,
    LinkStateError,
    NotAuthenticatedError,
    NotFriendsError,
    OverwriteNotConfirmedError,
    PlayerNotFoundError,
)
from rangesync.client.links.merge import classify_keys, merge_fill_empty
from rangesync.client.models import SyncRangesResult, UserPlayerLink, new_id, now_ms
from rangesync.client.rate_limit import NoRateLimit
from rangesync.client.state import PLAYER_LINKS_TABLE
from rangesync.core.ranges import RangeSet
from rangesync.core.types import LinkStatus

if TYPE_CHECKING:
    from rangesync.client.identity import CurrentUser, FriendChecker, IdentityProvider
    from rangesync.client.links.updates import LinkUpdateChecker
    from rangesync.client.rate_limit import RateLimitGate
    from rangesync.client.remote import RemoteStore
    from rangesync.client.repository import LocalRepository
    from rangesync.client.state import LocalStore

logger = logging.getLogger(__name__)

MAX_LINKS_PER_PLAYER = 100

VALID_TRANSITIONS: dict[LinkStatus | None, frozenset[LinkStatus | None]] = {
    None: frozenset({LinkStatus.PENDING}),
    LinkStatus.PENDING: frozenset({LinkStatus.ACTIVE, None}),
    LinkStatus.ACTIVE: frozenset({None}),
}


def check_transition(current: LinkStatus | None, target: LinkStatus | None) -> None:
    """Validate a link status transition.

    Raises:
        InvalidLinkTransitionError: If the transition is not allowed.
    """
    if target not in VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidLinkTransitionError(
            f"Invalid link transition: {current.value if current else 'none'}"
            f" -> {target.value if target else 'none'}"
        )


@dataclass
class LinkQuota:
    """How many link slots a user has used and left."""

    used: int
    remaining: int
    max: int = MAX_LINKS_PER_PLAYER


@dataclass
class LinkPreview:
    """What a sync of a link would do, for the confirmation screen."""

    their_version: int
    peer_ranges: RangeSet = field(default_factory=dict)
    new_keys: list[str] = field(default_factory=list)
    update_keys: list[str] = field(default_factory=list)


class PlayerLinkService:
    """Player-link protocol for the signed-in user.

    Every mutating call validates first (identity, rate limit, friendship,
    limits, ownership, state) and raises a ValidationError subclass whose
    message is meant for the user. No write happens on a rejected call.
    """

    def __init__(
        self,
        remote: RemoteStore,
        repository: LocalRepository,
        store: LocalStore,
        identity: IdentityProvider,
        friends: FriendChecker,
        updates: LinkUpdateChecker,
        rate_limiter: RateLimitGate | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            remote: Remote entity adapters.
            repository: Local write path for merged ranges.
            store: Local store holding the player_links mirror.
            identity: Source of the signed-in user.
            friends: Friendship capability.
            updates: Version checker whose cache is invalidated on changes.
            rate_limiter: Gate checked before each action.
        """
        self._remote = remote
        self._repository = repository
        self._store = store
        self._identity = identity
        self._friends = friends
        self._updates = updates
        self._rate_limiter = rate_limiter or NoRateLimit()

    def _require_user(self) -> CurrentUser:
        user = self._identity.current_user()
        if user is None:
            raise NotAuthenticatedError("You must be logged in to manage player links")
        return user

    def _mirror(self, link: UserPlayerLink) -> None:
        self._store.put(PLAYER_LINKS_TABLE, link.id, link.to_dict())

    def _unmirror(self, link_id: str) -> None:
        self._store.delete(PLAYER_LINKS_TABLE, link_id)

    async def _require_link(self, user_id: str, link_id: str) -> UserPlayerLink:
        link = await self._remote.links.get(user_id, link_id)
        if link is None:
            raise LinkNotFoundError("Player link not found")
        return link

    # === Lifecycle ===

    async def create(
        self, my_player_id: str, their_user_id: str, their_user_name: str
    ) -> UserPlayerLink:
        """Send a link request from one of my players to a friend.

        Returns:
            The initiator's copy of the new pending link.

        Raises:
            NotFriendsError, LinkLimitError, LinkExistsError, PlayerNotFoundError
        """
        user = self._require_user()
        self._rate_limiter.check(user.user_id, "CREATE_PLAYER_LINK")

        if not await self._friends.is_friend(user.user_id, their_user_id):
            raise NotFriendsError("You can only create links with friends")

        links = await self._remote.links.list(user.user_id)
        if len(links) >= MAX_LINKS_PER_PLAYER:
            raise LinkLimitError(
                f"You've reached the maximum of {MAX_LINKS_PER_PLAYER} player links"
            )
        if any(
            link.my_player_id == my_player_id and link.their_user_id == their_user_id
            for link in links
        ):
            raise LinkExistsError("A link already exists between these players")

        player = self._repository.get_player(my_player_id)
        if player is None:
            raise PlayerNotFoundError("Player not found")

        check_transition(None, LinkStatus.PENDING)
        created_at = now_ms()
        mine = UserPlayerLink(
            id=new_id(),
            status=LinkStatus.PENDING,
            is_initiator=True,
            their_user_id=their_user_id,
            their_user_name=their_user_name,
            my_player_id=player.id,
            my_player_name=player.name,
            created_at=created_at,
        )
        theirs = UserPlayerLink(
            id=mine.id,
            status=LinkStatus.PENDING,
            is_initiator=False,
            their_user_id=user.user_id,
            their_user_name=user.display_name,
            their_player_id=player.id,
            their_player_name=player.name,
            created_at=created_at,
        )
        await self._remote.links.put(their_user_id, theirs)
        await self._remote.links.put(user.user_id, mine)
        self._mirror(mine)
        logger.info("Created link %s for player %s -> %s", mine.id, player.id, their_user_id)
        return mine

    async def accept(self, link_id: str, my_player_id: str) -> UserPlayerLink:
        """Accept a pending link, pairing it with one of my players.

        Raises:
            LinkPermissionError: If I created the link.
            LinkStateError: If the link is no longer pending.
            PlayerNotFoundError, LinkLimitError
        """
        user = self._require_user()
        self._rate_limiter.check(user.user_id, "ACCEPT_PLAYER_LINK")

        link = await self._require_link(user.user_id, link_id)
        if link.is_initiator:
            raise LinkPermissionError("You can only accept links sent to you")
        if not link.is_pending:
            raise LinkStateError("This link has already been accepted")

        player = self._repository.get_player(my_player_id)
        if player is None:
            raise PlayerNotFoundError("Player not found")

        # The cap may have filled up since the request was sent
        others = [
            other
            for other in await self._remote.links.list(user.user_id)
            if other.id != link_id
        ]
        if len(others) >= MAX_LINKS_PER_PLAYER:
            raise LinkLimitError(
                f"You've reached the maximum of {MAX_LINKS_PER_PLAYER} player links"
            )

        check_transition(link.status, LinkStatus.ACTIVE)
        accepted_at = now_ms()
        await self._remote.links.update(
            link.their_user_id,
            link_id,
            {
                "status": LinkStatus.ACTIVE.value,
                "their_player_id": player.id,
                "their_player_name": player.name,
                "accepted_at": accepted_at,
            },
        )
        accepted = replace(
            link,
            status=LinkStatus.ACTIVE,
            my_player_id=player.id,
            my_player_name=player.name,
            accepted_at=accepted_at,
        )
        await self._remote.links.update(
            user.user_id,
            link_id,
            {
                "status": LinkStatus.ACTIVE.value,
                "my_player_id": player.id,
                "my_player_name": player.name,
                "accepted_at": accepted_at,
            },
        )
        self._mirror(accepted)
        logger.info("Accepted link %s with player %s", link_id, player.id)
        return accepted

    async def decline(self, link_id: str) -> None:
        """Decline a link request sent to me."""
        user = self._require_user()
        self._rate_limiter.check(user.user_id, "DECLINE_PLAYER_LINK")

        link = await self._require_link(user.user_id, link_id)
        if link.is_initiator:
            raise LinkPermissionError("You can only decline links sent to you")
        if not link.is_pending:
            raise LinkStateError("This link is not pending")

        await self._delete_both(user.user_id, link)
        logger.info("Declined link %s", link_id)

    async def cancel(self, link_id: str) -> None:
        """Withdraw a link request I sent."""
        user = self._require_user()
        self._rate_limiter.check(user.user_id, "CANCEL_PLAYER_LINK")

        link = await self._require_link(user.user_id, link_id)
        if not link.is_initiator:
            raise LinkPermissionError("You can only cancel links you created")
        if not link.is_pending:
            raise LinkStateError("This link is not pending")

        await self._delete_both(user.user_id, link)
        logger.info("Cancelled link %s", link_id)

    async def remove(self, link_id: str) -> None:
        """Remove an active link. Either party may do this."""
        user = self._require_user()
        self._rate_limiter.check(user.user_id, "REMOVE_PLAYER_LINK")

        link = await self._require_link(user.user_id, link_id)
        if not link.is_active:
            raise LinkStateError("Link is not active")

        await self._delete_both(user.user_id, link)
        self._updates.invalidate(link_id)
        logger.info("Removed link %s", link_id)

    async def _delete_both(self, user_id: str, link: UserPlayerLink) -> None:
        check_transition(link.status, None)
        await self._remote.links.delete(link.their_user_id, link.id)
        await self._remote.links.delete(user_id, link.id)
        self._unmirror(link.id)

    # === Queries ===

    async def list_links(self) -> list[UserPlayerLink]:
        user = self._require_user()
        return await self._remote.links.list(user.user_id)

    async def list_active(self) -> list[UserPlayerLink]:
        user = self._require_user()
        return await self._remote.links.list(user.user_id, status=LinkStatus.ACTIVE)

    async def list_pending_received(self) -> list[UserPlayerLink]:
        user = self._require_user()
        return await self._remote.links.list(
            user.user_id, status=LinkStatus.PENDING, is_initiator=False
        )

    async def list_pending_sent(self) -> list[UserPlayerLink]:
        user = self._require_user()
        return await self._remote.links.list(
            user.user_id, status=LinkStatus.PENDING, is_initiator=True
        )

    async def links_for_player(self, player_id: str) -> list[UserPlayerLink]:
        return [link for link in await self.list_links() if link.my_player_id == player_id]

    async def get_link(self, link_id: str) -> UserPlayerLink | None:
        user = self._require_user()
        return await self._remote.links.get(user.user_id, link_id)

    async def link_count(self) -> int:
        return len(await self.list_links())

    async def remaining_links(self) -> LinkQuota:
        used = await self.link_count()
        return LinkQuota(used=used, remaining=max(0, MAX_LINKS_PER_PLAYER - used))

    async def refresh(self) -> list[UserPlayerLink]:
        """Reload my link copies and mirror them locally.

        Also drops every cached version check.
        """
        links = await self.list_links()
        self._store.replace_all(PLAYER_LINKS_TABLE, [(link.id, link.to_dict()) for link in links])
        self._updates.clear()
        return links

    def local_links(self) -> list[UserPlayerLink]:
        """Links as of the last refresh (works offline)."""
        return [UserPlayerLink.from_dict(d) for d in self._store.get_all(PLAYER_LINKS_TABLE)]

    # === Range sync ===

    async def _require_active(
        self, user_id: str, link_id: str
    ) -> tuple[UserPlayerLink, str, str]:
        """Load an active link along with both of its player ids."""
        link = await self._require_link(user_id, link_id)
        if not link.is_active:
            raise LinkStateError("Link is not active")
        if not link.my_player_id or not link.their_player_id:
            raise LinkStateError("Linked player not set")
        return link, link.my_player_id, link.their_player_id

    async def _peer_version(self, link: UserPlayerLink, their_player_id: str) -> int:
        try:
            return await self._remote.players.get_range_version(
                link.their_user_id, their_player_id
            )
        except NotFoundError:
            raise PlayerNotFoundError("Linked player not found") from None

    async def _fetch_peer(
        self, link: UserPlayerLink, their_player_id: str
    ) -> tuple[int, RangeSet]:
        # Version first: if the peer edits in between we merely see the
        # newer ranges under the older version and report updates again
        version = await self._peer_version(link, their_player_id)
        peer = await self._remote.ranges.get(link.their_user_id, their_player_id)
        return version, (peer.ranges if peer else {})

    def _local_ranges(self, player_id: str) -> RangeSet:
        if self._repository.get_player(player_id) is None:
            raise PlayerNotFoundError("Player not found")
        local = self._repository.get_player_ranges(player_id)
        return local.ranges if local else {}

    async def preview(self, link_id: str) -> LinkPreview:
        """Classify the peer's keys without importing anything."""
        user = self._require_user()
        link, my_player_id, their_player_id = await self._require_active(user.user_id, link_id)
        version, peer = await self._fetch_peer(link, their_player_id)
        classified = classify_keys(self._local_ranges(my_player_id), peer)
        return LinkPreview(
            their_version=version,
            peer_ranges=peer,
            new_keys=classified.new_keys,
            update_keys=classified.update_keys,
        )

    async def sync(self, link_id: str) -> SyncRangesResult:
        """Import every peer range whose local slot is empty.

        Keys where I already have content are skipped and reported.
        """
        return await self._sync(link_id, None, confirm_overwrite=False)

    async def sync_selected(
        self,
        link_id: str,
        range_keys: list[str],
        confirm_overwrite: bool = False,
    ) -> SyncRangesResult:
        """Import exactly the selected peer ranges.

        Args:
            link_id: Active link to pull from.
            range_keys: Keys to import.
            confirm_overwrite: Must be True when a selected key would
                replace ranges I already have.

        Raises:
            OverwriteNotConfirmedError: If a selected key holds local
                content and confirm_overwrite is False.
        """
        return await self._sync(link_id, list(range_keys), confirm_overwrite)

    async def _sync(
        self,
        link_id: str,
        selected: list[str] | None,
        confirm_overwrite: bool,
    ) -> SyncRangesResult:
        user = self._require_user()
        self._rate_limiter.check(user.user_id, "SYNC_PLAYER_LINK")

        link, my_player_id, their_player_id = await self._require_active(user.user_id, link_id)
        version, peer = await self._fetch_peer(link, their_player_id)
        local = self._local_ranges(my_player_id)

        if selected is not None and not confirm_overwrite:
            update_keys = set(classify_keys(local, peer).update_keys)
            overwrite = [key for key in selected if key in update_keys]
            if overwrite:
                raise OverwriteNotConfirmedError(
                    "Importing will replace your existing ranges for: " + ", ".join(overwrite),
                    overwrite,
                )

        outcome = merge_fill_empty(local, peer, selected)
        if outcome.added:
            self._repository.save_player_ranges(my_player_id, outcome.ranges)

        await self._advance(user.user_id, link, version)
        logger.info(
            "Synced link %s: %d added, %d skipped (version %d)",
            link_id,
            len(outcome.added),
            len(outcome.skipped),
            version,
        )
        return SyncRangesResult(
            added=len(outcome.added),
            skipped=len(outcome.skipped),
            range_keys_added=outcome.added,
            range_keys_skipped=outcome.skipped,
            new_version=version,
        )

    async def mark_as_synced(self, link_id: str) -> int:
        """Acknowledge the peer's current ranges without importing.

        Returns:
            The peer version now recorded as seen.
        """
        user = self._require_user()
        self._rate_limiter.check(user.user_id, "SYNC_PLAYER_LINK")

        link, _, their_player_id = await self._require_active(user.user_id, link_id)
        version = await self._peer_version(link, their_player_id)
        await self._advance(user.user_id, link, version)
        return version

    async def _advance(self, user_id: str, link: UserPlayerLink, version: int) -> None:
        await self._remote.links.update(user_id, link.id, {"my_last_synced_version": version})
        self._mirror(replace(link, my_last_synced_version=version))
        self._updates.invalidate(link.id)

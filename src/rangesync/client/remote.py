"""Per-entity adapters over the remote document store.

This module provides one adapter per entity kind, all sharing a
DocumentClient:
- PlayersRemote: users/{uid}/players
- RangesRemote: users/{uid}/player_ranges (and the owning player's range_version)
- SessionsRemote: users/{uid}/sessions
- PlayerLinksRemote: users/{uid}/player_links (one copy per side)
- RangeSharesRemote: users/{uid}/range_shares (inbox of the recipient)
- FriendsRemote: users/{uid}/friends, used as the friendship capability
- RemoteStore: bundle of all adapters

Adapters are pure I/O: they translate entities to documents and back
and let APIError subclasses propagate. Merge policy lives elsewhere.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from rangesync.client.api import NotFoundError
from rangesync.client.models import (
    Player,
    PlayerRanges,
    RangeShare,
    Session,
    UserPlayerLink,
)
from rangesync.core.types import LinkStatus

if TYPE_CHECKING:
    from rangesync.client.api import DocumentClient, Filter

logger = logging.getLogger(__name__)


def user_collection(user_id: str, name: str) -> str:
    """Path of a per-user subcollection."""
    return f"users/{user_id}/{name}"


def user_document(user_id: str, name: str, doc_id: str) -> str:
    """Path of a document in a per-user subcollection."""
    return f"{user_collection(user_id, name)}/{doc_id}"


class PlayersRemote:
    """Remote CRUD for a user's players."""

    COLLECTION = "players"

    def __init__(self, client: DocumentClient) -> None:
        self._client = client

    async def list(self, user_id: str) -> list[Player]:
        docs = await self._client.query(user_collection(user_id, self.COLLECTION))
        return [Player.from_dict({**doc.data, "id": doc.id}) for doc in docs]

    async def get(self, user_id: str, player_id: str) -> Player:
        """Get a player.

        Raises:
            NotFoundError: If the player does not exist.
        """
        doc = await self._client.get(user_document(user_id, self.COLLECTION, player_id))
        return Player.from_dict({**doc.data, "id": doc.id})

    async def exists(self, user_id: str, player_id: str) -> bool:
        return await self._client.exists(user_document(user_id, self.COLLECTION, player_id))

    async def get_range_version(self, user_id: str, player_id: str) -> int:
        """Read only the range_version counter of a player."""
        player = await self.get(user_id, player_id)
        return player.range_version

    async def create(self, user_id: str, data: dict[str, Any]) -> None:
        # Merging upsert: a retried create is harmless, and a range_version
        # published by an earlier ranges push survives
        fields = {k: v for k, v in data.items() if k != "range_version"}
        await self._client.set(
            user_document(user_id, self.COLLECTION, data["id"]), fields, merge=True
        )

    async def update(self, user_id: str, data: dict[str, Any]) -> None:
        # range_version is only ever published by RangesRemote.save
        fields = {k: v for k, v in data.items() if k not in ("id", "range_version")}
        await self._client.update(user_document(user_id, self.COLLECTION, data["id"]), fields)

    async def delete(self, user_id: str, player_id: str) -> None:
        """Delete a player and its range set.

        Raises:
            NotFoundError: If the player document is already gone.
        """
        await self._client.delete(user_document(user_id, self.COLLECTION, player_id))
        try:
            await self._client.delete(
                user_document(user_id, RangesRemote.COLLECTION, player_id)
            )
        except NotFoundError:
            logger.debug("No remote ranges to delete for player %s", player_id)


class RangesRemote:
    """Remote storage of range sets.

    The range set of a player lives in its own document so that version
    checks can read the small player document only. Saving a range set
    also publishes its range_version on the player document.
    """

    COLLECTION = "player_ranges"

    def __init__(self, client: DocumentClient) -> None:
        self._client = client

    async def list(self, user_id: str) -> list[PlayerRanges]:
        docs = await self._client.query(user_collection(user_id, self.COLLECTION))
        return [PlayerRanges.from_dict({**doc.data, "player_id": doc.id}) for doc in docs]

    async def get(self, user_id: str, player_id: str) -> PlayerRanges | None:
        try:
            doc = await self._client.get(user_document(user_id, self.COLLECTION, player_id))
        except NotFoundError:
            return None
        return PlayerRanges.from_dict({**doc.data, "player_id": doc.id})

    async def save(self, user_id: str, data: dict[str, Any]) -> None:
        """Store a range set and bump the owner's published version.

        Both writes are merging upserts: the player document may not have
        reached the server yet when its ranges are pushed.
        """
        player_id = data["player_id"]
        await self._client.set(
            user_document(user_id, PlayersRemote.COLLECTION, player_id),
            {"range_version": data.get("range_version", 0)},
            merge=True,
        )
        await self._client.set(user_document(user_id, self.COLLECTION, player_id), data)

    async def delete(self, user_id: str, player_id: str) -> None:
        await self._client.delete(user_document(user_id, self.COLLECTION, player_id))


class SessionsRemote:
    """Remote CRUD for a user's finished sessions."""

    COLLECTION = "sessions"

    def __init__(self, client: DocumentClient) -> None:
        self._client = client

    async def list(self, user_id: str) -> list[Session]:
        docs = await self._client.query(
            user_collection(user_id, self.COLLECTION),
            order_by="start_time",
            descending=True,
        )
        return [Session.from_dict({**doc.data, "id": doc.id}) for doc in docs]

    async def get(self, user_id: str, session_id: str) -> Session:
        doc = await self._client.get(user_document(user_id, self.COLLECTION, session_id))
        return Session.from_dict({**doc.data, "id": doc.id})

    async def create(self, user_id: str, data: dict[str, Any]) -> None:
        await self._client.set(user_document(user_id, self.COLLECTION, data["id"]), data)

    async def update(self, user_id: str, data: dict[str, Any]) -> None:
        # Upsert: a session ended before its first push is queued as an update
        fields = {k: v for k, v in data.items() if k != "id"}
        await self._client.set(
            user_document(user_id, self.COLLECTION, data["id"]), fields, merge=True
        )

    async def delete(self, user_id: str, session_id: str) -> None:
        await self._client.delete(user_document(user_id, self.COLLECTION, session_id))


class PlayerLinksRemote:
    """Each user's copy of their player links."""

    COLLECTION = "player_links"

    def __init__(self, client: DocumentClient) -> None:
        self._client = client

    def collection(self, user_id: str) -> str:
        return user_collection(user_id, self.COLLECTION)

    async def list(
        self,
        user_id: str,
        status: LinkStatus | None = None,
        is_initiator: bool | None = None,
    ) -> list[UserPlayerLink]:
        filters: list[Filter] = []
        if status is not None:
            filters.append(("status", "==", status.value))
        if is_initiator is not None:
            filters.append(("is_initiator", "==", is_initiator))
        docs = await self._client.query(
            self.collection(user_id),
            filters=filters or None,
            order_by="created_at",
            descending=True,
        )
        return [UserPlayerLink.from_dict({**doc.data, "id": doc.id}) for doc in docs]

    async def get(self, user_id: str, link_id: str) -> UserPlayerLink | None:
        try:
            doc = await self._client.get(user_document(user_id, self.COLLECTION, link_id))
        except NotFoundError:
            return None
        return UserPlayerLink.from_dict({**doc.data, "id": doc.id})

    async def put(self, user_id: str, link: UserPlayerLink) -> None:
        await self._client.set(user_document(user_id, self.COLLECTION, link.id), link.to_dict())

    async def update(self, user_id: str, link_id: str, fields: dict[str, Any]) -> None:
        await self._client.update(user_document(user_id, self.COLLECTION, link_id), fields)

    async def delete(self, user_id: str, link_id: str) -> None:
        """Delete one side's copy; a copy that is already gone is ignored."""
        try:
            await self._client.delete(user_document(user_id, self.COLLECTION, link_id))
        except NotFoundError:
            logger.debug("Link %s already deleted for %s", link_id, user_id)


class RangeSharesRemote:
    """Range shares, stored in the recipient's inbox."""

    COLLECTION = "range_shares"

    def __init__(self, client: DocumentClient) -> None:
        self._client = client

    def collection(self, user_id: str) -> str:
        return user_collection(user_id, self.COLLECTION)

    async def list(self, user_id: str, from_user_id: str | None = None) -> list[RangeShare]:
        filters: list[Filter] | None = None
        if from_user_id is not None:
            filters = [("from_user_id", "==", from_user_id)]
        docs = await self._client.query(
            self.collection(user_id),
            filters=filters,
            order_by="created_at",
            descending=True,
        )
        return [RangeShare.from_dict({**doc.data, "id": doc.id}) for doc in docs]

    async def get(self, user_id: str, share_id: str) -> RangeShare | None:
        try:
            doc = await self._client.get(user_document(user_id, self.COLLECTION, share_id))
        except NotFoundError:
            return None
        return RangeShare.from_dict({**doc.data, "id": doc.id})

    async def put(self, share: RangeShare) -> None:
        await self._client.set(
            user_document(share.to_user_id, self.COLLECTION, share.id), share.to_dict()
        )

    async def delete(self, user_id: str, share_id: str) -> None:
        await self._client.delete(user_document(user_id, self.COLLECTION, share_id))


class FriendsRemote:
    """Friendship capability backed by users/{uid}/friends."""

    COLLECTION = "friends"

    def __init__(self, client: DocumentClient) -> None:
        self._client = client

    async def is_friend(self, user_id: str, other_user_id: str) -> bool:
        return await self._client.exists(user_document(user_id, self.COLLECTION, other_user_id))


class RemoteStore:
    """All entity adapters over one DocumentClient."""

    def __init__(self, client: DocumentClient) -> None:
        self.client = client
        self.players = PlayersRemote(client)
        self.ranges = RangesRemote(client)
        self.sessions = SessionsRemote(client)
        self.links = PlayerLinksRemote(client)
        self.shares = RangeSharesRemote(client)
        self.friends = FriendsRemote(client)

    async def close(self) -> None:
        await self.client.close()

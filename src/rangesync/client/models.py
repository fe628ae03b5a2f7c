"""Client-side entity models.

This module provides dataclasses for every entity the data layer stores
locally or exchanges with the remote document store:
- Player, NoteEntry, PlayerRanges, Session
- PendingSyncItem (outbox entry)
- UserPlayerLink (one side's copy of a player link)
- RangeShare
- Result types returned by link and share operations

All models serialize to snake_case dicts with to_dict() and are rebuilt
with from_dict(). Timestamps are integer milliseconds since the epoch.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from rangesync.core.ranges import RangeSet, to_sparse_range_set
from rangesync.core.types import Collection, LinkStatus, Operation


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def new_id() -> str:
    """Generate a new entity id."""
    return uuid.uuid4().hex


@dataclass
class NoteEntry:
    """A timestamped note attached to a player."""

    id: str
    content: str
    timestamp: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NoteEntry:
        return cls(id=data["id"], content=data["content"], timestamp=data["timestamp"])

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "content": self.content, "timestamp": self.timestamp}


@dataclass
class Player:
    """A tracked opponent.

    Attributes:
        id: Unique player ID.
        name: Display name.
        color: Optional hex color used for categorization.
        notes: Legacy free-text notes.
        notes_list: Timestamped note entries.
        locations: Venues where the player was seen.
        range_version: Counter bumped on every range content change.
        is_shared: True if the player was created from a friend's data.
        created_by: User ID of the creator.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
        photo_url: Optional avatar URL.
    """

    id: str
    name: str
    color: str | None = None
    notes: str | None = None
    notes_list: list[NoteEntry] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)
    range_version: int = 0
    is_shared: bool = False
    created_by: str = ""
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    photo_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Player:
        """Create from a stored or remote document."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            color=data.get("color"),
            notes=data.get("notes"),
            notes_list=[NoteEntry.from_dict(n) for n in data.get("notes_list") or []],
            locations=list(data.get("locations") or []),
            range_version=data.get("range_version", 0),
            is_shared=data.get("is_shared", False),
            created_by=data.get("created_by", ""),
            created_at=data.get("created_at", 0),
            updated_at=data.get("updated_at", 0),
            photo_url=data.get("photo_url"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "notes": self.notes,
            "notes_list": [n.to_dict() for n in self.notes_list],
            "locations": list(self.locations),
            "range_version": self.range_version,
            "is_shared": self.is_shared,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "photo_url": self.photo_url,
        }


@dataclass
class PlayerRanges:
    """The Range Set owned by one player.

    Ranges are always held in sparse form; from_dict() and to_dict()
    both strip "unselected" entries.
    """

    player_id: str
    ranges: RangeSet = field(default_factory=dict)
    last_observed: int = field(default_factory=now_ms)
    hands_observed: int = 0
    range_version: int = 0

    def __post_init__(self) -> None:
        self.ranges = to_sparse_range_set(self.ranges)

    @property
    def id(self) -> str:
        """Ranges are keyed by their owning player."""
        return self.player_id

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlayerRanges:
        return cls(
            player_id=data["player_id"],
            ranges=data.get("ranges") or {},
            last_observed=data.get("last_observed", 0),
            hands_observed=data.get("hands_observed", 0),
            range_version=data.get("range_version", 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "ranges": to_sparse_range_set(self.ranges),
            "last_observed": self.last_observed,
            "hands_observed": self.hands_observed,
            "range_version": self.range_version,
        }


@dataclass
class Session:
    """A live or finished poker session.

    The table field holds transient seating state. It is local-only and
    stripped before any remote write.
    """

    id: str
    name: str
    start_time: int
    is_active: bool = True
    created_by: str = ""
    location: str | None = None
    game_type: str | None = None
    small_blind: float | None = None
    big_blind: float | None = None
    third_blind: float | None = None
    ante: float | None = None
    buy_in: float | None = None
    cash_out: float | None = None
    currency: str | None = None
    stakes: str | None = None
    end_time: int | None = None
    duration: int | None = None
    table: dict[str, Any] | None = None

    _OPTIONAL_FIELDS = (
        "location",
        "game_type",
        "small_blind",
        "big_blind",
        "third_blind",
        "ante",
        "buy_in",
        "cash_out",
        "currency",
        "stakes",
        "end_time",
        "duration",
        "table",
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            start_time=data.get("start_time", 0),
            is_active=data.get("is_active", False),
            created_by=data.get("created_by", ""),
            **{name: data.get(name) for name in cls._OPTIONAL_FIELDS},
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "start_time": self.start_time,
            "is_active": self.is_active,
            "created_by": self.created_by,
        }
        for name in self._OPTIONAL_FIELDS:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


def target_id_for(collection: Collection | str, data: dict[str, Any]) -> str:
    """Get the entity id an outbox payload refers to.

    Range sets are keyed by their player, every other collection by id.
    """
    if Collection(collection) is Collection.PLAYER_RANGES:
        return str(data["player_id"])
    return str(data["id"])


@dataclass
class PendingSyncItem:
    """An intended remote mutation waiting in the outbox.

    Attributes:
        id: Unique entry ID.
        collection: Entity collection the mutation targets.
        operation: create, update or delete.
        data: Entity payload (or {"id": ...} for deletes).
        timestamp: When the entry was queued or last coalesced.
    """

    id: str
    collection: Collection
    operation: Operation
    data: dict[str, Any]
    timestamp: int = field(default_factory=now_ms)

    @property
    def target_id(self) -> str:
        return target_id_for(self.collection, self.data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingSyncItem:
        return cls(
            id=data["id"],
            collection=Collection(data["collection"]),
            operation=Operation(data["operation"]),
            data=data["data"],
            timestamp=data.get("timestamp", 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "collection": self.collection.value,
            "operation": self.operation.value,
            "data": self.data,
            "timestamp": self.timestamp,
        }


@dataclass
class UserPlayerLink:
    """One user's copy of a player link.

    Each side stores its own copy under its user so that each side can
    track which peer version it has already incorporated.
    """

    id: str
    status: LinkStatus
    is_initiator: bool
    their_user_id: str
    their_user_name: str
    my_player_id: str | None = None
    my_player_name: str | None = None
    my_last_synced_version: int = 0
    their_player_id: str | None = None
    their_player_name: str | None = None
    created_at: int = field(default_factory=now_ms)
    accepted_at: int | None = None

    @property
    def is_active(self) -> bool:
        return self.status is LinkStatus.ACTIVE

    @property
    def is_pending(self) -> bool:
        return self.status is LinkStatus.PENDING

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserPlayerLink:
        return cls(
            id=data["id"],
            status=LinkStatus(data["status"]),
            is_initiator=data["is_initiator"],
            their_user_id=data["their_user_id"],
            their_user_name=data.get("their_user_name", ""),
            my_player_id=data.get("my_player_id"),
            my_player_name=data.get("my_player_name"),
            my_last_synced_version=data.get("my_last_synced_version", 0),
            their_player_id=data.get("their_player_id"),
            their_player_name=data.get("their_player_name"),
            created_at=data.get("created_at", 0),
            accepted_at=data.get("accepted_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "is_initiator": self.is_initiator,
            "their_user_id": self.their_user_id,
            "their_user_name": self.their_user_name,
            "my_player_id": self.my_player_id,
            "my_player_name": self.my_player_name,
            "my_last_synced_version": self.my_last_synced_version,
            "their_player_id": self.their_player_id,
            "their_player_name": self.their_player_name,
            "created_at": self.created_at,
            "accepted_at": self.accepted_at,
        }


@dataclass
class RangeShare:
    """A one-shot snapshot of a sender's ranges waiting for the recipient."""

    id: str
    from_user_id: str
    from_user_name: str
    to_user_id: str
    player_name: str
    ranges: RangeSet
    range_keys: list[str] = field(default_factory=list)
    range_count: int = 0
    created_at: int = field(default_factory=now_ms)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RangeShare:
        return cls(
            id=data["id"],
            from_user_id=data["from_user_id"],
            from_user_name=data.get("from_user_name", ""),
            to_user_id=data["to_user_id"],
            player_name=data["player_name"],
            ranges=data.get("ranges") or {},
            range_keys=list(data.get("range_keys") or []),
            range_count=data.get("range_count", 0),
            created_at=data.get("created_at", 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from_user_id": self.from_user_id,
            "from_user_name": self.from_user_name,
            "to_user_id": self.to_user_id,
            "player_name": self.player_name,
            "ranges": self.ranges,
            "range_keys": list(self.range_keys),
            "range_count": self.range_count,
            "created_at": self.created_at,
        }


@dataclass
class UpdateCheck:
    """Outcome of a link version check."""

    has_updates: bool
    their_version: int


@dataclass
class ImportRangesResult:
    """Outcome of a fill-empty-only import."""

    added: int
    skipped: int
    range_keys_added: list[str] = field(default_factory=list)
    range_keys_skipped: list[str] = field(default_factory=list)


@dataclass
class SyncRangesResult(ImportRangesResult):
    """Outcome of syncing ranges from a linked player.

    Attributes:
        new_version: The peer's range_version observed at sync time.
    """

    new_version: int = 0

"""Entity-aware write path over the local store.

This module provides:
- LocalRepository: reads and writes players, range sets and sessions

Every user-initiated write follows the same path: validate, persist to
the LocalStore, publish to the range cache, then append an outbox entry
if the entity needs remote durability. The "from cloud" variants used by
pull persist without touching the outbox.

Rules enforced here:
- Ranges are stored sparse (unselected entries stripped).
- Range content changes bump the owning player's range_version;
  metadata edits do not.
- Active sessions never reach the outbox. Only a finished session is
  queued.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rangesync.client.errors import EntityValidationError
from rangesync.client.identity import GUEST_USER_ID
from rangesync.client.models import (
    NoteEntry,
    Player,
    PlayerRanges,
    Session,
    new_id,
    now_ms,
)
from rangesync.client.state import (
    PLAYER_RANGES_TABLE,
    PLAYERS_TABLE,
    SESSIONS_TABLE,
)
from rangesync.core.ranges import Range, RangeSet, to_sparse_range
from rangesync.core.types import Collection, Operation
from rangesync.core.validation import (
    MAX_LOCATIONS_PER_PLAYER,
    MAX_NOTES_LIST_ITEMS,
    MAX_RANGES_PER_PLAYER,
    ValidationResult,
    check_player_document_size,
    check_session_document_size,
    validate_player_data,
    validate_range,
    validate_session_data,
)

if TYPE_CHECKING:
    from rangesync.client.cache import RangeCache
    from rangesync.client.outbox import Outbox
    from rangesync.client.state import LocalStore

logger = logging.getLogger(__name__)


def _raise_if_invalid(result: ValidationResult) -> None:
    for warning in result.warnings:
        logger.warning("Validation warning: %s", warning)
    if not result.valid:
        raise EntityValidationError(result.errors[0], result.errors)


class LocalRepository:
    """Players, range sets and sessions on top of LocalStore + Outbox."""

    def __init__(
        self,
        store: LocalStore,
        outbox: Outbox,
        ranges_cache: RangeCache[PlayerRanges],
    ) -> None:
        """Initialize the repository.

        Args:
            store: Durable local store.
            outbox: Outbox receiving remote mutations.
            ranges_cache: Cache published to on every range write.
        """
        self._store = store
        self._outbox = outbox
        self._ranges_cache = ranges_cache
        self._ranges_cache.init(self._read_player_ranges)

    # === Players ===

    def list_players(self) -> list[Player]:
        return [Player.from_dict(d) for d in self._store.get_all(PLAYERS_TABLE)]

    def get_player(self, player_id: str) -> Player | None:
        data = self._store.get(PLAYERS_TABLE, player_id)
        return Player.from_dict(data) if data else None

    def save_player(self, player: Player) -> Player:
        """Create or update a player's metadata.

        Does not change range_version: the counter tracks range content only.

        Raises:
            EntityValidationError: If the player fails validation.
        """
        data = player.to_dict()
        _raise_if_invalid(validate_player_data(data))

        existing = self.get_player(player.id)
        now = now_ms()
        if existing is None:
            player.created_at = now
        else:
            # Range edits own this counter; never let a stale copy roll it back
            player.range_version = max(player.range_version, existing.range_version)
        player.updated_at = now

        data = player.to_dict()
        self._store.put(PLAYERS_TABLE, player.id, data)
        operation = Operation.UPDATE if existing else Operation.CREATE
        self._outbox.enqueue(Collection.PLAYERS, operation, data)
        logger.debug("Saved player %s (%s)", player.id, operation.value)
        return player

    def delete_player(self, player_id: str) -> None:
        """Delete a player and its range set.

        Pending range writes for the player are dropped: the remote delete
        removes the range set along with the player.
        """
        self._store.delete(PLAYERS_TABLE, player_id)
        self._store.delete(PLAYER_RANGES_TABLE, player_id)
        self._ranges_cache.invalidate(player_id)
        self._outbox.remove_by_target(Collection.PLAYER_RANGES, player_id)
        self._outbox.enqueue(Collection.PLAYERS, Operation.DELETE, {"id": player_id})
        logger.debug("Deleted player %s", player_id)

    def add_note(self, player_id: str, content: str) -> NoteEntry:
        """Append a timestamped note to a player.

        Raises:
            KeyError: If the player does not exist.
            EntityValidationError: If the notes list is full.
        """
        player = self._require_player(player_id)
        if len(player.notes_list) >= MAX_NOTES_LIST_ITEMS:
            raise EntityValidationError(f"Notes list exceeds max of {MAX_NOTES_LIST_ITEMS} items")
        note = NoteEntry(id=new_id(), content=content, timestamp=now_ms())
        player.notes_list.append(note)
        self.save_player(player)
        return note

    def add_location(self, player_id: str, location: str) -> None:
        """Record a venue where the player was seen (case-insensitive dedupe).

        Raises:
            KeyError: If the player does not exist.
            EntityValidationError: If the locations list is full.
        """
        normalized = " ".join(location.split())
        if not normalized:
            return
        player = self._require_player(player_id)
        if any(loc.lower() == normalized.lower() for loc in player.locations):
            return
        if len(player.locations) >= MAX_LOCATIONS_PER_PLAYER:
            raise EntityValidationError(f"Locations exceed max of {MAX_LOCATIONS_PER_PLAYER}")
        player.locations.append(normalized)
        self.save_player(player)

    def migrate_guest_data(self, user_id: str) -> list[Player]:
        """Hand players created as a guest over to a newly signed-in user.

        Each migrated player goes through save_player, so the change is
        queued like any other edit. Players with nothing pending get an
        explicit create, and so do their range sets, since the remote
        store has never seen them.

        Raises:
            ValueError: If user_id is empty or the guest id.
        """
        if not user_id or user_id == GUEST_USER_ID:
            raise ValueError("Invalid user ID for migration")

        migrated = []
        for player in self.list_players():
            if player.created_by not in ("", GUEST_USER_ID):
                continue
            queued = self._outbox.has_pending(Collection.PLAYERS, player.id)
            player.created_by = user_id
            self.save_player(player)
            if not queued:
                self._outbox.remove_by_target(Collection.PLAYERS, player.id)
                self._outbox.enqueue(Collection.PLAYERS, Operation.CREATE, player.to_dict())
                ranges = self._read_player_ranges(player.id)
                if ranges is not None and not self._outbox.has_pending(
                    Collection.PLAYER_RANGES, player.id
                ):
                    self._outbox.enqueue(
                        Collection.PLAYER_RANGES, Operation.CREATE, ranges.to_dict()
                    )
            migrated.append(player)

        logger.info("Migrated %d guest players to %s", len(migrated), user_id)
        return migrated

    def save_player_from_cloud(self, player: Player) -> None:
        """Persist a player fetched from the remote store (no outbox entry)."""
        existing = self.get_player(player.id)
        if existing is not None:
            player.range_version = max(player.range_version, existing.range_version)
        self._store.put(PLAYERS_TABLE, player.id, player.to_dict())

    def _require_player(self, player_id: str) -> Player:
        player = self.get_player(player_id)
        if player is None:
            raise KeyError(f"Player not found: {player_id}")
        return player

    # === Range sets ===

    def _read_player_ranges(self, player_id: str) -> PlayerRanges | None:
        data = self._store.get(PLAYER_RANGES_TABLE, player_id)
        return PlayerRanges.from_dict(data) if data else None

    def get_player_ranges(self, player_id: str) -> PlayerRanges | None:
        """Get a player's range set, from the cache when possible."""
        return self._ranges_cache.load(player_id)

    def list_player_ranges(self) -> list[PlayerRanges]:
        return [PlayerRanges.from_dict(d) for d in self._store.get_all(PLAYER_RANGES_TABLE)]

    def save_player_ranges(self, player_id: str, ranges: RangeSet) -> PlayerRanges:
        """Replace a player's whole range set.

        Bumps the player's range_version and queues the new set.
        """
        for range_ in ranges.values():
            _raise_if_invalid(validate_range(range_))
        if len(ranges) > MAX_RANGES_PER_PLAYER:
            raise EntityValidationError(f"Ranges exceed max of {MAX_RANGES_PER_PLAYER}")

        existing = self._read_player_ranges(player_id)
        player_ranges = PlayerRanges(
            player_id=player_id,
            ranges=ranges,
            hands_observed=existing.hands_observed if existing else 0,
        )
        return self._write_ranges(player_ranges, is_new=existing is None)

    def update_player_range(self, player_id: str, range_key: str, range_: Range) -> PlayerRanges:
        """Replace one position/action range of a player.

        Args:
            player_id: Owning player.
            range_key: "{position}_{action}" key.
            range_: New range (dense or sparse).

        Returns:
            The updated range set.
        """
        _raise_if_invalid(validate_range(range_))
        existing = self._read_player_ranges(player_id)
        player_ranges = existing or PlayerRanges(player_id=player_id)
        if range_key not in player_ranges.ranges and len(player_ranges.ranges) >= MAX_RANGES_PER_PLAYER:
            raise EntityValidationError(f"Ranges exceed max of {MAX_RANGES_PER_PLAYER}")
        player_ranges.ranges[range_key] = to_sparse_range(range_)
        player_ranges.hands_observed += 1
        return self._write_ranges(player_ranges, is_new=existing is None)

    def _write_ranges(self, player_ranges: PlayerRanges, is_new: bool) -> PlayerRanges:
        player_ranges.range_version = self._bump_range_version(
            player_ranges.player_id, player_ranges.range_version
        )
        player_ranges.last_observed = now_ms()

        data = player_ranges.to_dict()
        _raise_if_invalid(check_player_document_size(data))
        self._store.put(PLAYER_RANGES_TABLE, player_ranges.player_id, data)
        self._ranges_cache.set(player_ranges)

        operation = Operation.CREATE if is_new else Operation.UPDATE
        self._outbox.enqueue(Collection.PLAYER_RANGES, operation, data)
        logger.debug(
            "Saved ranges for %s (version %d)",
            player_ranges.player_id,
            player_ranges.range_version,
        )
        return player_ranges

    def _bump_range_version(self, player_id: str, current: int) -> int:
        # The player row carries the counter; the ranges push publishes it
        player = self.get_player(player_id)
        if player is None:
            return current + 1
        player.range_version = max(player.range_version, current) + 1
        player.updated_at = now_ms()
        self._store.put(PLAYERS_TABLE, player.id, player.to_dict())
        return player.range_version

    def save_player_ranges_from_cloud(self, player_ranges: PlayerRanges) -> None:
        """Persist a range set fetched from the remote store (no outbox entry)."""
        self._store.put(PLAYER_RANGES_TABLE, player_ranges.player_id, player_ranges.to_dict())
        self._ranges_cache.set(player_ranges)

    # === Sessions ===

    def list_sessions(self) -> list[Session]:
        """List sessions, most recent first."""
        sessions = [Session.from_dict(d) for d in self._store.get_all(SESSIONS_TABLE)]
        return sorted(sessions, key=lambda s: s.start_time, reverse=True)

    def get_session(self, session_id: str) -> Session | None:
        data = self._store.get(SESSIONS_TABLE, session_id)
        return Session.from_dict(data) if data else None

    def save_session(self, session: Session) -> Session:
        """Create or update a session.

        Active sessions stay local-only; a finished session is queued as
        update when a local copy already exists, create otherwise. The
        remote update is an upsert, so ending a never-pushed session works.
        """
        data = session.to_dict()
        _raise_if_invalid(validate_session_data(data))
        _raise_if_invalid(check_session_document_size(data))

        existing = self._store.get(SESSIONS_TABLE, session.id)
        self._store.put(SESSIONS_TABLE, session.id, data)

        if not session.is_active:
            operation = Operation.UPDATE if existing is not None else Operation.CREATE
            self._outbox.enqueue(Collection.SESSIONS, operation, data)
            logger.debug("Queued finished session %s (%s)", session.id, operation.value)
        return session

    def end_session(self, session_id: str, cash_out: float | None = None) -> Session:
        """Mark a session finished and queue it.

        Raises:
            KeyError: If the session does not exist.
        """
        session = self.get_session(session_id)
        if session is None:
            raise KeyError(f"Session not found: {session_id}")
        session.is_active = False
        session.end_time = now_ms()
        session.duration = max(0, (session.end_time - session.start_time) // 60_000)
        if cash_out is not None:
            session.cash_out = cash_out
        return self.save_session(session)

    def save_sessions(self, sessions: list[Session]) -> None:
        """Replace the stored session list (no outbox entries)."""
        self._store.replace_all(SESSIONS_TABLE, [(s.id, s.to_dict()) for s in sessions])

    def delete_session(self, session_id: str) -> None:
        self._store.delete(SESSIONS_TABLE, session_id)
        self._outbox.enqueue(Collection.SESSIONS, Operation.DELETE, {"id": session_id})

    def save_session_from_cloud(self, session: Session) -> None:
        """Persist a session fetched from the remote store (no outbox entry)."""
        self._store.put(SESSIONS_TABLE, session.id, session.to_dict())

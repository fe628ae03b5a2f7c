"""Tests for the local repository write path."""

from __future__ import annotations

import pytest

from rangesync.client.cache import RangeCache
from rangesync.client.errors import EntityValidationError
from rangesync.client.identity import GUEST_USER_ID
from rangesync.client.models import Player, PlayerRanges, Session
from rangesync.client.outbox import Outbox
from rangesync.client.repository import LocalRepository
from rangesync.client.state import LocalStore
from rangesync.core.types import Collection, Operation


@pytest.fixture
def store() -> LocalStore:
    s = LocalStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def outbox(store: LocalStore) -> Outbox:
    return Outbox(store)


@pytest.fixture
def cache() -> RangeCache[PlayerRanges]:
    return RangeCache(key=lambda r: r.player_id)


@pytest.fixture
def repo(store: LocalStore, outbox: Outbox, cache: RangeCache[PlayerRanges]) -> LocalRepository:
    return LocalRepository(store, outbox, cache)


class TestPlayers:
    """Tests for player writes."""

    def test_create_then_update(self, repo: LocalRepository, outbox: Outbox) -> None:
        """A new player is queued as create, later edits coalesce into it."""
        repo.save_player(Player(id="p1", name="Villain"))
        player = repo.get_player("p1")
        assert player is not None
        player.name = "Big Villain"
        repo.save_player(player)

        items = outbox.list()
        assert len(items) == 1
        assert items[0].operation is Operation.CREATE
        assert items[0].data["name"] == "Big Villain"

    def test_invalid_player_rejected(self, repo: LocalRepository, outbox: Outbox) -> None:
        """Validation happens before anything is written."""
        with pytest.raises(EntityValidationError):
            repo.save_player(Player(id="p1", name=""))
        assert repo.get_player("p1") is None
        assert len(outbox) == 0

    def test_metadata_edit_keeps_range_version(self, repo: LocalRepository) -> None:
        """Only range content bumps range_version."""
        repo.save_player(Player(id="p1", name="V"))
        repo.update_player_range("p1", "early_call", {"AA": "manual-selected"})
        stale = Player(id="p1", name="Renamed")
        repo.save_player(stale)
        player = repo.get_player("p1")
        assert player is not None
        assert player.range_version == 1
        assert player.name == "Renamed"

    def test_delete_drops_pending_ranges(self, repo: LocalRepository, outbox: Outbox) -> None:
        """Deleting a player removes its pending range writes."""
        repo.save_player(Player(id="p1", name="V"))
        repo.update_player_range("p1", "early_call", {"AA": "manual-selected"})
        repo.delete_player("p1")

        assert not outbox.has_pending(Collection.PLAYER_RANGES, "p1")
        assert [(i.collection, i.operation) for i in outbox.list()] == [
            (Collection.PLAYERS, Operation.CREATE),
            (Collection.PLAYERS, Operation.DELETE),
        ]
        assert repo.get_player_ranges("p1") is None

    def test_add_location_dedupes(self, repo: LocalRepository) -> None:
        """Locations are normalized and compared case-insensitively."""
        repo.save_player(Player(id="p1", name="V"))
        repo.add_location("p1", "  Bellagio   Room ")
        repo.add_location("p1", "bellagio room")
        player = repo.get_player("p1")
        assert player is not None
        assert player.locations == ["Bellagio Room"]

    def test_add_note(self, repo: LocalRepository) -> None:
        """Notes are appended with an id and timestamp."""
        repo.save_player(Player(id="p1", name="V"))
        note = repo.add_note("p1", "3-bets light")
        player = repo.get_player("p1")
        assert player is not None
        assert [n.id for n in player.notes_list] == [note.id]


class TestRanges:
    """Tests for range writes."""

    def test_update_range_is_sparse(self, repo: LocalRepository) -> None:
        """Unselected entries are stripped before storing."""
        repo.save_player(Player(id="p1", name="V"))
        result = repo.update_player_range(
            "p1", "late_open-raise", {"AA": "manual-selected", "72o": "unselected"}
        )
        assert result.ranges == {"late_open-raise": {"AA": "manual-selected"}}

    def test_range_write_bumps_version(self, repo: LocalRepository) -> None:
        """Every range write increments the player's range_version."""
        repo.save_player(Player(id="p1", name="V"))
        repo.update_player_range("p1", "early_call", {"AA": "manual-selected"})
        ranges = repo.update_player_range("p1", "early_call", {"KK": "manual-selected"})
        player = repo.get_player("p1")
        assert player is not None
        assert player.range_version == 2
        assert ranges.range_version == 2

    def test_range_write_publishes_to_cache(
        self,
        repo: LocalRepository,
        cache: RangeCache[PlayerRanges],
    ) -> None:
        """Subscribers see range writes."""
        seen: list[str] = []
        cache.subscribe(lambda key, value: seen.append(key))
        repo.update_player_range("p1", "early_call", {"AA": "manual-selected"})
        assert seen == ["p1"]

    def test_ranges_queued_once_under_rapid_edits(
        self, repo: LocalRepository, outbox: Outbox
    ) -> None:
        """Rapid edits coalesce into one outbox entry."""
        repo.save_player(Player(id="p1", name="V"))
        for hand in ("AA", "KK", "QQ", "JJ"):
            repo.update_player_range("p1", "early_call", {hand: "manual-selected"})
        range_items = [i for i in outbox.list() if i.collection is Collection.PLAYER_RANGES]
        assert len(range_items) == 1
        assert range_items[0].data["ranges"] == {"early_call": {"JJ": "manual-selected"}}

    def test_from_cloud_skips_outbox(self, repo: LocalRepository, outbox: Outbox) -> None:
        """Pulled range sets never enter the outbox."""
        repo.save_player_ranges_from_cloud(
            PlayerRanges(player_id="p1", ranges={"early_call": {"AA": "manual-selected"}})
        )
        assert len(outbox) == 0
        loaded = repo.get_player_ranges("p1")
        assert loaded is not None
        assert loaded.ranges == {"early_call": {"AA": "manual-selected"}}


class TestSessions:
    """Tests for session writes."""

    def test_active_session_stays_local(self, repo: LocalRepository, outbox: Outbox) -> None:
        """Active sessions are never queued."""
        repo.save_session(Session(id="s1", name="Friday", start_time=1000, is_active=True))
        assert len(outbox) == 0
        assert repo.get_session("s1") is not None

    def test_end_session_queues_update(self, repo: LocalRepository, outbox: Outbox) -> None:
        """Ending a stored active session queues exactly one update."""
        repo.save_session(Session(id="s1", name="Friday", start_time=1000, is_active=True))
        ended = repo.end_session("s1", cash_out=250.0)
        assert ended.is_active is False
        assert ended.end_time is not None
        items = outbox.list()
        assert [(i.collection, i.operation) for i in items] == [
            (Collection.SESSIONS, Operation.UPDATE)
        ]

    def test_save_ended_session_queues_update(
        self, repo: LocalRepository, outbox: Outbox
    ) -> None:
        """Saving a stored session again with is_active=False is an update."""
        repo.save_session(Session(id="s1", name="Friday", start_time=1000, is_active=True))
        repo.save_session(Session(id="s1", name="Friday", start_time=1000, is_active=False))
        assert [(i.collection, i.operation) for i in outbox.list()] == [
            (Collection.SESSIONS, Operation.UPDATE)
        ]

    def test_finished_new_session_is_create(self, repo: LocalRepository, outbox: Outbox) -> None:
        """A session saved finished for the first time is a create."""
        repo.save_session(Session(id="s2", name="Old", start_time=1, is_active=False))
        assert outbox.list()[0].operation is Operation.CREATE

    def test_list_sessions_recent_first(self, repo: LocalRepository) -> None:
        """Sessions are listed by start time, most recent first."""
        repo.save_session(Session(id="a", name="A", start_time=1))
        repo.save_session(Session(id="b", name="B", start_time=3))
        repo.save_session(Session(id="c", name="C", start_time=2))
        assert [s.id for s in repo.list_sessions()] == ["b", "c", "a"]

    def test_editing_finished_session_is_update(
        self, repo: LocalRepository, outbox: Outbox
    ) -> None:
        """Edits to an already finished session are updates."""
        repo.save_session(Session(id="s3", name="Old", start_time=1, is_active=False))
        outbox.clear()
        session = repo.get_session("s3")
        assert session is not None
        session.name = "Renamed"
        repo.save_session(session)
        assert outbox.list()[0].operation is Operation.UPDATE


class TestGuestMigration:
    """Tests for handing guest data over at sign-in."""

    def test_guest_players_take_new_owner(self, repo: LocalRepository, outbox: Outbox) -> None:
        """Guest players are reassigned and still queued as one create each."""
        repo.save_player(Player(id="g1", name="Guest Villain", created_by=GUEST_USER_ID))
        repo.save_player(Player(id="g2", name="Unowned"))
        repo.save_player(Player(id="mine", name="Other", created_by="u9"))

        migrated = repo.migrate_guest_data("u1")

        assert sorted(p.id for p in migrated) == ["g1", "g2"]
        player = repo.get_player("g1")
        assert player is not None
        assert player.created_by == "u1"
        other = repo.get_player("mine")
        assert other is not None
        assert other.created_by == "u9"
        players = [i for i in outbox.list() if i.collection is Collection.PLAYERS]
        assert [(i.target_id, i.operation) for i in players] == [
            ("g1", Operation.CREATE),
            ("g2", Operation.CREATE),
            ("mine", Operation.CREATE),
        ]
        assert players[0].data["created_by"] == "u1"

    def test_requeues_players_with_nothing_pending(
        self, repo: LocalRepository, outbox: Outbox
    ) -> None:
        """A guest player whose entries are gone is queued again with its ranges."""
        repo.save_player(Player(id="g1", name="Guest Villain", created_by=GUEST_USER_ID))
        repo.update_player_range("g1", "early_call", {"AA": "manual-selected"})
        outbox.clear()

        repo.migrate_guest_data("u1")

        assert [(i.collection, i.operation) for i in outbox.list()] == [
            (Collection.PLAYERS, Operation.CREATE),
            (Collection.PLAYER_RANGES, Operation.CREATE),
        ]
        assert outbox.list()[0].data["created_by"] == "u1"

    @pytest.mark.parametrize("user_id", ["", GUEST_USER_ID])
    def test_rejects_guest_target(self, repo: LocalRepository, user_id: str) -> None:
        """Migration needs a real user id."""
        with pytest.raises(ValueError):
            repo.migrate_guest_data(user_id)

"""Tests for the pending-sync outbox."""

from __future__ import annotations

import pytest

from rangesync.client.outbox import Outbox
from rangesync.client.state import PENDING_SYNC_TABLE, LocalStore
from rangesync.core.types import Collection, Operation


@pytest.fixture
def store() -> LocalStore:
    """Create an in-memory store."""
    s = LocalStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def outbox(store: LocalStore) -> Outbox:
    """Create an empty outbox."""
    return Outbox(store)


class TestEnqueue:
    """Tests for enqueue and coalescing."""

    def test_fifo_order(self, outbox: Outbox) -> None:
        """Entries for different targets keep insertion order."""
        outbox.enqueue(Collection.PLAYERS, Operation.CREATE, {"id": "a"})
        outbox.enqueue(Collection.PLAYERS, Operation.CREATE, {"id": "b"})
        outbox.enqueue(Collection.SESSIONS, Operation.CREATE, {"id": "s"})
        assert [item.target_id for item in outbox.list()] == ["a", "b", "s"]

    def test_update_coalesces_into_create(self, outbox: Outbox) -> None:
        """An update after a create replaces the create payload in place."""
        first = outbox.enqueue("players", "create", {"id": "a", "name": "one"})
        outbox.enqueue("players", "create", {"id": "b", "name": "other"})
        second = outbox.enqueue("players", "update", {"id": "a", "name": "two"})

        assert second.id == first.id
        assert second.operation is Operation.CREATE
        assert len(outbox) == 2
        assert outbox.list()[0].data == {"id": "a", "name": "two"}

    def test_repeated_updates_collapse(self, outbox: Outbox) -> None:
        """Dragging across a grid yields a single entry."""
        for i in range(50):
            outbox.enqueue(
                Collection.PLAYER_RANGES,
                Operation.UPDATE,
                {"player_id": "p1", "ranges": {"early_call": {"AA": "manual-selected"}}, "n": i},
            )
        assert len(outbox) == 1
        assert outbox.list()[0].data["n"] == 49

    def test_delete_always_appends(self, outbox: Outbox) -> None:
        """Deletes are never coalesced."""
        outbox.enqueue("players", "create", {"id": "a"})
        outbox.enqueue("players", "delete", {"id": "a"})
        assert [item.operation for item in outbox.list()] == [Operation.CREATE, Operation.DELETE]

    def test_update_after_delete_appends(self, outbox: Outbox) -> None:
        """An update following a delete is a new entry."""
        outbox.enqueue("players", "delete", {"id": "a"})
        outbox.enqueue("players", "update", {"id": "a"})
        assert len(outbox) == 2

    def test_ranges_keyed_by_player(self, outbox: Outbox) -> None:
        """Range entries target their player id."""
        item = outbox.enqueue("player_ranges", "update", {"player_id": "p9", "ranges": {}})
        assert item.target_id == "p9"
        assert outbox.has_pending("player_ranges", "p9")
        assert outbox.pending_targets("player_ranges") == {"p9"}


class TestPersistence:
    """Tests for write-through persistence."""

    def test_reload_from_store(self, store: LocalStore, outbox: Outbox) -> None:
        """A new outbox over the same store sees the same entries."""
        outbox.enqueue("players", "create", {"id": "a"})
        outbox.enqueue("players", "update", {"id": "a", "name": "x"})
        outbox.enqueue("sessions", "create", {"id": "s"})

        reloaded = Outbox(store)
        assert [(i.collection, i.target_id) for i in reloaded.list()] == [
            (Collection.PLAYERS, "a"),
            (Collection.SESSIONS, "s"),
        ]
        assert reloaded.list()[0].data == {"id": "a", "name": "x"}

    def test_remove(self, store: LocalStore, outbox: Outbox) -> None:
        """Removing an entry deletes its row."""
        item = outbox.enqueue("players", "create", {"id": "a"})
        assert outbox.remove(item.id) is True
        assert outbox.remove(item.id) is False
        assert store.count(PENDING_SYNC_TABLE) == 0

    def test_remove_by_target(self, outbox: Outbox) -> None:
        """Should drop every entry of one target."""
        outbox.enqueue("players", "create", {"id": "a"})
        outbox.enqueue("players", "delete", {"id": "a"})
        outbox.enqueue("players", "create", {"id": "b"})
        assert outbox.remove_by_target("players", "a") == 2
        assert [i.target_id for i in outbox] == ["b"]

    def test_reset(self, store: LocalStore, outbox: Outbox) -> None:
        """Reset empties memory and disk."""
        outbox.enqueue("players", "create", {"id": "a"})
        outbox.reset()
        assert not outbox
        assert store.count(PENDING_SYNC_TABLE) == 0


class TestStats:
    """Tests for outbox stats."""

    def test_stats(self, outbox: Outbox) -> None:
        """Should count by collection and operation."""
        outbox.enqueue("players", "create", {"id": "a"})
        outbox.enqueue("sessions", "delete", {"id": "s"})
        stats = outbox.stats()
        assert stats["total"] == 2
        assert stats["players"] == 1
        assert stats["sessions"] == 1
        assert stats["create"] == 1
        assert stats["delete"] == 1

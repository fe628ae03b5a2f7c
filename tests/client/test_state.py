"""Tests for the local SQLite store."""

from __future__ import annotations

from pathlib import Path

import pytest

from rangesync.client.state import (
    PENDING_SYNC_TABLE,
    PLAYERS_TABLE,
    LocalStore,
    UnknownTableError,
)


@pytest.fixture
def store(tmp_path: Path) -> LocalStore:
    """Create a store backed by a temp file."""
    s = LocalStore(tmp_path / "state.db")
    yield s
    s.close()


class TestDocuments:
    """Tests for document CRUD."""

    def test_put_and_get(self, store: LocalStore) -> None:
        """Should round-trip a document."""
        store.put(PLAYERS_TABLE, "p1", {"id": "p1", "name": "Villain"})
        assert store.get(PLAYERS_TABLE, "p1") == {"id": "p1", "name": "Villain"}
        assert store.get(PLAYERS_TABLE, "missing") is None

    def test_upsert_keeps_position(self, store: LocalStore) -> None:
        """Updating a document should not move it to the end."""
        store.put(PLAYERS_TABLE, "a", {"id": "a", "v": 1})
        store.put(PLAYERS_TABLE, "b", {"id": "b", "v": 1})
        store.put(PLAYERS_TABLE, "a", {"id": "a", "v": 2})
        assert [d["id"] for d in store.get_all(PLAYERS_TABLE)] == ["a", "b"]
        assert store.get(PLAYERS_TABLE, "a") == {"id": "a", "v": 2}

    def test_delete(self, store: LocalStore) -> None:
        """Should report whether a document was removed."""
        store.put(PLAYERS_TABLE, "p1", {"id": "p1"})
        assert store.delete(PLAYERS_TABLE, "p1") is True
        assert store.delete(PLAYERS_TABLE, "p1") is False

    def test_replace_all(self, store: LocalStore) -> None:
        """Should swap the whole table content."""
        store.put(PLAYERS_TABLE, "old", {"id": "old"})
        store.replace_all(PLAYERS_TABLE, [("x", {"id": "x"}), ("y", {"id": "y"})])
        assert [d["id"] for d in store.get_all(PLAYERS_TABLE)] == ["x", "y"]
        assert store.count(PLAYERS_TABLE) == 2

    def test_unknown_table(self, store: LocalStore) -> None:
        """Should reject tables it does not know."""
        with pytest.raises(UnknownTableError):
            store.get("nope", "x")

    def test_clear_single_table(self, store: LocalStore) -> None:
        """Clearing one table leaves the others alone."""
        store.put(PLAYERS_TABLE, "p1", {"id": "p1"})
        store.put(PENDING_SYNC_TABLE, "e1", {"id": "e1"})
        store.clear(PENDING_SYNC_TABLE)
        assert store.count(PENDING_SYNC_TABLE) == 0
        assert store.count(PLAYERS_TABLE) == 1

    def test_persists_across_reopen(self, tmp_path: Path) -> None:
        """Documents survive a process restart."""
        path = tmp_path / "state.db"
        first = LocalStore(path)
        first.put(PLAYERS_TABLE, "p1", {"id": "p1"})
        first.close()

        second = LocalStore(path)
        try:
            assert second.get(PLAYERS_TABLE, "p1") == {"id": "p1"}
        finally:
            second.close()


class TestSyncState:
    """Tests for key-value sync state."""

    def test_state_roundtrip(self, store: LocalStore) -> None:
        """Should store and overwrite values."""
        assert store.get_state("k") is None
        store.set_state("k", "1")
        store.set_state("k", "2")
        assert store.get_state("k") == "2"

    def test_last_pull_at(self, store: LocalStore) -> None:
        """Should store the last pull timestamp as int."""
        assert store.get_last_pull_at() is None
        store.set_last_pull_at(1234)
        assert store.get_last_pull_at() == 1234

    def test_clear_all_drops_state(self, store: LocalStore) -> None:
        """Clearing everything also drops sync state."""
        store.set_state("k", "v")
        store.clear()
        assert store.get_state("k") is None

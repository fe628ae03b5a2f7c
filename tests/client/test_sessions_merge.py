"""Tests for the session merge policy."""

from __future__ import annotations

from rangesync.client.models import Session
from rangesync.client.sync import merge_sessions, pick_session


def make_session(
    session_id: str = "s1",
    start_time: int = 1000,
    is_active: bool = True,
    name: str = "Friday game",
    table: dict | None = None,
) -> Session:
    return Session(id=session_id, name=name, start_time=start_time, is_active=is_active, table=table)


class TestPickSession:
    """Tests for pick_session()."""

    def test_local_finish_beats_stale_remote(self) -> None:
        local = make_session(is_active=False, name="local")
        remote = make_session(is_active=True, name="remote")

        assert pick_session(local, remote) is local

    def test_remote_finish_wins(self) -> None:
        local = make_session(is_active=True, name="local")
        remote = make_session(is_active=False, name="remote")

        assert pick_session(local, remote).name == "remote"

    def test_both_active_prefers_remote(self) -> None:
        local = make_session(name="local")
        remote = make_session(name="remote")

        assert pick_session(local, remote).name == "remote"

    def test_remote_inherits_local_table(self) -> None:
        table = {"seats": [{"seat": 1, "player_id": "p1"}]}
        local = make_session(name="local", table=table)
        remote = make_session(name="remote")

        picked = pick_session(local, remote)

        assert picked.name == "remote"
        assert picked.table == table
        assert remote.table is None


class TestMergeSessions:
    """Tests for merge_sessions()."""

    def test_keeps_one_sided_sessions_sorted(self) -> None:
        local = [make_session("a", start_time=100)]
        remote = [make_session("b", start_time=300), make_session("c", start_time=200)]

        merged = merge_sessions(local, remote)

        assert [s.id for s in merged] == ["b", "c", "a"]

    def test_resolves_shared_ids(self) -> None:
        local = [make_session("a", is_active=False, name="ended here")]
        remote = [make_session("a", is_active=True, name="stale")]

        merged = merge_sessions(local, remote)

        assert len(merged) == 1
        assert merged[0].name == "ended here"

    def test_empty_inputs(self) -> None:
        assert merge_sessions([], []) == []

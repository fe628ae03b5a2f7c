"""Tests for snapshot sources and badge-count subscriptions."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any

import pytest

from rangesync.client.api import Document
from rangesync.client.snapshots import (
    PollingSnapshotSource,
    Subscription,
    WebSocketSnapshotSource,
    _Listener,
    subscribe_pending_link_count,
    subscribe_pending_share_count,
)
from rangesync.core.config import RemoteConfig


def make_doc(doc_id: str, minute: int = 0) -> Document:
    stamp = datetime(2025, 1, 1, 10, minute)
    return Document(
        id=doc_id,
        path=f"users/u1/range_shares/{doc_id}",
        data={},
        created_at=stamp,
        updated_at=stamp,
    )


class FakeQueryClient:
    """Document client whose query results are scripted."""

    def __init__(self, results: list[list[Document]]) -> None:
        self.results = results
        self.calls: list[tuple[str, Any]] = []

    async def query(self, collection: str, filters: Any = None, **kwargs: Any) -> list[Document]:
        self.calls.append((collection, filters))
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


class FakeSource:
    """Snapshot source that records subscriptions."""

    def __init__(self) -> None:
        self.subscriptions: list[tuple[str, Any, Any]] = []

    def subscribe(self, collection: str, filters: Any, callback: Any) -> Subscription:
        self.subscriptions.append((collection, filters, callback))
        return Subscription("sub-1", lambda _id: None)

    async def close(self) -> None:
        pass


class TestSubscription:
    """Tests for Subscription handles."""

    def test_unsubscribe_once(self) -> None:
        cancelled: list[str] = []
        sub = Subscription("s1", cancelled.append)

        sub.unsubscribe()
        sub.unsubscribe()

        assert cancelled == ["s1"]
        assert sub.active is False


class TestBadgeCounts:
    """Tests for the pending link and share count helpers."""

    def test_pending_link_count_filters(self) -> None:
        source = FakeSource()
        counts: list[int] = []

        subscribe_pending_link_count(source, "u1", counts.append)

        collection, filters, callback = source.subscriptions[0]
        assert collection == "users/u1/player_links"
        assert filters == [("status", "==", "pending"), ("is_initiator", "==", False)]
        callback([make_doc("l1"), make_doc("l2")])
        assert counts == [2]

    def test_pending_share_count(self) -> None:
        source = FakeSource()
        counts: list[int] = []

        subscribe_pending_share_count(source, "u1", counts.append)

        collection, filters, callback = source.subscriptions[0]
        assert collection == "users/u1/range_shares"
        assert filters is None
        callback([])
        assert counts == [0]


class TestPollingSnapshotSource:
    """Tests for PollingSnapshotSource."""

    @pytest.mark.asyncio
    async def test_delivers_only_changes(self) -> None:
        """Should fire on the first poll and again only when documents change."""
        client = FakeQueryClient([
            [make_doc("s1")],
            [make_doc("s1")],
            [make_doc("s1"), make_doc("s2")],
        ])
        source = PollingSnapshotSource(client, interval=0.01)  # type: ignore[arg-type]
        received: list[list[str]] = []
        done = asyncio.Event()

        def on_docs(documents: list[Document]) -> None:
            received.append([d.id for d in documents])
            if len(received) == 2:
                done.set()

        source.subscribe("users/u1/range_shares", None, on_docs)
        await asyncio.wait_for(done.wait(), timeout=2.0)
        await source.close()

        assert received == [["s1"], ["s1", "s2"]]
        assert len(client.calls) >= 3

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_polling(self) -> None:
        client = FakeQueryClient([[make_doc("s1")]])
        source = PollingSnapshotSource(client, interval=0.01)  # type: ignore[arg-type]
        first = asyncio.Event()

        sub = source.subscribe("users/u1/range_shares", None, lambda _docs: first.set())
        await asyncio.wait_for(first.wait(), timeout=2.0)
        sub.unsubscribe()
        await asyncio.sleep(0.05)
        calls = len(client.calls)
        await asyncio.sleep(0.05)

        assert len(client.calls) == calls
        await source.close()


class TestWebSocketSnapshotSource:
    """Tests for message handling of the WebSocket source."""

    def test_subscribe_message(self) -> None:
        listener = _Listener("users/u1/player_links", [("status", "==", "pending")], print)

        message = json.loads(listener.subscribe_message("abc"))

        assert message == {
            "type": "subscribe",
            "id": "abc",
            "collection": "users/u1/player_links",
            "filters": [["status", "==", "pending"]],
        }

    def test_routes_snapshot_to_listener(self) -> None:
        source = WebSocketSnapshotSource(RemoteConfig("http://test", "token"))
        received: list[list[str]] = []
        source._listeners["abc"] = _Listener(
            "users/u1/range_shares", [], lambda docs: received.append([d.id for d in docs])
        )
        document = {
            "id": "s1",
            "path": "users/u1/range_shares/s1",
            "data": {},
            "created_at": "2025-01-01T10:00:00",
            "updated_at": "2025-01-01T10:00:00",
        }

        source._handle_message(json.dumps({"type": "snapshot", "id": "abc", "documents": [document]}))
        source._handle_message(json.dumps({"type": "snapshot", "id": "other", "documents": []}))
        source._handle_message("not json")

        assert received == [["s1"]]

    def test_callback_errors_are_contained(self) -> None:
        source = WebSocketSnapshotSource(RemoteConfig("http://test", "token"))

        def boom(_docs: list[Document]) -> None:
            raise RuntimeError("boom")

        source._listeners["abc"] = _Listener("users/u1/range_shares", [], boom)

        source._handle_message(json.dumps({"type": "snapshot", "id": "abc", "documents": []}))

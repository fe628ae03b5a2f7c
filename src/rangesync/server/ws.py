"""WebSocket hub for live collection snapshots.

This module provides:
- SnapshotHub: Tracks per-connection subscriptions and pushes snapshots
- /ws/snapshots/{token}: The subscription endpoint

Architecture:
    Client ──ws──► SnapshotHub ◄── document writes (REST)
                       │
              re-query subscribed collections
                       │
    Client ◄──ws── {"type": "snapshot", "id": ..., "documents": [...]}
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from rangesync.server.schemas import document_to_response

if TYPE_CHECKING:
    from rangesync.server.database import Database

logger = logging.getLogger(__name__)


@dataclass
class SnapshotQuery:
    """A live query registered by one connection.

    Attributes:
        collection: Collection path.
        filters: (field, op, value) triples.
    """

    collection: str
    filters: list[tuple[str, str, Any]] = field(default_factory=list)


class SnapshotHub:
    """Central hub for snapshot subscriptions.

    Every write to a collection re-runs the matching queries and sends
    the full result to their connections.

    Thread-safe for use with asyncio.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[WebSocket, dict[str, SnapshotQuery]] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._subscriptions)

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        """Accept and register a connection."""
        await websocket.accept()
        async with self._lock:
            self._subscriptions[websocket] = {}
        logger.info("Snapshot client connected: %s", user_id)

    async def disconnect(self, websocket: WebSocket) -> None:
        """Drop a connection and all its subscriptions."""
        async with self._lock:
            self._subscriptions.pop(websocket, None)
        logger.info("Snapshot client disconnected")

    async def subscribe(
        self,
        db: Database,
        websocket: WebSocket,
        subscription_id: str,
        query: SnapshotQuery,
    ) -> None:
        """Register a query and send its current result."""
        async with self._lock:
            subscriptions = self._subscriptions.get(websocket)
            if subscriptions is None:
                return
            subscriptions[subscription_id] = query
        await self._send_snapshot(db, websocket, subscription_id, query)

    async def unsubscribe(self, websocket: WebSocket, subscription_id: str) -> None:
        async with self._lock:
            subscriptions = self._subscriptions.get(websocket)
            if subscriptions is not None:
                subscriptions.pop(subscription_id, None)

    async def handle_message(
        self,
        db: Database,
        websocket: WebSocket,
        data: dict[str, Any],
    ) -> None:
        """Handle incoming message from a client.

        Expected message formats:
            {"type": "subscribe", "id": "s1", "collection": "users/u1/player_links",
             "filters": [["status", "==", "pending"]]}
            {"type": "unsubscribe", "id": "s1"}

        Args:
            db: Database to query.
            websocket: The sending connection.
            data: Message data.
        """
        msg_type = data.get("type")
        subscription_id = data.get("id")

        if msg_type == "subscribe" and subscription_id and data.get("collection"):
            filters = [(str(f), str(op), v) for f, op, v in data.get("filters") or []]
            query = SnapshotQuery(collection=str(data["collection"]).strip("/"), filters=filters)
            await self.subscribe(db, websocket, str(subscription_id), query)
        elif msg_type == "unsubscribe" and subscription_id:
            await self.unsubscribe(websocket, str(subscription_id))
        else:
            logger.warning("Unknown snapshot message: %s", msg_type)

    async def notify_collection_changed(self, db: Database, collection: str) -> None:
        """Push fresh snapshots to every query on a collection.

        Args:
            db: Database to query.
            collection: Collection path that was written to.
        """
        async with self._lock:
            targets = [
                (ws, subscription_id, query)
                for ws, subscriptions in self._subscriptions.items()
                for subscription_id, query in subscriptions.items()
                if query.collection == collection
            ]

        disconnected = []
        for ws, subscription_id, query in targets:
            if not await self._send_snapshot(db, ws, subscription_id, query):
                disconnected.append(ws)

        # Clean up disconnected
        if disconnected:
            async with self._lock:
                for ws in disconnected:
                    self._subscriptions.pop(ws, None)

    async def _send_snapshot(
        self,
        db: Database,
        websocket: WebSocket,
        subscription_id: str,
        query: SnapshotQuery,
    ) -> bool:
        """Send one snapshot. Returns False if the connection is gone."""
        try:
            documents = db.list_documents(query.collection, filters=query.filters)
        except ValueError as e:
            logger.warning("Invalid snapshot query %s: %s", subscription_id, e)
            return True

        message = json.dumps({
            "type": "snapshot",
            "id": subscription_id,
            "documents": [document_to_response(d).model_dump() for d in documents],
        })
        try:
            if websocket.client_state == WebSocketState.CONNECTED:
                await websocket.send_text(message)
                return True
        except Exception:
            logger.debug("Failed to send snapshot %s", subscription_id)
        return False

    async def close_all(self) -> None:
        """Close every connection (server shutdown)."""
        async with self._lock:
            connections = list(self._subscriptions)
            self._subscriptions.clear()
        for ws in connections:
            with contextlib.suppress(Exception):
                await ws.close()


# Global hub instance (created by app)
_hub: SnapshotHub | None = None


def get_hub() -> SnapshotHub:
    """Get the global SnapshotHub instance."""
    global _hub
    if _hub is None:
        _hub = SnapshotHub()
    return _hub


def set_hub(hub: SnapshotHub) -> None:
    """Set the global SnapshotHub instance."""
    global _hub
    _hub = hub


# WebSocket router
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/snapshots/{token}")
async def websocket_snapshots(websocket: WebSocket, token: str) -> None:
    """WebSocket endpoint for snapshot subscriptions.

    Args:
        websocket: The WebSocket connection.
        token: Authentication token.
    """
    db: Database = websocket.app.state.db
    hub = get_hub()

    # Validate token
    auth_token = db.validate_token(token)
    if not auth_token:
        await websocket.close(code=4001, reason="Invalid token")
        return

    await hub.connect(websocket, auth_token.user_id)

    try:
        while True:
            data = await websocket.receive_json()
            await hub.handle_message(db, websocket, data)
    except WebSocketDisconnect:
        await hub.disconnect(websocket)
    except Exception as e:
        logger.exception("Error in snapshot WebSocket: %s", e)
        await hub.disconnect(websocket)

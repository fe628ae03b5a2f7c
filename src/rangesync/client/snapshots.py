"""Live collection snapshots for badge counts.

This module provides:
- SnapshotSource: observer interface, subscribe(collection, filters, callback)
- Subscription: handle returned by subscribe(); call unsubscribe() to stop
- WebSocketSnapshotSource: server-pushed snapshots over /ws/snapshots
- PollingSnapshotSource: the same interface simulated by periodic queries
- subscribe_pending_link_count / subscribe_pending_share_count

Snapshots drive badge counts only (pending links, pending shares). Range
data is never propagated through them; linked ranges are pulled on demand.

WebSocket protocol (JSON text frames):
    client -> server  {"type": "subscribe", "id": "...", "collection": "...", "filters": [...]}
    client -> server  {"type": "unsubscribe", "id": "..."}
    server -> client  {"type": "snapshot", "id": "...", "documents": [...]}
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import ssl
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import websockets
from websockets.exceptions import WebSocketException

from rangesync.client.api import Document
from rangesync.client.models import new_id
from rangesync.client.remote import PlayerLinksRemote, RangeSharesRemote, user_collection
from rangesync.core.types import LinkStatus

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

    from rangesync.client.api import DocumentClient, Filter
    from rangesync.core.config import RemoteConfig

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[Document]], None]


class Subscription:
    """Handle for an active snapshot subscription."""

    def __init__(self, subscription_id: str, cancel: Callable[[str], None]) -> None:
        self.id = subscription_id
        self._cancel = cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._cancel(self.id)


class SnapshotSource(Protocol):
    """Something that can stream collection snapshots."""

    def subscribe(
        self,
        collection: str,
        filters: list[Filter] | None,
        callback: SnapshotCallback,
    ) -> Subscription: ...

    async def close(self) -> None: ...


@dataclass
class _Listener:
    collection: str
    filters: list[Filter]
    callback: SnapshotCallback

    def subscribe_message(self, subscription_id: str) -> str:
        return json.dumps({
            "type": "subscribe",
            "id": subscription_id,
            "collection": self.collection,
            "filters": [list(f) for f in self.filters],
        })


def _deliver(listener: _Listener, documents: list[Document]) -> None:
    try:
        listener.callback(documents)
    except Exception:
        logger.exception("Snapshot callback failed for %s", listener.collection)


class WebSocketSnapshotSource:
    """Snapshot subscriptions pushed by the server.

    One connection carries every subscription. The connection is opened
    on the first subscribe() and re-established after a drop; on reconnect
    every live subscription is sent again, so the server replies with a
    fresh snapshot for each.

    Usage:
        source = WebSocketSnapshotSource(config)
        sub = source.subscribe("users/u1/range_shares", None, on_docs)
        ...
        sub.unsubscribe()
        await source.close()
    """

    def __init__(self, config: RemoteConfig, reconnect_delay: float = 5.0) -> None:
        """Initialize the source.

        Args:
            config: Server URL, token and SSL settings.
            reconnect_delay: Delay between reconnection attempts.
        """
        self._config = config
        self._reconnect_delay = reconnect_delay
        self._listeners: dict[str, _Listener] = {}
        self._ws: ClientConnection | None = None
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self._connected = False
        self._sends: set[asyncio.Task[None]] = set()

    @property
    def connected(self) -> bool:
        return self._connected

    def subscribe(
        self,
        collection: str,
        filters: list[Filter] | None,
        callback: SnapshotCallback,
    ) -> Subscription:
        subscription_id = new_id()
        listener = _Listener(collection, list(filters or []), callback)
        self._listeners[subscription_id] = listener
        if self._task is None or self._task.done():
            self._stop_event = asyncio.Event()
            self._task = asyncio.get_running_loop().create_task(
                self._connection_loop(self._stop_event), name="WebSocketSnapshotSource"
            )
        elif self._connected:
            self._send_soon(listener.subscribe_message(subscription_id))
        return Subscription(subscription_id, self._unsubscribe)

    def _unsubscribe(self, subscription_id: str) -> None:
        if self._listeners.pop(subscription_id, None) is not None and self._connected:
            self._send_soon(json.dumps({"type": "unsubscribe", "id": subscription_id}))

    def _send_soon(self, message: str) -> None:
        ws = self._ws
        if ws is None:
            return

        async def send() -> None:
            with contextlib.suppress(WebSocketException):
                await ws.send(message)

        task = asyncio.get_running_loop().create_task(send())
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    async def close(self) -> None:
        """Drop every subscription and close the connection."""
        self._listeners.clear()
        if self._stop_event:
            self._stop_event.set()
        if self._ws:
            with contextlib.suppress(WebSocketException):
                await self._ws.close()
        if self._task:
            await self._task
            self._task = None

    async def _connect(self) -> ClientConnection:
        ssl_context: ssl.SSLContext | None = None
        if self._config.is_secure:
            ssl_context = ssl.create_default_context()
            if not self._config.verify_ssl:
                ssl_context.check_hostname = False
                ssl_context.verify_mode = ssl.CERT_NONE

        ws = await websockets.connect(
            self._config.ws_url,
            ssl=ssl_context,
            open_timeout=10,
            close_timeout=5,
        )
        self._ws = ws
        self._connected = True
        logger.info("Snapshot stream connected")
        for subscription_id, listener in list(self._listeners.items()):
            await ws.send(listener.subscribe_message(subscription_id))
        return ws

    async def _connection_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set() and self._listeners:
            try:
                ws = await self._connect()
                await self._listen(ws)
            except WebSocketException as e:
                logger.warning("Snapshot stream disconnected: %s", e)
            except OSError as e:
                logger.debug("Snapshot stream connection error: %s", e)
            finally:
                self._connected = False
                self._ws = None

            if stop_event.is_set():
                break
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=self._reconnect_delay)

    async def _listen(self, ws: ClientConnection) -> None:
        async for message in ws:
            if isinstance(message, bytes):
                message = message.decode("utf-8")
            self._handle_message(message)

    def _handle_message(self, message: str) -> None:
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.warning("Invalid snapshot message: %s", message[:100])
            return

        if data.get("type") != "snapshot":
            return
        listener = self._listeners.get(data.get("id", ""))
        if listener is None:
            return
        _deliver(listener, [Document.from_dict(d) for d in data.get("documents", [])])


class PollingSnapshotSource:
    """Snapshot subscriptions simulated by re-running queries.

    A callback fires on the first poll and then only when the set of
    documents (ids and update times) changes.
    """

    def __init__(self, client: DocumentClient, interval: float = 30.0) -> None:
        self._client = client
        self._interval = interval
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def subscribe(
        self,
        collection: str,
        filters: list[Filter] | None,
        callback: SnapshotCallback,
    ) -> Subscription:
        subscription_id = new_id()
        listener = _Listener(collection, list(filters or []), callback)
        self._tasks[subscription_id] = asyncio.get_running_loop().create_task(
            self._poll(listener), name=f"PollingSnapshot:{collection}"
        )
        return Subscription(subscription_id, self._unsubscribe)

    def _unsubscribe(self, subscription_id: str) -> None:
        task = self._tasks.pop(subscription_id, None)
        if task is not None:
            task.cancel()

    async def close(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _poll(self, listener: _Listener) -> None:
        last: tuple[tuple[str, Any], ...] | None = None
        while True:
            try:
                documents = await self._client.query(
                    listener.collection, filters=listener.filters or None
                )
            except Exception as e:
                logger.debug("Snapshot poll of %s failed: %s", listener.collection, e)
            else:
                fingerprint = tuple((d.id, d.updated_at) for d in documents)
                if fingerprint != last:
                    last = fingerprint
                    _deliver(listener, documents)
            await asyncio.sleep(self._interval)


# === Badge counts ===


def subscribe_pending_link_count(
    source: SnapshotSource, user_id: str, callback: Callable[[int], None]
) -> Subscription:
    """Stream the number of link requests waiting for the user."""
    return source.subscribe(
        user_collection(user_id, PlayerLinksRemote.COLLECTION),
        [("status", "==", LinkStatus.PENDING.value), ("is_initiator", "==", False)],
        lambda documents: callback(len(documents)),
    )


def subscribe_pending_share_count(
    source: SnapshotSource, user_id: str, callback: Callable[[int], None]
) -> Subscription:
    """Stream the number of range shares in the user's inbox."""
    return source.subscribe(
        user_collection(user_id, RangeSharesRemote.COLLECTION),
        None,
        lambda documents: callback(len(documents)),
    )

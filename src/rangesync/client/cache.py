"""In-memory read-through/write-through entity cache.

This module provides:
- RangeCache: per-entity cache in front of the LocalStore

Multiple observers of the same entity (for example a range grid and a
stats panel) converge instantly: every write fans out synchronously to
all subscribers, and readers that mount before the entity is cached fall
back to one local-store read that then populates the cache.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Subscriber = Callable[[str, Any], None]


class RangeCache(Generic[T]):
    """Read-through, write-through map keyed by entity id.

    Example:
        cache = RangeCache(key=lambda r: r.player_id, loader=repo.get_player_ranges)
        unsubscribe = cache.subscribe(lambda key, value: print(key, value))
        cache.set(ranges)          # notifies subscribers
        cache.load("player-1")     # cached value, or store read on miss
    """

    def __init__(
        self,
        key: Callable[[T], str],
        loader: Callable[[str], T | None] | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            key: Extracts the cache key from an entity.
            loader: Reads an entity from the local store on cache miss.
        """
        self._key = key
        self._loader = loader
        self._entries: dict[str, T] = {}
        self._subscribers: list[Subscriber] = []
        self._refreshing: dict[str, asyncio.Future[T | None]] = {}

    # === Lifecycle ===

    def init(self, loader: Callable[[str], T | None] | None = None) -> None:
        """Bind (or rebind) the store loader and start empty."""
        if loader is not None:
            self._loader = loader
        self._entries.clear()

    def reset(self) -> None:
        """Drop every entry and subscriber."""
        self._entries.clear()
        self._subscribers.clear()
        for future in self._refreshing.values():
            future.cancel()
        self._refreshing.clear()

    # === Reads ===

    def get(self, entity_id: str) -> T | None:
        """Get the cached value, or None."""
        return self._entries.get(entity_id)

    def load(self, entity_id: str) -> T | None:
        """Get the cached value, reading through to the store on miss.

        A value found in the store populates the cache without notifying
        subscribers, since nothing changed.
        """
        value = self._entries.get(entity_id)
        if value is not None or self._loader is None:
            return value
        value = self._loader(entity_id)
        if value is not None:
            self._entries[entity_id] = value
        return value

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # === Writes ===

    def set(self, entity: T) -> None:
        """Store an entity and notify every subscriber."""
        entity_id = self._key(entity)
        self._entries[entity_id] = entity
        self._notify(entity_id, entity)

    def invalidate(self, entity_id: str) -> None:
        """Forget an entity and notify subscribers that it is gone."""
        if self._entries.pop(entity_id, None) is not None:
            self._notify(entity_id, None)

    def _notify(self, entity_id: str, value: T | None) -> None:
        for subscriber in list(self._subscribers):
            subscriber(entity_id, value)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change callback.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # === Background refresh ===

    async def refresh(
        self,
        entity_id: str,
        fetch: Callable[[str], Awaitable[T | None]],
    ) -> T | None:
        """Refresh one entity in the background.

        Concurrent refreshes of the same id share a single fetch.

        Args:
            entity_id: Entity to refresh.
            fetch: Coroutine function returning the fresh value.

        Returns:
            The fresh value (also stored and published), or None.
        """
        pending = self._refreshing.get(entity_id)
        if pending is not None:
            return await asyncio.shield(pending)

        future: asyncio.Future[T | None] = asyncio.get_running_loop().create_future()
        self._refreshing[entity_id] = future
        try:
            value = await fetch(entity_id)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unawaited future does not warn
            future.exception()
            raise
        finally:
            self._refreshing.pop(entity_id, None)

        if value is not None:
            self.set(value)
        future.set_result(value)
        return value

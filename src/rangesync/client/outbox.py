"""Pending-sync outbox.

This module provides:
- Outbox: ordered, durable log of intended remote mutations

Entries are kept in insertion order and drained FIFO by the Synchronizer.
The outbox bounds its own growth under rapid local edits (for example
dragging across a range grid) by coalescing:

- An update following a create or update for the same (collection,
  target id) replaces that entry's payload and timestamp in place.
- A delete always appends a fresh entry, so it survives even if the
  earlier create/update entries are later dropped.

Persistence (SQLite):
    Every mutation writes through to the LocalStore "pending_sync" table
    before returning, and the in-memory list is rebuilt from that table
    on startup. Coalesced entries keep their row, so they also keep
    their position in the queue.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from rangesync.client.models import PendingSyncItem, new_id, now_ms, target_id_for
from rangesync.client.state import PENDING_SYNC_TABLE
from rangesync.core.types import Collection, Operation

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rangesync.client.state import LocalStore

logger = logging.getLogger(__name__)

_COALESCIBLE = (Operation.CREATE, Operation.UPDATE)


class Outbox:
    """Durable FIFO of PendingSyncItem with update coalescing.

    All access is single-threaded; each mutation is a read-modify-write
    of the full list followed by a write-through to the store.
    """

    def __init__(self, store: LocalStore) -> None:
        """Initialize the outbox and load persisted entries.

        Args:
            store: Local store holding the pending_sync table.
        """
        self._store = store
        self._items: list[PendingSyncItem] = []
        self.init()

    def init(self) -> None:
        """(Re)load entries from the local store."""
        self._items = [PendingSyncItem.from_dict(d) for d in self._store.get_all(PENDING_SYNC_TABLE)]
        if self._items:
            logger.info("Loaded %d pending sync entries", len(self._items))

    def reset(self) -> None:
        """Drop every entry, in memory and on disk."""
        self._items = []
        self._store.clear(PENDING_SYNC_TABLE)

    def enqueue(
        self,
        collection: Collection | str,
        operation: Operation | str,
        data: dict[str, Any],
    ) -> PendingSyncItem:
        """Append a mutation, or coalesce it into the previous one.

        Args:
            collection: Target collection.
            operation: create, update or delete.
            data: Entity payload; must carry the target id.

        Returns:
            The queued (or updated) entry.
        """
        collection = Collection(collection)
        operation = Operation(operation)
        target_id = target_id_for(collection, data)

        if operation is Operation.UPDATE:
            previous = self._last_for_target(collection, target_id)
            if previous is not None and previous.operation in _COALESCIBLE:
                previous.data = data
                previous.timestamp = now_ms()
                self._store.put(PENDING_SYNC_TABLE, previous.id, previous.to_dict())
                logger.debug(
                    "Coalesced %s update for %s into entry %s",
                    collection.value,
                    target_id,
                    previous.id,
                )
                return previous

        item = PendingSyncItem(
            id=new_id(),
            collection=collection,
            operation=operation,
            data=data,
        )
        self._items.append(item)
        self._store.put(PENDING_SYNC_TABLE, item.id, item.to_dict())
        logger.debug(
            "Queued %s %s for %s (outbox size: %d)",
            collection.value,
            operation.value,
            target_id,
            len(self._items),
        )
        return item

    def _last_for_target(self, collection: Collection, target_id: str) -> PendingSyncItem | None:
        for item in reversed(self._items):
            if item.collection is collection and item.target_id == target_id:
                return item
        return None

    def list(self) -> list[PendingSyncItem]:
        """Get a snapshot of all entries in insertion order."""
        return list(self._items)

    def get(self, item_id: str) -> PendingSyncItem | None:
        """Get an entry by id."""
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def remove(self, item_id: str) -> bool:
        """Remove one entry.

        Returns:
            True if the entry existed.
        """
        before = len(self._items)
        self._items = [item for item in self._items if item.id != item_id]
        self._store.delete(PENDING_SYNC_TABLE, item_id)
        return len(self._items) < before

    def remove_by_target(self, collection: Collection | str, target_id: str) -> int:
        """Remove every entry referencing a target.

        Returns:
            Number of entries removed.
        """
        collection = Collection(collection)
        removed = [
            item
            for item in self._items
            if item.collection is collection and item.target_id == target_id
        ]
        if not removed:
            return 0
        removed_ids = {item.id for item in removed}
        self._items = [item for item in self._items if item.id not in removed_ids]
        for item_id in removed_ids:
            self._store.delete(PENDING_SYNC_TABLE, item_id)
        logger.debug(
            "Removed %d entries for %s %s", len(removed), collection.value, target_id
        )
        return len(removed)

    def has_pending(self, collection: Collection | str, target_id: str) -> bool:
        """Check whether a target has any pending entry."""
        collection = Collection(collection)
        return any(
            item.collection is collection and item.target_id == target_id
            for item in self._items
        )

    def pending_targets(self, collection: Collection | str) -> set[str]:
        """Get the ids of every target of a collection with pending entries."""
        collection = Collection(collection)
        return {item.target_id for item in self._items if item.collection is collection}

    def clear(self) -> int:
        """Remove all entries.

        Returns:
            Number of entries removed.
        """
        count = len(self._items)
        self.reset()
        return count

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[PendingSyncItem]:
        return iter(list(self._items))

    def __bool__(self) -> bool:
        return bool(self._items)

    def stats(self) -> dict[str, int]:
        """Get outbox statistics.

        Returns:
            Dictionary with entry counts by collection and operation.
        """
        stats: dict[str, int] = {"total": len(self._items)}
        for item in self._items:
            stats[item.collection.value] = stats.get(item.collection.value, 0) + 1
            stats[item.operation.value] = stats.get(item.operation.value, 0) + 1
        return stats

"""Outbox-based push/pull synchronizer.

This module provides:
- Synchronizer: drains the outbox to the remote store (push) and folds
  remote snapshots into the local store (pull)
- PushResult, PullResult, SyncResult: per-pass summaries

Push error classification:
    NotFoundError           -> the remote record is gone; every outbox entry
                               for that target is purged and later entries
                               for it are skipped for the rest of the pass
    RemoteUnavailableError  -> entry kept; connectivity is re-probed and the
                               pass stops if we are now offline
    anything else           -> entry kept; the pass continues

Remote failures never propagate to the caller: the local write already
succeeded, so they only show up in the status signal and as entries left
in the outbox.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from rangesync.client.api import NotFoundError, RemoteUnavailableError
from rangesync.client.connectivity import NETWORK_EXCEPTIONS
from rangesync.client.models import now_ms
from rangesync.client.sync.sessions import merge_sessions, pick_session
from rangesync.core.types import Collection, Operation, SyncState

if TYPE_CHECKING:
    from rangesync.client.connectivity import ConnectivityProbe
    from rangesync.client.identity import IdentityProvider
    from rangesync.client.models import PendingSyncItem, Session
    from rangesync.client.outbox import Outbox
    from rangesync.client.remote import RemoteStore
    from rangesync.client.repository import LocalRepository
    from rangesync.client.state import LocalStore

logger = logging.getLogger(__name__)

# Session fields that never leave the device
LOCAL_ONLY_SESSION_FIELDS = ("table",)

StatusListener = Callable[[SyncState], None]


def strip_local_only(data: dict[str, Any]) -> dict[str, Any]:
    """Drop transient session fields from a remote payload."""
    return {k: v for k, v in data.items() if k not in LOCAL_ONLY_SESSION_FIELDS}


@dataclass
class PushResult:
    """Summary of one push pass.

    Attributes:
        pushed: Entries confirmed by the remote store.
        purged: Entries removed because their target no longer exists.
        failed: Entries kept for the next pass.
        skipped: True if the pass did not run (busy, guest or offline).
    """

    pushed: int = 0
    purged: int = 0
    failed: int = 0
    skipped: bool = False


@dataclass
class PullResult:
    """Summary of one pull pass."""

    players: int = 0
    ranges: int = 0
    sessions: int = 0
    skipped_pending: list[str] = field(default_factory=list)
    skipped: bool = False
    error: str | None = None


@dataclass
class SyncResult:
    """Summary of a full sync (push then pull)."""

    push: PushResult
    pull: PullResult


class Synchronizer:
    """Reconciles the local store with the remote document store.

    One instance owns the outbox drain. Its status doubles as the
    single-flight guard: a push or pull requested while another pass is
    running is a no-op, not queued.
    """

    def __init__(
        self,
        store: LocalStore,
        repository: LocalRepository,
        outbox: Outbox,
        remote: RemoteStore,
        probe: ConnectivityProbe,
        identity: IdentityProvider,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            store: Local store (sync bookkeeping).
            repository: Local write path used by pull.
            outbox: Pending-sync queue to drain.
            remote: Remote entity adapters.
            probe: Cached connectivity probe.
            identity: Source of the signed-in user.
        """
        self._store = store
        self._repository = repository
        self._outbox = outbox
        self._remote = remote
        self._probe = probe
        self._identity = identity
        self._status = SyncState.IDLE
        self._listeners: list[StatusListener] = []

    # === Status ===

    @property
    def status(self) -> SyncState:
        return self._status

    @property
    def pending_count(self) -> int:
        return len(self._outbox)

    def add_status_listener(self, listener: StatusListener) -> Callable[[], None]:
        """Register a callback fired on every status change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _set_status(self, status: SyncState) -> None:
        if status is self._status:
            return
        logger.debug("Sync status: %s -> %s", self._status.value, status.value)
        self._status = status
        for listener in list(self._listeners):
            listener(status)

    def mark_offline(self) -> None:
        """Reflect a platform "offline" event unless a pass is running."""
        if self._status is not SyncState.SYNCING:
            self._set_status(SyncState.OFFLINE)

    def reset(self) -> None:
        """Return to idle and drop listeners (test isolation)."""
        self._status = SyncState.IDLE
        self._listeners.clear()

    async def _begin_pass(self, kind: str) -> str | None:
        """Run the shared preconditions of push and pull.

        Returns:
            The user id to sync for, or None if the pass must not run.
        """
        if self._status is SyncState.SYNCING:
            logger.debug("%s skipped: a sync pass is already running", kind)
            return None
        user = self._identity.current_user()
        if user is None:
            logger.debug("%s skipped: no signed-in user", kind)
            return None

        self._set_status(SyncState.SYNCING)
        try:
            online = await self._probe.is_online()
        except Exception:
            logger.exception("Connectivity probe failed")
            self._set_status(SyncState.ERROR)
            return None
        if not online:
            logger.info("%s skipped: offline", kind)
            self._set_status(SyncState.OFFLINE)
            return None
        return user.user_id

    # === Push ===

    async def push_pending(self) -> PushResult:
        """Drain the outbox to the remote store, FIFO.

        Safe to call repeatedly; never raises for remote failures.

        Returns:
            PushResult for this pass.
        """
        user_id = await self._begin_pass("Push")
        if user_id is None:
            return PushResult(skipped=True)

        result = PushResult()
        if not self._outbox:
            self._set_status(SyncState.IDLE)
            return result

        try:
            connectivity_lost = await self._drain(user_id, result)
        except Exception:
            logger.exception("Unexpected error while pushing pending changes")
            self._set_status(SyncState.ERROR)
            return result

        if connectivity_lost:
            self._set_status(SyncState.OFFLINE)
        elif result.failed:
            self._set_status(SyncState.ERROR)
        else:
            self._set_status(SyncState.IDLE)
            self._store.set_state("last_push_at", str(now_ms()))

        logger.info(
            "Push finished: %d pushed, %d purged, %d kept (%d pending)",
            result.pushed,
            result.purged,
            result.failed,
            len(self._outbox),
        )
        return result

    async def _drain(self, user_id: str, result: PushResult) -> bool:
        """Push every entry queued at the start of the pass.

        Returns:
            True if connectivity was lost mid-pass.
        """
        gone: set[tuple[Collection, str]] = set()

        for item in self._outbox.list():
            target = (item.collection, item.target_id)
            if target in gone:
                # Already purged along with the failing entry
                continue

            payload = item.data
            try:
                await self._dispatch(user_id, item)
            except NotFoundError:
                purged = self._outbox.remove_by_target(item.collection, item.target_id)
                gone.add(target)
                result.purged += purged
                logger.info(
                    "Remote %s %s no longer exists, dropped %d pending entries",
                    item.collection.value,
                    item.target_id,
                    purged,
                )
                continue
            except (RemoteUnavailableError, *NETWORK_EXCEPTIONS) as e:
                result.failed += 1
                logger.warning(
                    "Network error pushing %s %s: %s", item.collection.value, item.target_id, e
                )
                if not await self._probe.is_online(force=True):
                    logger.info("Connectivity lost, %d entries left for later", len(self._outbox))
                    return True
                continue
            except Exception as e:
                result.failed += 1
                logger.warning(
                    "Failed to push %s %s %s, will retry: %s",
                    item.operation.value,
                    item.collection.value,
                    item.target_id,
                    e,
                )
                continue

            if item.data is payload:
                self._outbox.remove(item.id)
            else:
                # Coalesced with a newer edit while in flight; push it next pass
                logger.debug("Entry %s changed during push, keeping it", item.id)
            result.pushed += 1

        return False

    async def _dispatch(self, user_id: str, item: PendingSyncItem) -> None:
        """Send one outbox entry to the matching remote adapter."""
        data = item.data
        operation = item.operation

        if item.collection is Collection.PLAYERS:
            players = self._remote.players
            if operation is Operation.CREATE:
                await players.create(user_id, data)
            elif operation is Operation.UPDATE:
                await players.update(user_id, data)
            else:
                await players.delete(user_id, item.target_id)

        elif item.collection is Collection.PLAYER_RANGES:
            if operation is Operation.DELETE:
                await self._remote.ranges.delete(user_id, item.target_id)
            else:
                await self._remote.ranges.save(user_id, data)

        elif item.collection is Collection.SESSIONS:
            sessions = self._remote.sessions
            if operation is Operation.CREATE:
                await sessions.create(user_id, strip_local_only(data))
            elif operation is Operation.UPDATE:
                await sessions.update(user_id, strip_local_only(data))
            else:
                await sessions.delete(user_id, item.target_id)

        else:
            raise ValueError(f"Unknown collection: {item.collection}")

    # === Pull ===

    async def pull_from_cloud(self) -> PullResult:
        """Fold the remote players, ranges and sessions into the local store.

        Ids with a pending outbox entry are left untouched: local intent
        wins over a possibly stale remote snapshot.

        Returns:
            PullResult for this pass.
        """
        user_id = await self._begin_pass("Pull")
        if user_id is None:
            return PullResult(skipped=True)

        result = PullResult()
        try:
            await self._pull(user_id, result)
        except (RemoteUnavailableError, *NETWORK_EXCEPTIONS) as e:
            logger.warning("Pull interrupted by network error: %s", e)
            result.error = str(e)
            self._probe.invalidate()
            self._set_status(SyncState.OFFLINE)
            return result
        except Exception as e:
            logger.exception("Unexpected error while pulling from cloud")
            result.error = str(e)
            self._set_status(SyncState.ERROR)
            return result

        self._store.set_last_pull_at(now_ms())
        self._set_status(SyncState.IDLE)
        logger.info(
            "Pull finished: %d players, %d range sets, %d sessions (%d skipped as pending)",
            result.players,
            result.ranges,
            result.sessions,
            len(result.skipped_pending),
        )
        return result

    async def _pull(self, user_id: str, result: PullResult) -> None:
        pending_players = self._outbox.pending_targets(Collection.PLAYERS)
        for player in await self._remote.players.list(user_id):
            if player.id in pending_players:
                result.skipped_pending.append(player.id)
                continue
            self._repository.save_player_from_cloud(player)
            result.players += 1

        # A pending player delete also protects that player's ranges
        pending_ranges = self._outbox.pending_targets(Collection.PLAYER_RANGES) | pending_players
        for player_ranges in await self._remote.ranges.list(user_id):
            if player_ranges.player_id in pending_ranges:
                result.skipped_pending.append(player_ranges.player_id)
                continue
            self._repository.save_player_ranges_from_cloud(player_ranges)
            result.ranges += 1

        pending_sessions = self._outbox.pending_targets(Collection.SESSIONS)
        for remote_session in await self._remote.sessions.list(user_id):
            if remote_session.id in pending_sessions:
                result.skipped_pending.append(remote_session.id)
                continue
            local_session = self._repository.get_session(remote_session.id)
            if local_session is not None:
                remote_session = pick_session(local_session, remote_session)
            self._repository.save_session_from_cloud(remote_session)
            result.sessions += 1

    async def reconcile_sessions(self) -> list[Session]:
        """Merge the local and cloud session lists and store the result.

        Sessions with a pending outbox entry keep their local copy.

        Returns:
            The merged sessions, most recent first (local only for guests).

        Raises:
            APIError: If the remote sessions cannot be fetched.
        """
        local = self._repository.list_sessions()
        user = self._identity.current_user()
        if user is None:
            return local

        pending = self._outbox.pending_targets(Collection.SESSIONS)
        remote = [
            s for s in await self._remote.sessions.list(user.user_id) if s.id not in pending
        ]
        merged = merge_sessions(local, remote)
        self._repository.save_sessions(merged)
        logger.debug("Reconciled %d local and %d cloud sessions", len(local), len(remote))
        return merged

    # === Full sync ===

    async def full_sync(self) -> SyncResult:
        """Push local intent first, then pull remote state back."""
        push = await self.push_pending()
        pull = await self.pull_from_cloud()
        return SyncResult(push=push, pull=pull)

"""Offline-first synchronization of players, ranges and sessions.

Architecture:
    LocalRepository -> Outbox -> Synchronizer -> RemoteStore

Components:
- **Synchronizer**: Drains the outbox (push) and folds remote snapshots
  into the local store (pull)
- **AutoSync**: Runs push passes on an interval and on reconnect
- **merge_sessions / pick_session**: Session conflict policy

All public symbols are re-exported here.
"""

from rangesync.client.sync.auto import AutoSync
from rangesync.client.sync.sessions import merge_sessions, pick_session
from rangesync.client.sync.synchronizer import (
    LOCAL_ONLY_SESSION_FIELDS,
    PullResult,
    PushResult,
    SyncResult,
    Synchronizer,
    strip_local_only,
)

__all__ = [
    # Auto sync
    "AutoSync",
    # Sessions
    "merge_sessions",
    "pick_session",
    # Synchronizer
    "LOCAL_ONLY_SESSION_FIELDS",
    "PullResult",
    "PushResult",
    "SyncResult",
    "Synchronizer",
    "strip_local_only",
]

"""Session merge policy for local and cloud session lists.

Two devices can race on the same session; plain last-write-wins would
let a stale remote copy resurrect a session the user just ended. The
policy per session id present on both sides:

    local       remote      winner
    finished    active      local   (stale remote read)
    active      finished    remote  (another device ended it)
    active      active      remote  (remote owns cross-device table state)
    finished    finished    remote

Sessions present on one side only are kept as they are. The result is
sorted by start time, most recent first.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rangesync.client.models import Session


def pick_session(local: Session, remote: Session) -> Session:
    """Choose the winning copy of one session.

    Table seating never leaves the device, so a winning remote copy
    inherits the local table state.
    """
    if not local.is_active and remote.is_active:
        return local
    if remote.table is None and local.table is not None:
        return replace(remote, table=local.table)
    return remote


def merge_sessions(local: list[Session], remote: list[Session]) -> list[Session]:
    """Merge local and cloud session lists.

    Args:
        local: Sessions from the local store.
        remote: Sessions from the remote store.

    Returns:
        Merged sessions, most recent first.
    """
    merged: dict[str, Session] = {session.id: session for session in local}
    for remote_session in remote:
        local_session = merged.get(remote_session.id)
        if local_session is None:
            merged[remote_session.id] = remote_session
        else:
            merged[remote_session.id] = pick_session(local_session, remote_session)
    return sorted(merged.values(), key=lambda s: s.start_time, reverse=True)

"""Shared types for rangesync.

This module defines types and enums used by both client and server.
"""

from __future__ import annotations

from enum import Enum


class SyncState(str, Enum):
    """Sync state of the local data layer.

    Used by the Synchronizer as its single-flight guard and published
    to status listeners (UI badges, CLI status line).
    """

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"
    OFFLINE = "offline"


class SelectionState(str, Enum):
    """Selection state of one hand inside a range grid."""

    UNSELECTED = "unselected"
    MANUAL_SELECTED = "manual-selected"
    MANUAL_UNSELECTED = "manual-unselected"
    AUTO_SELECTED = "auto-selected"


class Position(str, Enum):
    """Table position group."""

    EARLY = "early"
    MIDDLE = "middle"
    LATE = "late"
    BLINDS = "blinds"


class Action(str, Enum):
    """Preflop action a range describes."""

    OPEN_RAISE = "open-raise"
    CALL = "call"
    THREE_BET = "3bet"
    CALL_THREE_BET = "call-3bet"
    FOUR_BET = "4bet"


class Collection(str, Enum):
    """Entity collections that require remote durability."""

    PLAYERS = "players"
    PLAYER_RANGES = "player_ranges"
    SESSIONS = "sessions"


class Operation(str, Enum):
    """Remote mutation recorded in the outbox."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class LinkStatus(str, Enum):
    """Stored status of a player link.

    Declined, cancelled and removed links are deleted, so only the two
    live states are ever persisted.
    """

    PENDING = "pending"
    ACTIVE = "active"

"""Entity validation limits and checks.

This module provides:
- Hard limits on player, session and range sizes
- validate_* functions returning a ValidationResult (errors and warnings)
- Document size estimation against remote document limits

Checks never raise; callers decide whether an invalid result is fatal.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from rangesync.core.types import SelectionState

# Player limits
MAX_PLAYER_NAME_LENGTH = 100
MAX_PLAYER_NOTES_LENGTH = 10_000
MAX_NOTES_LIST_ITEMS = 500
MAX_NOTE_CONTENT_LENGTH = 5_000
MAX_LOCATIONS_PER_PLAYER = 50
MAX_LOCATION_LENGTH = 200
MAX_RANGES_PER_PLAYER = 100

# Session limits
MAX_SESSION_NAME_LENGTH = 200
MAX_SESSION_LOCATION_LENGTH = 200

# Range limits (13x13 matrix)
MAX_HANDS_PER_RANGE = 169

# Document size limits in bytes
MAX_PLAYER_DOCUMENT_SIZE = 500_000
MAX_SESSION_DOCUMENT_SIZE = 1_000_000

# Fraction of a limit at which a warning is emitted
WARNING_THRESHOLD = 0.9
SIZE_WARNING_THRESHOLD = 0.8

_HEX_COLOR = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")
_VALID_STATES = frozenset(state.value for state in SelectionState)


@dataclass
class ValidationResult:
    """Outcome of a validation check."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def merge(self, other: ValidationResult) -> ValidationResult:
        """Combine two results into a new one."""
        return ValidationResult(
            errors=[*self.errors, *other.errors],
            warnings=[*self.warnings, *other.warnings],
        )


def validate_player_data(player: Mapping[str, Any]) -> ValidationResult:
    """Validate player fields before create/update.

    Only the fields present in the mapping are checked, so partial
    updates can be validated too.

    Args:
        player: Player fields (snake_case keys, as produced by Player.to_dict()).

    Returns:
        ValidationResult with any errors and warnings.
    """
    result = ValidationResult()

    if "name" in player:
        name = player["name"] or ""
        if not name.strip():
            result.errors.append("Player name is required")
        elif len(name) > MAX_PLAYER_NAME_LENGTH:
            result.errors.append(
                f"Player name exceeds max length of {MAX_PLAYER_NAME_LENGTH} characters"
            )

    notes = player.get("notes")
    if notes is not None and len(notes) > MAX_PLAYER_NOTES_LENGTH:
        result.errors.append(
            f"Player notes exceed max length of {MAX_PLAYER_NOTES_LENGTH} characters"
        )

    notes_list = player.get("notes_list") or []
    if notes_list:
        if len(notes_list) > MAX_NOTES_LIST_ITEMS:
            result.errors.append(f"Notes list exceeds max of {MAX_NOTES_LIST_ITEMS} items")
        for note in notes_list:
            if len(note.get("content") or "") > MAX_NOTE_CONTENT_LENGTH:
                result.errors.append(
                    f"Note content exceeds max length of {MAX_NOTE_CONTENT_LENGTH} characters"
                )
                break
        if len(notes_list) > MAX_NOTES_LIST_ITEMS * WARNING_THRESHOLD:
            result.warnings.append(
                f"Notes list approaching limit ({len(notes_list)}/{MAX_NOTES_LIST_ITEMS})"
            )

    locations = player.get("locations") or []
    if locations:
        if len(locations) > MAX_LOCATIONS_PER_PLAYER:
            result.errors.append(f"Locations exceed max of {MAX_LOCATIONS_PER_PLAYER}")
        for location in locations:
            if len(location) > MAX_LOCATION_LENGTH:
                result.errors.append(
                    f"Location name exceeds max length of {MAX_LOCATION_LENGTH} characters"
                )
                break

    if "ranges" in player:
        range_count = len(player["ranges"] or {})
        if range_count > MAX_RANGES_PER_PLAYER:
            result.errors.append(f"Ranges exceed max of {MAX_RANGES_PER_PLAYER}")
        if range_count > MAX_RANGES_PER_PLAYER * WARNING_THRESHOLD:
            result.warnings.append(
                f"Ranges approaching limit ({range_count}/{MAX_RANGES_PER_PLAYER})"
            )

    color = player.get("color")
    if color and not _HEX_COLOR.match(color):
        result.errors.append("Invalid color format. Expected hex color code (e.g., #FF0000)")

    return result


def validate_session_data(session: Mapping[str, Any]) -> ValidationResult:
    """Validate session fields before create/update."""
    result = ValidationResult()

    if "name" in session:
        name = session["name"] or ""
        if not name.strip():
            result.errors.append("Session name is required")
        elif len(name) > MAX_SESSION_NAME_LENGTH:
            result.errors.append(
                f"Session name exceeds max length of {MAX_SESSION_NAME_LENGTH} characters"
            )

    location = session.get("location")
    if location is not None and len(location) > MAX_SESSION_LOCATION_LENGTH:
        result.errors.append(
            f"Session location exceeds max length of {MAX_SESSION_LOCATION_LENGTH} characters"
        )

    start_time = session.get("start_time")
    end_time = session.get("end_time")
    if start_time is not None and end_time is not None and end_time < start_time:
        result.errors.append("End time cannot be before start time")

    return result


def validate_range(range_: Mapping[str, str]) -> ValidationResult:
    """Validate a single range's size and selection states."""
    result = ValidationResult()

    if len(range_) > MAX_HANDS_PER_RANGE:
        result.errors.append(f"Range exceeds max of {MAX_HANDS_PER_RANGE} hands")

    for hand, state in range_.items():
        value = state.value if isinstance(state, SelectionState) else state
        if value not in _VALID_STATES:
            result.errors.append(f'Invalid selection state "{value}" for hand "{hand}"')
            break

    return result


def estimate_document_size(data: Mapping[str, Any]) -> int:
    """Estimate the serialized size of a document in bytes."""
    return len(json.dumps(data, separators=(",", ":")).encode("utf-8"))


def _check_size(data: Mapping[str, Any], limit: int, label: str) -> ValidationResult:
    result = ValidationResult()
    size = estimate_document_size(data)
    if size > limit:
        result.errors.append(f"{label} document exceeds max size of {limit // 1000} KB")
    elif size > limit * SIZE_WARNING_THRESHOLD:
        result.warnings.append(
            f"{label} document approaching size limit ({round(size / 1000)} KB / {limit // 1000} KB)"
        )
    return result


def check_player_document_size(player: Mapping[str, Any]) -> ValidationResult:
    """Check a player document (with ranges) against the remote size limit."""
    return _check_size(player, MAX_PLAYER_DOCUMENT_SIZE, "Player")


def check_session_document_size(session: Mapping[str, Any]) -> ValidationResult:
    """Check a session document against the remote size limit."""
    return _check_size(session, MAX_SESSION_DOCUMENT_SIZE, "Session")

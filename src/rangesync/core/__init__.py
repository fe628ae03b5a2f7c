"""Core module - Shared types, hand matrix, ranges and validation."""

from rangesync.core.config import RemoteConfig, SyncSettings
from rangesync.core.hands import (
    ALL_HANDS,
    HAND_MATRIX,
    RANGE_CATEGORIES,
    RANGE_KEYS,
    RANKS,
    hand_label,
    is_valid_hand,
    make_range_key,
    parse_range_key,
)
from rangesync.core.ranges import (
    Range,
    RangeSet,
    count_selected,
    is_empty_range,
    keys_with_content,
    range_has_content,
    to_sparse_range,
    to_sparse_range_set,
)
from rangesync.core.types import (
    Action,
    Collection,
    LinkStatus,
    Operation,
    Position,
    SelectionState,
    SyncState,
)
from rangesync.core.validation import (
    ValidationResult,
    validate_player_data,
    validate_range,
    validate_session_data,
)

__all__ = [
    # Config
    "RemoteConfig",
    "SyncSettings",
    # Hands
    "ALL_HANDS",
    "HAND_MATRIX",
    "RANGE_CATEGORIES",
    "RANGE_KEYS",
    "RANKS",
    "hand_label",
    "is_valid_hand",
    "make_range_key",
    "parse_range_key",
    # Ranges
    "Range",
    "RangeSet",
    "count_selected",
    "is_empty_range",
    "keys_with_content",
    "range_has_content",
    "to_sparse_range",
    "to_sparse_range_set",
    # Types
    "Action",
    "Collection",
    "LinkStatus",
    "Operation",
    "Position",
    "SelectionState",
    "SyncState",
    # Validation
    "ValidationResult",
    "validate_player_data",
    "validate_range",
    "validate_session_data",
]

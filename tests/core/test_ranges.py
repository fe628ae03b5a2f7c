"""Tests for sparse range helpers."""

from __future__ import annotations

from rangesync.core.ranges import (
    count_selected,
    is_empty_range,
    keys_with_content,
    range_has_content,
    to_sparse_range,
    to_sparse_range_set,
)
from rangesync.core.types import SelectionState


class TestSparseRanges:
    """Tests for sparse conversion."""

    def test_strips_unselected(self) -> None:
        """Should drop unselected entries only."""
        dense = {
            "AA": "manual-selected",
            "KK": "unselected",
            "QQ": "manual-unselected",
            "AKs": SelectionState.AUTO_SELECTED,
        }
        assert to_sparse_range(dense) == {
            "AA": "manual-selected",
            "QQ": "manual-unselected",
            "AKs": "auto-selected",
        }

    def test_range_set_keeps_empty_keys(self) -> None:
        """Keys whose range becomes empty stay as empty dicts."""
        ranges = {
            "early_open-raise": {"AA": "manual-selected"},
            "early_call": {"KK": "unselected"},
        }
        assert to_sparse_range_set(ranges) == {
            "early_open-raise": {"AA": "manual-selected"},
            "early_call": {},
        }

    def test_sparse_does_not_mutate_input(self) -> None:
        """Should return a new dict."""
        dense = {"AA": "unselected"}
        to_sparse_range(dense)
        assert dense == {"AA": "unselected"}


class TestRangeContent:
    """Tests for emptiness checks."""

    def test_empty_ranges(self) -> None:
        """None, {} and all-unselected ranges are empty."""
        assert is_empty_range(None)
        assert is_empty_range({})
        assert is_empty_range({"AA": "unselected", "KK": "unselected"})

    def test_range_with_content(self) -> None:
        """Any non-unselected entry counts as content."""
        assert range_has_content({"AA": "manual-unselected"})
        assert not range_has_content({})

    def test_count_selected(self) -> None:
        """Only manual and auto selections count."""
        range_ = {
            "AA": "manual-selected",
            "KK": "auto-selected",
            "QQ": "manual-unselected",
            "JJ": "unselected",
        }
        assert count_selected(range_) == 2

    def test_keys_with_content(self) -> None:
        """Should list only keys with a non-empty range."""
        ranges = {
            "early_call": {},
            "late_call": {"AA": "manual-selected"},
            "blinds_call": {"KK": "unselected"},
        }
        assert keys_with_content(ranges) == ["late_call"]

"""Tests for the starting-hand matrix and range keys."""

from __future__ import annotations

import pytest

from rangesync.core.hands import (
    ALL_HANDS,
    HAND_MATRIX,
    RANGE_KEYS,
    hand_label,
    is_valid_hand,
    make_range_key,
    parse_range_key,
)
from rangesync.core.types import Action, Position


class TestHandMatrix:
    """Tests for the 13x13 hand matrix."""

    def test_matrix_has_169_unique_hands(self) -> None:
        """Should hold every canonical hand exactly once."""
        assert len(HAND_MATRIX) == 13
        assert all(len(row) == 13 for row in HAND_MATRIX)
        assert len(ALL_HANDS) == 169
        assert len(set(ALL_HANDS)) == 169

    def test_pairs_on_diagonal(self) -> None:
        """Pairs should sit on the diagonal."""
        assert hand_label(0, 0) == "AA"
        assert hand_label(12, 12) == "22"

    def test_suited_above_offsuit_below(self) -> None:
        """Suited hands above the diagonal, offsuit below."""
        assert hand_label(0, 1) == "AKs"
        assert hand_label(1, 0) == "AKo"
        assert hand_label(4, 12) == "T2s"
        assert hand_label(12, 4) == "T2o"

    def test_is_valid_hand(self) -> None:
        """Should accept only canonical labels."""
        assert is_valid_hand("AKs")
        assert is_valid_hand("72o")
        assert not is_valid_hand("KAs")
        assert not is_valid_hand("AAs")
        assert not is_valid_hand("")


class TestRangeKeys:
    """Tests for position/action range keys."""

    def test_make_range_key(self) -> None:
        """Should join position and action with an underscore."""
        assert make_range_key(Position.EARLY, Action.OPEN_RAISE) == "early_open-raise"
        assert make_range_key("blinds", "3bet") == "blinds_3bet"

    def test_parse_range_key(self) -> None:
        """Should split a key back into enums."""
        assert parse_range_key("late_call-3bet") == (Position.LATE, Action.CALL_THREE_BET)

    def test_parse_invalid_key(self) -> None:
        """Should reject unknown keys."""
        with pytest.raises(ValueError):
            parse_range_key("nonsense")
        with pytest.raises(ValueError):
            parse_range_key("early_fold")

    def test_range_keys_skip_blind_open_raise(self) -> None:
        """Blinds never open-raise."""
        assert "blinds_open-raise" not in RANGE_KEYS
        assert "early_open-raise" in RANGE_KEYS
        assert len(RANGE_KEYS) == 11

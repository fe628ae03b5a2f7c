"""Fill-empty-only merge of a peer's Range Set into the local one.

A range key is:
- **new** when the local side has no range for it, or only an empty one
- **update** when the local side already holds content for it

Peer keys whose range is empty are ignored entirely. The unattended merge
only ever writes new keys, so a user's own observations are never
replaced unless they explicitly select an update key.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from rangesync.client.models import ImportRangesResult
from rangesync.core.ranges import Range, RangeSet, is_empty_range, range_has_content


@dataclass
class MergePreview:
    """Classification of the peer keys that carry content."""

    new_keys: list[str] = field(default_factory=list)
    update_keys: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.new_keys or self.update_keys)


@dataclass
class MergeOutcome:
    """Merged Range Set plus the per-key bookkeeping."""

    ranges: RangeSet
    added: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_result(self) -> ImportRangesResult:
        return ImportRangesResult(
            added=len(self.added),
            skipped=len(self.skipped),
            range_keys_added=list(self.added),
            range_keys_skipped=list(self.skipped),
        )


def classify_keys(local: Mapping[str, Range], peer: Mapping[str, Range]) -> MergePreview:
    """Split the peer's non-empty keys into new and update keys.

    Args:
        local: Local Range Set.
        peer: Peer Range Set.

    Returns:
        MergePreview with keys in the peer's order.
    """
    preview = MergePreview()
    for key, peer_range in peer.items():
        if not range_has_content(peer_range):
            continue
        if is_empty_range(local.get(key)):
            preview.new_keys.append(key)
        else:
            preview.update_keys.append(key)
    return preview


def merge_fill_empty(
    local: Mapping[str, Range],
    peer: Mapping[str, Range],
    selected_keys: Iterable[str] | None = None,
) -> MergeOutcome:
    """Merge peer ranges into a copy of the local Range Set.

    Without selected_keys only new keys are imported and every update key
    is reported as skipped. With selected_keys exactly the selected peer
    keys that carry content are imported (update keys included); every
    other peer key with content is skipped.

    Args:
        local: Local Range Set (left untouched).
        peer: Peer Range Set.
        selected_keys: Explicit keys to import, or None for the default merge.

    Returns:
        MergeOutcome holding the merged Range Set.
    """
    merged: RangeSet = {key: dict(range_) for key, range_ in local.items()}
    outcome = MergeOutcome(ranges=merged)
    selected = set(selected_keys) if selected_keys is not None else None

    for key, peer_range in peer.items():
        if not range_has_content(peer_range):
            continue
        if selected is None:
            take = is_empty_range(local.get(key))
        else:
            take = key in selected
        if take:
            merged[key] = dict(peer_range)
            outcome.added.append(key)
        else:
            outcome.skipped.append(key)
    return outcome

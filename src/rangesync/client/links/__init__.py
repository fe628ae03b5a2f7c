"""Player links and range shares.

Components:
- **PlayerLinkService**: Link lifecycle and pull-based range sync
- **LinkUpdateChecker / UpdatePoller**: Versioned update checks
- **merge_fill_empty / classify_keys**: Fill-empty-only merge
- **RangeShareService**: One-shot range shares between friends
"""

from rangesync.client.links.lifecycle import (
    MAX_LINKS_PER_PLAYER,
    VALID_TRANSITIONS,
    LinkPreview,
    LinkQuota,
    PlayerLinkService,
    check_transition,
)
from rangesync.client.links.merge import (
    MergeOutcome,
    MergePreview,
    classify_keys,
    merge_fill_empty,
)
from rangesync.client.links.sharing import (
    MAX_PENDING_SHARES_PER_USER,
    PendingSharesSummary,
    RangeShareService,
    share_id_for,
)
from rangesync.client.links.updates import (
    CACHE_TTL,
    UPDATE_CHECK_BATCH_SIZE,
    LinkUpdateChecker,
    UpdatePoller,
)

__all__ = [
    # Lifecycle
    "MAX_LINKS_PER_PLAYER",
    "VALID_TRANSITIONS",
    "LinkPreview",
    "LinkQuota",
    "PlayerLinkService",
    "check_transition",
    # Merge
    "MergeOutcome",
    "MergePreview",
    "classify_keys",
    "merge_fill_empty",
    # Sharing
    "MAX_PENDING_SHARES_PER_USER",
    "PendingSharesSummary",
    "RangeShareService",
    "share_id_for",
    # Updates
    "CACHE_TTL",
    "UPDATE_CHECK_BATCH_SIZE",
    "LinkUpdateChecker",
    "UpdatePoller",
]

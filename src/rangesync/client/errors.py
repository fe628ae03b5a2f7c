"""Domain exceptions for the rangesync client.

Validation errors are raised by link and share operations before any
write happens. Their message is the text shown to the user.
"""

from __future__ import annotations


class RangeSyncError(Exception):
    """Base exception for rangesync client errors."""


class ValidationError(RangeSyncError):
    """A mutating call was rejected before any write occurred."""


class EntityValidationError(ValidationError):
    """An entity failed its field/size validation."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or [message]


class NotAuthenticatedError(ValidationError):
    """No user is signed in."""


class NotFriendsError(ValidationError):
    """The two users are not friends."""


class LinkLimitError(ValidationError):
    """The user reached the maximum number of player links."""


class LinkExistsError(ValidationError):
    """A pending or active link already joins these players."""


class PlayerNotFoundError(ValidationError):
    """The referenced player does not exist."""


class LinkNotFoundError(ValidationError):
    """The referenced link does not exist for this user."""


class LinkPermissionError(ValidationError):
    """The user is not allowed to perform this action on the link."""


class LinkStateError(ValidationError):
    """The link is not in the state the action requires."""


class InvalidLinkTransitionError(LinkStateError):
    """Raised when attempting an invalid link status transition."""


class OverwriteNotConfirmedError(ValidationError):
    """A selective sync would replace existing ranges without confirmation."""

    def __init__(self, message: str, range_keys: list[str]) -> None:
        super().__init__(message)
        self.range_keys = range_keys


class ShareNotFoundError(ValidationError):
    """The referenced range share does not exist."""


class NoRangesToShareError(ValidationError):
    """The player has no non-empty range to send."""


class ShareLimitError(ValidationError):
    """The recipient has too many pending shares."""

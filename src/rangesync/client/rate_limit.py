"""Client-side rate limiting for abuse prevention.

This module provides:
- RATE_LIMITS: fixed-window limits per action
- RateLimiter: in-memory per user/action counters
- RateLimitError: raised by RateLimiter.check() when a limit is exceeded

The remote store enforces its own rules; this gate only throttles
rapid-fire link and write operations from one client.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from rangesync.client.errors import RangeSyncError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    """Maximum number of requests allowed per window."""

    max_requests: int
    window_seconds: float


RATE_LIMITS: dict[str, RateLimit] = {
    "CREATE_PLAYER": RateLimit(10, 60.0),
    "CREATE_SESSION": RateLimit(5, 60.0),
    "UPDATE_PLAYER": RateLimit(30, 60.0),
    "UPDATE_SESSION": RateLimit(30, 60.0),
    "UPDATE_RANGE": RateLimit(60, 60.0),
    "DELETE_PLAYER": RateLimit(5, 60.0),
    "DELETE_SESSION": RateLimit(5, 60.0),
    "SYNC_OPERATION": RateLimit(2, 30.0),
    "QUERY_PLAYERS": RateLimit(20, 60.0),
    "QUERY_SESSIONS": RateLimit(20, 60.0),
    # Player link actions
    "CREATE_PLAYER_LINK": RateLimit(10, 60.0),
    "ACCEPT_PLAYER_LINK": RateLimit(10, 60.0),
    "DECLINE_PLAYER_LINK": RateLimit(10, 60.0),
    "REMOVE_PLAYER_LINK": RateLimit(10, 60.0),
    "CANCEL_PLAYER_LINK": RateLimit(10, 60.0),
    "SYNC_PLAYER_LINK": RateLimit(20, 60.0),
    # Range sharing
    "SEND_RANGE_SHARE": RateLimit(10, 60.0),
}

# Stale windows are swept at most this often
CLEANUP_INTERVAL = 300.0


class RateLimitError(RangeSyncError):
    """Raised when an action exceeds its rate limit.

    Attributes:
        action: The throttled action.
        retry_after: Seconds until the window resets.
    """

    def __init__(self, message: str, action: str, retry_after: float) -> None:
        super().__init__(message)
        self.action = action
        self.retry_after = retry_after


class RateLimitGate(Protocol):
    """Anything that can veto an action for a user."""

    def check(self, user_id: str, action: str) -> None:
        """Raise RateLimitError if the action is not allowed."""
        ...


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window rate limiter keyed by "user:action"."""

    def __init__(
        self,
        limits: dict[str, RateLimit] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the limiter.

        Args:
            limits: Limits per action (defaults to RATE_LIMITS).
            clock: Monotonic time source, injectable for tests.
        """
        self._limits = dict(RATE_LIMITS if limits is None else limits)
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._last_cleanup = clock()

    def _limit_for(self, action: str) -> RateLimit:
        try:
            return self._limits[action]
        except KeyError:
            raise ValueError(f"Unknown rate-limited action: {action}") from None

    def check_limit(self, user_id: str, action: str) -> bool:
        """Count one request and report whether it is allowed.

        Returns:
            True if the request fits in the current window.
        """
        limit = self._limit_for(action)
        now = self._clock()
        self._maybe_cleanup(now)

        key = f"{user_id}:{action}"
        window = self._windows.get(key)
        if window is None or now >= window.reset_at:
            window = _Window(count=0, reset_at=now + limit.window_seconds)
            self._windows[key] = window

        window.count += 1
        return window.count <= limit.max_requests

    def check(self, user_id: str, action: str) -> None:
        """Count one request and raise if it exceeds the limit.

        Raises:
            RateLimitError: If the action is rate limited.
        """
        if self.check_limit(user_id, action):
            return
        retry_after = self.time_until_reset(user_id, action)
        logger.warning("Rate limit hit for %s (%s)", action, user_id)
        raise RateLimitError(
            f"Rate limit exceeded for {action.lower().replace('_', ' ')}. "
            f"Please try again in {math.ceil(retry_after)} seconds.",
            action,
            retry_after,
        )

    def remaining(self, user_id: str, action: str) -> int:
        """Get the number of requests left in the current window."""
        limit = self._limit_for(action)
        window = self._windows.get(f"{user_id}:{action}")
        if window is None or self._clock() >= window.reset_at:
            return limit.max_requests
        return max(0, limit.max_requests - window.count)

    def time_until_reset(self, user_id: str, action: str) -> float:
        """Get seconds until the current window resets (0 if none)."""
        window = self._windows.get(f"{user_id}:{action}")
        if window is None or self._clock() >= window.reset_at:
            return 0.0
        return max(0.0, window.reset_at - self._clock())

    def reset(self, user_id: str | None = None, action: str | None = None) -> None:
        """Clear counters for one user/action, one user, or everyone."""
        if user_id is None:
            self._windows.clear()
            return
        if action is not None:
            self._windows.pop(f"{user_id}:{action}", None)
            return
        prefix = f"{user_id}:"
        for key in [k for k in self._windows if k.startswith(prefix)]:
            del self._windows[key]

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < CLEANUP_INTERVAL:
            return
        self._last_cleanup = now
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]


class NoRateLimit:
    """Gate that allows everything."""

    def check(self, user_id: str, action: str) -> None:
        return None

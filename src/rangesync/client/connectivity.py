"""Cached connectivity probe.

This module provides:
- ConnectivityProbe: is_online() with a short-TTL cache and
  offline/online transition listeners
- NETWORK_EXCEPTIONS: exception types that indicate connectivity issues

The underlying check (a health request, or a platform network API) is
only invoked when the cached answer is older than the TTL, so the push
loop can ask before every pass without hammering it. Platform network
events can update the cached answer directly through set_online().
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

# Seconds a probe result stays valid
DEFAULT_CONNECTIVITY_TTL = 5.0

# Network-related exceptions that indicate connectivity issues
NETWORK_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
    OSError,
)

TransitionListener = Callable[[bool], None]


class ConnectivityProbe:
    """Cached answer to "are we online?"."""

    def __init__(
        self,
        check: Callable[[], Awaitable[bool]],
        ttl: float = DEFAULT_CONNECTIVITY_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the probe.

        Args:
            check: Coroutine function performing the real connectivity check.
            ttl: Seconds a result stays cached.
            clock: Monotonic time source, injectable for tests.
        """
        self._check = check
        self._ttl = ttl
        self._clock = clock
        self._online: bool | None = None
        self._checked_at = 0.0
        self._listeners: list[TransitionListener] = []

    @property
    def last_known(self) -> bool | None:
        """Last observed state, without probing (None if never probed)."""
        return self._online

    async def is_online(self, force: bool = False) -> bool:
        """Report connectivity, probing only when the cache expired.

        Args:
            force: Bypass the cache.

        Returns:
            True if the remote store is reachable.
        """
        now = self._clock()
        if not force and self._online is not None and now - self._checked_at < self._ttl:
            return self._online

        try:
            online = await self._check()
        except NETWORK_EXCEPTIONS as e:
            logger.debug("Connectivity check failed: %s", e)
            online = False

        self._record(online, now)
        return online

    def set_online(self, online: bool) -> None:
        """Record a state reported by a platform network event."""
        self._record(online, self._clock())

    def invalidate(self) -> None:
        """Force the next is_online() call to probe."""
        self._checked_at = float("-inf")

    def _record(self, online: bool, now: float) -> None:
        previous = self._online
        self._online = online
        self._checked_at = now
        if previous is not None and previous != online:
            logger.info("Connectivity changed: %s", "online" if online else "offline")
            for listener in list(self._listeners):
                listener(online)

    def add_listener(self, listener: TransitionListener) -> Callable[[], None]:
        """Register a callback for online/offline transitions.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

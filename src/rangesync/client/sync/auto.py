"""Background outbox retry.

This module provides:
- AutoSync: runs a full sync on start, then drains the outbox on a fixed
  interval and whenever connectivity comes back

Everything runs as tasks on the caller's event loop; there are no
worker threads.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from rangesync.core.config import SyncSettings

if TYPE_CHECKING:
    from collections.abc import Callable

    from rangesync.client.connectivity import ConnectivityProbe
    from rangesync.client.sync.synchronizer import Synchronizer

logger = logging.getLogger(__name__)


class AutoSync:
    """Periodic and connectivity-triggered push loop.

    Usage:
        auto = AutoSync(synchronizer, probe)
        auto.start()
        ...
        await auto.stop()
    """

    def __init__(
        self,
        synchronizer: Synchronizer,
        probe: ConnectivityProbe,
        interval: float | None = None,
    ) -> None:
        """Initialize the loop.

        Args:
            synchronizer: Synchronizer to drive.
            probe: Probe whose offline -> online transitions trigger a push.
            interval: Seconds between pushes (default from SyncSettings).
        """
        self._synchronizer = synchronizer
        self._probe = probe
        self._interval = interval if interval is not None else SyncSettings().auto_sync_interval
        self._task: asyncio.Task[None] | None = None
        self._triggered: set[asyncio.Task[object]] = set()
        self._remove_listener: Callable[[], None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop on the running event loop."""
        if self.running:
            logger.warning("AutoSync already running")
            return
        self._stop_event = asyncio.Event()
        self._remove_listener = self._probe.add_listener(self._on_connectivity_change)
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._stop_event), name="AutoSync"
        )
        logger.info("AutoSync started (interval %.0fs)", self._interval)

    async def stop(self) -> None:
        """Stop the loop and wait for in-flight passes to finish."""
        if self._remove_listener:
            self._remove_listener()
            self._remove_listener = None
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        if self._triggered:
            await asyncio.gather(*self._triggered, return_exceptions=True)
        logger.info("AutoSync stopped")

    def _on_connectivity_change(self, online: bool) -> None:
        if not online:
            self._synchronizer.mark_offline()
            return
        logger.info("Back online, pushing pending changes")
        task = asyncio.get_running_loop().create_task(self._synchronizer.push_pending())
        self._triggered.add(task)
        task.add_done_callback(self._triggered.discard)

    async def _run(self, stop_event: asyncio.Event) -> None:
        await self._synchronizer.full_sync()
        while not stop_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            if stop_event.is_set():
                break
            await self._synchronizer.push_pending()

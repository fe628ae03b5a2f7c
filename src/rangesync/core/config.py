"""Shared configuration classes for rangesync.

This module defines configuration classes used by both client and server components.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RemoteConfig:
    """Configuration for connecting to the remote document store.

    Used by both the HTTP client (DocumentClient) and the WebSocket
    snapshot source to ensure consistent connection settings.

    Attributes:
        server_url: Base URL of the server (e.g., "https://ranges.example.com").
        token: Bearer token identifying the user.
        timeout: Request/connection timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def ws_url(self) -> str:
        """Get WebSocket URL for snapshot subscriptions.

        Returns:
            WebSocket URL with token in path.
        """
        url = self.server_url
        if url.startswith("https://"):
            url = "wss://" + url[8:]
        elif url.startswith("http://"):
            url = "ws://" + url[7:]
        return f"{url}/ws/snapshots/{self.token}"

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS/WSS."""
        return self.server_url.startswith("https://")


@dataclass
class SyncSettings:
    """Timing knobs for the synchronizer and the link protocol.

    Attributes:
        auto_sync_interval: Seconds between background outbox drains.
        connectivity_ttl: Seconds a connectivity probe result stays cached.
        link_cache_ttl: Seconds a link version check stays cached.
        update_batch_size: Number of link checks issued concurrently.
    """

    auto_sync_interval: float = 30.0
    connectivity_ttl: float = 5.0
    link_cache_ttl: float = 300.0
    update_batch_size: int = 10

"""Tests for core configuration classes."""

from __future__ import annotations

from rangesync.core.config import RemoteConfig, SyncSettings


class TestRemoteConfig:
    """Tests for RemoteConfig class."""

    def test_init_basic(self) -> None:
        """Should initialize with required fields."""
        config = RemoteConfig(server_url="https://example.com", token="test-token")
        assert config.server_url == "https://example.com"
        assert config.token == "test-token"
        assert config.timeout == 30.0
        assert config.verify_ssl is True

    def test_url_trailing_slash_removed(self) -> None:
        """Should strip trailing slash from server URL."""
        config = RemoteConfig(server_url="https://example.com/", token="t")
        assert config.server_url == "https://example.com"

    def test_ws_url_https(self) -> None:
        """Should use wss for https servers."""
        config = RemoteConfig(server_url="https://example.com", token="abc")
        assert config.ws_url == "wss://example.com/ws/snapshots/abc"
        assert config.is_secure

    def test_ws_url_http(self) -> None:
        """Should use ws for http servers."""
        config = RemoteConfig(server_url="http://localhost:8000", token="abc")
        assert config.ws_url == "ws://localhost:8000/ws/snapshots/abc"
        assert not config.is_secure


class TestSyncSettings:
    """Tests for SyncSettings defaults."""

    def test_defaults(self) -> None:
        """Defaults match the documented timings."""
        settings = SyncSettings()
        assert settings.link_cache_ttl == 300.0
        assert settings.update_batch_size == 10
        assert settings.auto_sync_interval > 0

"""Tests for CLI commands - configure, status, sync, server create-token."""

from __future__ import annotations

import json
import re
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from rangesync.client.cli import cli
from rangesync.server.database import Database


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the CLI at a temporary config directory."""
    config = tmp_path / ".rangesync"
    monkeypatch.setenv("RANGESYNC_CONFIG_DIR", str(config))
    return config


def write_config(config_dir: Path) -> None:
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "config.json").write_text(
        json.dumps({
            "server_url": "http://test",
            "auth_token": "token123",
            "user_id": "alice",
            "display_name": "Alice",
        })
    )


class TestConfigureCommand:
    """Tests for 'rangesync configure'."""

    def test_configure_saves_config(
        self, runner: CliRunner, config_dir: Path, httpx_mock  # type: ignore[no-untyped-def]
    ) -> None:
        """Configure should store the server, token and user."""
        httpx_mock.add_response(url="http://test/health", json={"status": "ok"})

        result = runner.invoke(
            cli,
            ["configure", "--server", "http://test/", "--token", "token123", "--user-id", "alice"],
        )

        assert result.exit_code == 0
        config = json.loads((config_dir / "config.json").read_text())
        assert config == {
            "server_url": "http://test",
            "auth_token": "token123",
            "user_id": "alice",
            "display_name": "alice",
        }

    def test_configure_warns_when_unreachable(
        self, runner: CliRunner, config_dir: Path, httpx_mock  # type: ignore[no-untyped-def]
    ) -> None:
        """Configure should still save when the server cannot be reached."""
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))

        result = runner.invoke(
            cli,
            [
                "configure",
                "--server",
                "http://test",
                "--token",
                "token123",
                "--user-id",
                "alice",
                "--name",
                "Alice",
            ],
        )

        assert result.exit_code == 0
        assert "Could not reach server" in result.output
        assert json.loads((config_dir / "config.json").read_text())["display_name"] == "Alice"


class TestStatusCommand:
    """Tests for 'rangesync status'."""

    def test_status_requires_config(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 1
        assert "Not configured" in result.output

    def test_status_shows_pending(
        self, runner: CliRunner, config_dir: Path, httpx_mock  # type: ignore[no-untyped-def]
    ) -> None:
        write_config(config_dir)
        httpx_mock.add_response(url="http://test/health", json={"status": "ok"})

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "http://test (online)" in result.output
        assert "Alice (alice)" in result.output
        assert "Pending:    0" in result.output
        assert "Last pull:  never" in result.output


class TestSyncCommand:
    """Tests for 'rangesync sync' argument handling."""

    def test_push_and_pull_only_are_exclusive(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["sync", "--push-only", "--pull-only"])

        assert result.exit_code == 1
        assert "mutually exclusive" in result.output

    def test_sync_requires_config(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["sync"])

        assert result.exit_code == 1
        assert "Not configured" in result.output

    def test_links_require_config(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["links", "list"])

        assert result.exit_code == 1


class TestServerCommands:
    """Tests for 'rangesync server'."""

    def test_create_token(self, runner: CliRunner, tmp_path: Path) -> None:
        db_path = tmp_path / "server.db"

        result = runner.invoke(
            cli, ["server", "create-token", "alice", "--name", "Alice", "--db-path", str(db_path)]
        )

        assert result.exit_code == 0
        match = re.search(r"Token for alice: (rs_\S+)", result.output)
        assert match is not None

        db = Database(db_path)
        try:
            token = db.validate_token(match.group(1))
            assert token is not None
            assert token.user_id == "alice"
            user = db.get_user("alice")
            assert user is not None
            assert user.display_name == "Alice"
        finally:
            db.close()

    def test_create_token_with_expiry(self, runner: CliRunner, tmp_path: Path) -> None:
        db_path = tmp_path / "server.db"

        result = runner.invoke(
            cli, ["server", "create-token", "bob", "--expires-days", "7", "--db-path", str(db_path)]
        )

        assert result.exit_code == 0
        assert "cannot be shown again" in result.output

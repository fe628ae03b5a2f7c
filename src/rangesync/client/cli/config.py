"""Configuration utilities for the rangesync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from rangesync.client.context import ClientContext


def get_config_dir() -> Path:
    """Get the configuration directory for rangesync.

    Returns:
        Path to ~/.rangesync, or RANGESYNC_CONFIG_DIR if set.
    """
    override = os.environ.get("RANGESYNC_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".rangesync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_state_db_path() -> Path:
    """Get the path to the local state database."""
    return get_config_dir() / "state.db"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def require_config() -> dict[str, str]:
    """Load the config, exiting with an error if the client is not configured."""
    config = load_config()
    if not config.get("server_url") or not config.get("auth_token") or not config.get("user_id"):
        click.echo("Error: Not configured. Run 'rangesync configure' first.", err=True)
        sys.exit(1)
    return config


def build_context(config: dict[str, str]) -> ClientContext:
    """Create a ClientContext for the configured user."""
    from rangesync.client.context import ClientContext
    from rangesync.client.identity import CurrentUser, StaticIdentity
    from rangesync.core.config import RemoteConfig

    identity = StaticIdentity(
        CurrentUser(config["user_id"], config.get("display_name") or config["user_id"])
    )
    remote_config = RemoteConfig(server_url=config["server_url"], token=config["auth_token"])
    return ClientContext(remote_config, get_state_db_path(), identity)

"""Server commands for the rangesync CLI.

Commands:
- server run: Start the document server
- server create-token: Issue an auth token for a user
"""

from __future__ import annotations

import os
from pathlib import Path

import click


@click.group()
def server() -> None:
    """Server administration commands."""


@server.command("run")
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port.")
@click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=lambda: os.environ.get("RANGESYNC_DB_PATH", "rangesync.db"),
    help="Path to the server database.",
)
@click.option(
    "--log-path",
    type=click.Path(path_type=Path),
    default=lambda: os.environ.get("RANGESYNC_LOG_PATH", "rangesync-server.log"),
    help="Path to the server log file.",
)
def run(host: str, port: int, db_path: Path, log_path: Path) -> None:
    """Start the document server."""
    import uvicorn

    from rangesync.server.app import create_app, setup_logging
    from rangesync.server.database import Database

    setup_logging(log_path)
    app = create_app(Database(db_path))
    uvicorn.run(app, host=host, port=port)


@server.command("create-token")
@click.argument("user_id")
@click.option("--name", "display_name", default=None, help="Display name for a new user.")
@click.option(
    "--expires-days",
    type=int,
    default=None,
    help="Token lifetime in days (no expiry by default).",
)
@click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=lambda: os.environ.get("RANGESYNC_DB_PATH", "rangesync.db"),
    help="Path to the server database.",
)
def create_token(
    user_id: str,
    display_name: str | None,
    expires_days: int | None,
    db_path: Path,
) -> None:
    """Issue an auth token for USER_ID (creating the user if needed)."""
    from datetime import timedelta

    from rangesync.server.database import Database

    db = Database(db_path)
    try:
        db.create_user(user_id, display_name)
        expires_in = timedelta(days=expires_days) if expires_days else None
        raw_token, _token = db.create_token(user_id, expires_in=expires_in)
    finally:
        db.close()

    click.echo(f"Token for {user_id}: {raw_token}")
    click.echo("Keep it secret; it cannot be shown again.")

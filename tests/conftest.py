"""Shared fixtures: an in-process document server and clients talking to it.

Clients reach the FastAPI app through httpx.ASGITransport, so the real
routes, database and token checks run without opening a socket.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from rangesync.client.context import ClientContext
from rangesync.client.identity import CurrentUser, StaticIdentity
from rangesync.core.config import RemoteConfig
from rangesync.server.app import create_app
from rangesync.server.database import Database

SERVER_URL = "http://testserver"


@pytest.fixture
def server_db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create an isolated server database."""
    database = Database(tmp_path / "server.db")
    yield database
    database.close()


@pytest.fixture
def server_app(server_db: Database) -> FastAPI:
    """Create the server app over the test database."""
    return create_app(server_db)


@pytest.fixture
def befriend(server_db: Database) -> Callable[[str, str], None]:
    """Make two users friends (both directions)."""

    def make_friends(a: str, b: str) -> None:
        server_db.set_document(f"users/{a}/friends/{b}", {"user_id": b})
        server_db.set_document(f"users/{b}/friends/{a}", {"user_id": a})

    return make_friends


@pytest_asyncio.fixture
async def make_context(
    tmp_path: Path,
    server_app: FastAPI,
    server_db: Database,
) -> AsyncGenerator[Callable[..., ClientContext], None]:
    """Factory for client contexts signed in as a given user."""
    contexts: list[ClientContext] = []

    def make(user_id: str, display_name: str | None = None) -> ClientContext:
        raw_token, _ = server_db.create_token(user_id)
        ctx = ClientContext(
            RemoteConfig(server_url=SERVER_URL, token=raw_token),
            tmp_path / f"{user_id}-{len(contexts)}.db",
            StaticIdentity(CurrentUser(user_id, display_name or user_id.title())),
            transport=httpx.ASGITransport(app=server_app),
        )
        ctx.init()
        contexts.append(ctx)
        return ctx

    yield make

    for ctx in contexts:
        await ctx.close()


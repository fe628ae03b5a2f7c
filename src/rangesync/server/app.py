"""FastAPI application for the rangesync document server.

This module creates and configures the FastAPI application with:
- REST API for path-addressed documents
- WebSocket snapshot subscriptions

Usage:
    uvicorn rangesync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from rangesync.server.api.router import router as api_router
from rangesync.server.database import Database
from rangesync.server.ws import SnapshotHub, set_hub

# Configuration from environment variables with defaults
DB_PATH = Path(os.environ.get("RANGESYNC_DB_PATH", "rangesync.db"))
LOG_PATH = Path(os.environ.get("RANGESYNC_LOG_PATH", "rangesync-server.log"))

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path) -> None:
    """Configure logging to output to both file and stdout.

    Args:
        log_path: Path to the log file.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for rangesync
    root_logger = logging.getLogger("rangesync")
    root_logger.setLevel(logging.INFO)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


def create_app(db: Database) -> FastAPI:
    """Create FastAPI application with a custom database.

    This is primarily used for testing with isolated databases.

    Args:
        db: Database instance.

    Returns:
        Configured FastAPI application.
    """
    hub = SnapshotHub()
    set_hub(hub)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("=" * 60)
        logger.info("RangeSync Server Starting")
        logger.info("=" * 60)
        logger.info("  Database: %s", db.path)
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("RangeSync Server shutting down")
        await hub.close_all()

    application = FastAPI(
        title="RangeSync Server",
        description="Document store for offline-first range sync",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.state.db = db
    application.state.hub = hub

    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    setup_logging(LOG_PATH)
    return create_app(db=Database(DB_PATH))

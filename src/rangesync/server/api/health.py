"""Health check API route.

Clients use it as their connectivity probe, so it needs no token.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from rangesync.server.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Report server health and the number of open snapshot streams."""
    hub = request.app.state.hub
    return HealthResponse(status="ok", snapshot_connections=hub.connection_count)

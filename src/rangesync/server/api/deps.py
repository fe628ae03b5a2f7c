"""FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from rangesync.server.database import Database
from rangesync.server.models import Token

# Security scheme
security = HTTPBearer(auto_error=False)


def get_db(request: Request) -> Database:
    """Get database from app state."""
    db: Database = request.app.state.db
    return db


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Token:
    """Validate the bearer token and return it.

    Raises:
        HTTPException: 401 if the token is missing, unknown, revoked or expired.
    """
    if credentials is None:
        raise _unauthorized("Missing authentication credentials")
    token = get_db(request).validate_token(credentials.credentials)
    if token is None:
        raise _unauthorized("Invalid or expired token")
    return token


def get_current_user_id(token: Token = Depends(get_current_token)) -> str:
    """Id of the user the request's token belongs to."""
    return token.user_id

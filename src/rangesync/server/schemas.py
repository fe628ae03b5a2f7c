"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from rangesync.server.models import StoredDocument

# === Document schemas ===


class DocumentCreateRequest(BaseModel):
    """Request body for document creation.

    The server generates an id when none is given.
    """

    id: str | None = None
    data: dict[str, Any]


class DocumentSetRequest(BaseModel):
    """Request body for creating or overwriting a document."""

    data: dict[str, Any]
    merge: bool = False


class DocumentUpdateRequest(BaseModel):
    """Request body for a partial update."""

    data: dict[str, Any]


class DocumentResponse(BaseModel):
    """Document in responses."""

    id: str
    path: str
    data: dict[str, Any]
    created_at: str
    updated_at: str


# === Health schemas ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    snapshot_connections: int = 0


# === Converters ===


def document_to_response(document: StoredDocument) -> DocumentResponse:
    """Convert StoredDocument model to response schema."""
    return DocumentResponse(
        id=document.doc_id,
        path=document.path,
        data=document.data,
        created_at=document.created_at.isoformat(),
        updated_at=document.updated_at.isoformat(),
    )

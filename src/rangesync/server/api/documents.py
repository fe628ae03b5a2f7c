"""Document API routes.

Paths alternate collection and document segments. GET on a collection
path (odd segment count) lists it; GET on a document path reads one
document. Writes notify snapshot subscribers of the changed collection.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status

from rangesync.server.api.deps import get_current_user_id, get_db
from rangesync.server.database import (
    Database,
    DocumentExistsError,
    DocumentNotFoundError,
    split_path,
)
from rangesync.server.schemas import (
    DocumentCreateRequest,
    DocumentResponse,
    DocumentSetRequest,
    DocumentUpdateRequest,
    document_to_response,
)
from rangesync.server.ws import get_hub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])


def _segments(path: str, *, collection: bool) -> list[str]:
    """Split a path, rejecting malformed or wrong-kind paths with 400."""
    try:
        segments = split_path(path)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    if (len(segments) % 2 == 1) != collection:
        kind = "collection" if collection else "document"
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Not a {kind} path: {path}",
        )
    return segments


def _parse_filters(raw: str | None) -> list[tuple[str, str, Any]]:
    if not raw:
        return []
    try:
        items = json.loads(raw)
        return [(str(field), str(op), value) for field, op, value in items]
    except (ValueError, TypeError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="filters must be a JSON list of [field, op, value]",
        ) from e


@router.get("/{path:path}", response_model=None)
def read_documents(
    path: str,
    filters: str | None = None,
    order_by: str | None = None,
    descending: bool = False,
    limit: int | None = None,
    db: Database = Depends(get_db),
    _user_id: str = Depends(get_current_user_id),
) -> DocumentResponse | list[DocumentResponse]:
    """Read one document, or query a collection."""
    try:
        segments = split_path(path)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    if len(segments) % 2 == 0:
        document = db.get_document(path)
        if document is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Document not found: {path}",
            )
        return document_to_response(document)

    try:
        documents = db.list_documents(
            path,
            filters=_parse_filters(filters),
            order_by=order_by,
            descending=descending,
            limit=limit,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return [document_to_response(d) for d in documents]


@router.post(
    "/{collection:path}",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_document(
    collection: str,
    request: DocumentCreateRequest,
    db: Database = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> DocumentResponse:
    """Create a document; 409 if the id is taken."""
    _segments(collection, collection=True)
    try:
        document = db.create_document(collection, request.data, doc_id=request.id)
    except DocumentExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    logger.debug("Created %s for %s", document.path, user_id)
    await get_hub().notify_collection_changed(db, document.collection)
    return document_to_response(document)


@router.put("/{path:path}", response_model=DocumentResponse)
async def set_document(
    path: str,
    request: DocumentSetRequest,
    db: Database = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> DocumentResponse:
    """Create or overwrite a document."""
    _segments(path, collection=False)
    document = db.set_document(path, request.data, merge=request.merge)
    logger.debug("Set %s for %s", document.path, user_id)
    await get_hub().notify_collection_changed(db, document.collection)
    return document_to_response(document)


@router.patch("/{path:path}", response_model=DocumentResponse)
async def update_document(
    path: str,
    request: DocumentUpdateRequest,
    db: Database = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> DocumentResponse:
    """Update fields of an existing document; 404 if it is missing."""
    _segments(path, collection=False)
    try:
        document = db.update_document(path, request.data)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    logger.debug("Updated %s for %s", document.path, user_id)
    await get_hub().notify_collection_changed(db, document.collection)
    return document_to_response(document)


@router.delete("/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    path: str,
    db: Database = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Response:
    """Delete a document; 404 if it is missing."""
    segments = _segments(path, collection=False)
    if not db.delete_document(path):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document not found: {path}",
        )
    logger.info("Deleted document %s for %s", path, user_id)
    await get_hub().notify_collection_changed(db, "/".join(segments[:-1]))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

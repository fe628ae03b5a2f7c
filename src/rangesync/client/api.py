"""HTTP client for the remote document store.

This module provides:
- DocumentClient: async HTTP client for document CRUD and queries
- Document: a stored document with its server timestamps
- APIError hierarchy used to classify remote failures

Document paths follow a collection/document alternation: a collection
path has an odd number of segments ("users/u1/players") and a document
path an even number ("users/u1/players/p1").
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from rangesync.core.config import RemoteConfig

logger = logging.getLogger(__name__)

# Filter operators understood by the server
FILTER_OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in")

Filter = tuple[str, str, Any]


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class ConflictError(APIError):
    """Document already exists."""


class NotFoundError(APIError):
    """Document not found (never created, or already deleted)."""


class RemoteUnavailableError(APIError):
    """The server could not be reached."""


@dataclass
class Document:
    """A document as returned by the server."""

    id: str
    path: str
    data: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        """Create from API response dictionary."""
        return cls(
            id=data["id"],
            path=data["path"],
            data=data["data"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


def _check_path(path: str, *, collection: bool) -> str:
    path = path.strip("/")
    segments = path.split("/")
    if not path or any(not s for s in segments):
        raise ValueError(f"Invalid path: {path!r}")
    if (len(segments) % 2 == 1) != collection:
        kind = "collection" if collection else "document"
        raise ValueError(f"Not a {kind} path: {path!r}")
    return path


class DocumentClient:
    """Async HTTP client for the document store API."""

    def __init__(
        self,
        config: RemoteConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the document client.

        Args:
            config: Server URL, token, timeout and SSL settings.
            transport: Optional transport (used to talk to an in-process app).
        """
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={"Authorization": f"Bearer {config.token}"},
            transport=transport,
        )

    @property
    def config(self) -> RemoteConfig:
        return self._config

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> DocumentClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 401:
            raise AuthenticationError("Invalid or expired token", 401)
        if response.status_code == 404:
            raise NotFoundError("Document not found", 404)
        if response.status_code == 409:
            detail = response.json().get("detail", "Conflict")
            raise ConflictError(detail, 409)
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", "Unknown error")
            except ValueError:
                detail = response.text or "Unknown error"
            raise APIError(str(detail), response.status_code)
        return response

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise RemoteUnavailableError(f"Server unreachable: {e}") from e
        return self._handle_response(response)

    # === Health check ===

    async def health_check(self) -> bool:
        """Check if the server is healthy.

        Returns:
            True if server is healthy.
        """
        try:
            response = await self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === Document operations ===

    async def get(self, path: str) -> Document:
        """Get a document.

        Raises:
            NotFoundError: If the document does not exist.
        """
        path = _check_path(path, collection=False)
        response = await self._request("GET", f"/api/documents/{path}")
        return Document.from_dict(response.json())

    async def query(
        self,
        collection: str,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        """List documents of a collection.

        Args:
            collection: Collection path.
            filters: (field, operator, value) triples, all of which must match.
            order_by: Field to sort on.
            descending: Sort direction.
            limit: Maximum number of documents.

        Returns:
            Matching documents.
        """
        collection = _check_path(collection, collection=True)
        params: dict[str, str] = {}
        if filters:
            for _field, op, _value in filters:
                if op not in FILTER_OPERATORS:
                    raise ValueError(f"Unsupported filter operator: {op}")
            params["filters"] = json.dumps([list(f) for f in filters])
        if order_by:
            params["order_by"] = order_by
            params["descending"] = "true" if descending else "false"
        if limit is not None:
            params["limit"] = str(limit)

        response = await self._request("GET", f"/api/documents/{collection}", params=params)
        return [Document.from_dict(d) for d in response.json()]

    async def create(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: str | None = None,
    ) -> Document:
        """Create a document.

        Args:
            collection: Collection path.
            data: Document fields.
            doc_id: Document id (generated by the server if omitted).

        Raises:
            ConflictError: If a document with this id already exists.
        """
        collection = _check_path(collection, collection=True)
        body: dict[str, Any] = {"data": data}
        if doc_id is not None:
            body["id"] = doc_id
        response = await self._request("POST", f"/api/documents/{collection}", json=body)
        return Document.from_dict(response.json())

    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> Document:
        """Create or overwrite a document.

        Args:
            path: Document path.
            data: Document fields.
            merge: Merge fields into an existing document instead of replacing it.
        """
        path = _check_path(path, collection=False)
        response = await self._request(
            "PUT", f"/api/documents/{path}", json={"data": data, "merge": merge}
        )
        return Document.from_dict(response.json())

    async def update(self, path: str, fields: dict[str, Any]) -> Document:
        """Update some fields of an existing document (last write wins).

        Raises:
            NotFoundError: If the document does not exist.
        """
        path = _check_path(path, collection=False)
        response = await self._request("PATCH", f"/api/documents/{path}", json={"data": fields})
        return Document.from_dict(response.json())

    async def delete(self, path: str) -> None:
        """Delete a document.

        Raises:
            NotFoundError: If the document does not exist.
        """
        path = _check_path(path, collection=False)
        await self._request("DELETE", f"/api/documents/{path}")

    async def exists(self, path: str) -> bool:
        """Check whether a document exists."""
        try:
            await self.get(path)
        except NotFoundError:
            return False
        return True

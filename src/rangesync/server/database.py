"""Server database using SQLAlchemy with SQLite.

This module provides:
- User and token-based authentication
- Path-addressed JSON document storage
- Collection queries with field filters, ordering and limits
"""

from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from rangesync.server.models import Base, StoredDocument, Token, User

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Engine

FILTER_OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in")


def hash_token(token: str) -> str:
    """Hash a token using SHA-256.

    Args:
        token: Raw token string.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    return hashlib.sha256(token.encode()).hexdigest()


class DocumentExistsError(Exception):
    """Raised when creating a document whose path is already taken."""


class DocumentNotFoundError(Exception):
    """Raised when updating or deleting a missing document."""


def split_path(path: str) -> list[str]:
    """Split a document or collection path into segments.

    Raises:
        ValueError: If the path is empty or has empty segments.
    """
    segments = path.strip("/").split("/")
    if not segments or any(not s for s in segments):
        raise ValueError(f"Invalid path: {path!r}")
    return segments


def is_collection_path(path: str) -> bool:
    return len(split_path(path)) % 2 == 1


def matches(data: dict[str, Any], field: str, op: str, value: Any) -> bool:
    """Check one (field, op, value) filter against a document.

    Missing fields never match. Values that cannot be compared do not match.
    """
    if field not in data:
        return False
    actual = data[field]
    try:
        if op == "==":
            return bool(actual == value)
        if op == "!=":
            return bool(actual != value)
        if op == "<":
            return bool(actual < value)
        if op == "<=":
            return bool(actual <= value)
        if op == ">":
            return bool(actual > value)
        if op == ">=":
            return bool(actual >= value)
        if op == "in":
            return actual in value
    except TypeError:
        return False
    raise ValueError(f"Unsupported filter operator: {op}")


class Database:
    """SQLAlchemy database for users, tokens and documents.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Create engine with check_same_thread=False for multi-threaded access
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        # Enable WAL mode
        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")

        # Create tables if they don't exist
        Base.metadata.create_all(self._engine)

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    # === User operations ===

    def create_user(self, user_id: str, display_name: str | None = None) -> User:
        """Create a user, or return the existing one.

        Args:
            user_id: Unique user id.
            display_name: Name shown to friends (defaults to the id).
        """
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                user = User(id=user_id, display_name=display_name or user_id)
                session.add(user)
                session.commit()
                session.refresh(user)
            session.expunge(user)
            return user

    def get_user(self, user_id: str) -> User | None:
        with self._session() as session:
            user = session.get(User, user_id)
            if user:
                session.expunge(user)
            return user

    # === Token operations ===

    def create_token(
        self,
        user_id: str,
        expires_in: timedelta | None = None,
    ) -> tuple[str, Token]:
        """Create a new authentication token, creating the user if needed.

        Args:
            user_id: User to associate with the token.
            expires_in: Optional expiration duration.

        Returns:
            Tuple of (raw_token, Token object).
        """
        self.create_user(user_id)
        raw_token = "rs_" + secrets.token_urlsafe(32)
        token_hash = hash_token(raw_token)
        now = datetime.now(UTC)
        expires_at = (now + expires_in) if expires_in else None

        with self._session() as session:
            token = Token(
                user_id=user_id,
                token_hash=token_hash,
                created_at=now,
                expires_at=expires_at,
            )
            session.add(token)
            session.commit()
            session.refresh(token)
            session.expunge(token)
            return raw_token, token

    def validate_token(self, raw_token: str) -> Token | None:
        """Validate a token and return it if valid.

        Args:
            raw_token: Raw token string.

        Returns:
            Token if valid, None otherwise.
        """
        token_hash = hash_token(raw_token)
        with self._session() as session:
            stmt = select(Token).where(Token.token_hash == token_hash, Token.revoked == False)  # noqa: E712
            token = session.execute(stmt).scalar_one_or_none()

            if token is None:
                return None

            # Check expiration (handle both naive and aware datetimes)
            if token.expires_at:
                now = datetime.now(UTC)
                expires_at = token.expires_at
                # If expires_at is naive, assume UTC
                if expires_at.tzinfo is None:
                    expires_at = expires_at.replace(tzinfo=UTC)
                if expires_at < now:
                    return None

            session.expunge(token)
            return token

    def revoke_token(self, token_id: int) -> None:
        """Revoke a token.

        Args:
            token_id: Token ID to revoke.
        """
        with self._session() as session:
            token = session.get(Token, token_id)
            if token:
                token.revoked = True
                session.commit()

    # === Document operations ===

    def get_document(self, path: str) -> StoredDocument | None:
        """Get a document by path."""
        path = "/".join(split_path(path))
        with self._session() as session:
            document = session.get(StoredDocument, path)
            if document:
                session.expunge(document)
            return document

    def list_documents(
        self,
        collection: str,
        filters: Sequence[tuple[str, str, Any]] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[StoredDocument]:
        """List the documents of one collection.

        Args:
            collection: Collection path.
            filters: (field, op, value) triples, all of which must match.
            order_by: Data field to sort on (documents missing it sort first).
            descending: Sort direction.
            limit: Maximum number of documents returned.

        Returns:
            Matching documents, ordered by order_by or by path.
        """
        collection = "/".join(split_path(collection))
        for _field, op, _value in filters:
            if op not in FILTER_OPERATORS:
                raise ValueError(f"Unsupported filter operator: {op}")

        with self._session() as session:
            stmt = (
                select(StoredDocument)
                .where(StoredDocument.collection == collection)
                .order_by(StoredDocument.path)
            )
            documents = list(session.execute(stmt).scalars())
            for document in documents:
                session.expunge(document)

        documents = [
            d for d in documents if all(matches(d.data, f, op, v) for f, op, v in filters)
        ]
        if order_by:
            documents.sort(
                key=lambda d: (order_by in d.data, d.data.get(order_by)),
                reverse=descending,
            )
        if limit is not None:
            documents = documents[:limit]
        return documents

    def create_document(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: str | None = None,
    ) -> StoredDocument:
        """Create a document in a collection.

        Raises:
            DocumentExistsError: If a document with this id already exists.
        """
        collection = "/".join(split_path(collection))
        doc_id = doc_id or uuid.uuid4().hex
        path = f"{collection}/{doc_id}"
        now = datetime.now(UTC)
        with self._session() as session:
            if session.get(StoredDocument, path) is not None:
                raise DocumentExistsError(f"Document already exists: {path}")
            document = StoredDocument(
                path=path,
                collection=collection,
                doc_id=doc_id,
                data=dict(data),
                created_at=now,
                updated_at=now,
            )
            session.add(document)
            session.commit()
            session.refresh(document)
            session.expunge(document)
            return document

    def set_document(self, path: str, data: dict[str, Any], merge: bool = False) -> StoredDocument:
        """Create or overwrite a document.

        Args:
            path: Document path.
            data: New fields.
            merge: Merge into the existing fields instead of replacing them.
        """
        segments = split_path(path)
        path = "/".join(segments)
        now = datetime.now(UTC)
        with self._session() as session:
            document = session.get(StoredDocument, path)
            if document is None:
                document = StoredDocument(
                    path=path,
                    collection="/".join(segments[:-1]),
                    doc_id=segments[-1],
                    data=dict(data),
                    created_at=now,
                    updated_at=now,
                )
                session.add(document)
            else:
                document.data = {**document.data, **data} if merge else dict(data)
                document.updated_at = now
            session.commit()
            session.refresh(document)
            session.expunge(document)
            return document

    def update_document(self, path: str, fields: dict[str, Any]) -> StoredDocument:
        """Update some fields of an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        path = "/".join(split_path(path))
        with self._session() as session:
            document = session.get(StoredDocument, path)
            if document is None:
                raise DocumentNotFoundError(f"Document not found: {path}")
            document.data = {**document.data, **fields}
            document.updated_at = datetime.now(UTC)
            session.commit()
            session.refresh(document)
            session.expunge(document)
            return document

    def delete_document(self, path: str) -> bool:
        """Delete a document.

        Returns:
            True if a document was deleted.
        """
        path = "/".join(split_path(path))
        with self._session() as session:
            document = session.get(StoredDocument, path)
            if document is None:
                return False
            session.delete(document)
            session.commit()
            return True

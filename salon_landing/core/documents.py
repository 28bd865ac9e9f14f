"""Shared multi-tenant document store backed by the ``documents`` table.

Documents are JSON objects addressed by slash-separated paths with
alternating collection / document segments::

    tenants/bellaspa                    document
    tenants/bellaspa/staff              collection
    tenants/bellaspa/staff/Xk2f...      document

Only the operations the provisioning pipeline needs are offered: keyed
get / exists / set / update / delete, create-if-absent, add with a
generated id, equality queries inside one collection, prefix deletes and an
atomic batch of at most ``MAX_BATCH_WRITES`` writes.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from salon_landing.core.errors import (
    DocumentExistsError,
    DocumentNotFoundError,
    ExternalServiceError,
)
from salon_landing.models.base import new_document_id, utcnow
from salon_landing.models.document import StoredDocument

logger = logging.getLogger(__name__)

MAX_BATCH_WRITES = 10


def _segments(path: str) -> list[str]:
    parts = path.strip("/").split("/")
    if not all(parts):
        raise ValueError(f"Invalid path '{path}'")
    return parts


def document_path(*parts: str) -> str:
    path = "/".join(parts)
    if len(_segments(path)) % 2 != 0:
        raise ValueError(f"'{path}' is not a document path")
    return path


def collection_of(path: str) -> str:
    """Collection path a document path belongs to."""
    parts = _segments(path)
    if len(parts) % 2 != 0:
        raise ValueError(f"'{path}' is not a document path")
    return "/".join(parts[:-1])


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, default=str)


class WriteBatch:
    """Buffered writes committed together in a single transaction."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._writes: list[tuple[str, dict[str, Any] | None]] = []
        self._committed = False

    def __len__(self) -> int:
        return len(self._writes)

    def set(self, path: str, data: dict[str, Any]) -> WriteBatch:
        collection_of(path)  # validates
        self._append(path, data)
        return self

    def delete(self, path: str) -> WriteBatch:
        collection_of(path)
        self._append(path, None)
        return self

    def _append(self, path: str, data: dict[str, Any] | None) -> None:
        if self._committed:
            raise RuntimeError("Batch already committed")
        if len(self._writes) >= MAX_BATCH_WRITES:
            raise ValueError(f"A batch holds at most {MAX_BATCH_WRITES} writes")
        self._writes.append((path, data))

    async def commit(self) -> None:
        if self._committed:
            raise RuntimeError("Batch already committed")
        async with self._store._session() as session:
            for path, data in self._writes:
                if data is None:
                    await session.execute(
                        delete(StoredDocument).where(StoredDocument.path == path)
                    )
                else:
                    await self._store._upsert(session, path, data)
            await session.commit()
        self._committed = True
        logger.debug("Committed batch of %d writes", len(self._writes))


class DocumentStore:
    """Async document API over a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as exc:
                await session.rollback()
                raise ExternalServiceError(f"Document store error: {exc}") from exc

    async def _upsert(self, session: AsyncSession, path: str, data: dict[str, Any]) -> None:
        existing = await session.get(StoredDocument, path)
        if existing is None:
            session.add(StoredDocument(path=path, collection=collection_of(path), data=_dump(data)))
        else:
            existing.data = _dump(data)
            existing.updated_at = utcnow()
            session.add(existing)

    # ── Reads ────────────────────────────────────────────────

    async def get(self, path: str) -> dict[str, Any] | None:
        async with self._session() as session:
            doc = await session.get(StoredDocument, path)
            return json.loads(doc.data) if doc is not None else None

    async def exists(self, path: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(StoredDocument.path).where(StoredDocument.path == path)
            )
            return result.first() is not None

    async def list(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        """All documents directly inside ``collection`` as (id, data), oldest first."""
        async with self._session() as session:
            stmt = (
                select(StoredDocument)
                .where(StoredDocument.collection == collection)
                .order_by(StoredDocument.created_at.asc())  # type: ignore[union-attr]
            )
            result = await session.execute(stmt)
            return [
                (doc.path.rsplit("/", 1)[-1], json.loads(doc.data))
                for doc in result.scalars().all()
            ]

    async def where(
        self, collection: str, field: str, value: Any
    ) -> list[tuple[str, dict[str, Any]]]:
        """Equality query on a top-level field."""
        return [
            (doc_id, data)
            for doc_id, data in await self.list(collection)
            if data.get(field) == value
        ]

    # ── Writes ───────────────────────────────────────────────

    async def set(self, path: str, data: dict[str, Any]) -> None:
        async with self._session() as session:
            await self._upsert(session, path, data)
            await session.commit()

    async def create(self, path: str, data: dict[str, Any]) -> None:
        """Create-if-absent. Raises DocumentExistsError when the path is taken."""
        async with self._session() as session:
            session.add(
                StoredDocument(path=path, collection=collection_of(path), data=_dump(data))
            )
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DocumentExistsError(path) from exc

    async def update(self, path: str, fields: dict[str, Any]) -> None:
        """Merge ``fields`` into an existing document."""
        async with self._session() as session:
            doc = await session.get(StoredDocument, path)
            if doc is None:
                raise DocumentNotFoundError(path)
            merged = json.loads(doc.data)
            merged.update(fields)
            doc.data = _dump(merged)
            doc.updated_at = utcnow()
            session.add(doc)
            await session.commit()

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Create a document with a generated id and return the id."""
        doc_id = new_document_id()
        path = f"{collection}/{doc_id}"
        collection_of(path)
        async with self._session() as session:
            session.add(StoredDocument(path=path, collection=collection, data=_dump(data)))
            await session.commit()
        return doc_id

    async def delete(self, path: str) -> None:
        async with self._session() as session:
            await session.execute(delete(StoredDocument).where(StoredDocument.path == path))
            await session.commit()

    async def delete_prefix(self, collection: str) -> int:
        """Delete every document in ``collection`` and its nested collections."""
        async with self._session() as session:
            stmt = delete(StoredDocument).where(
                or_(
                    StoredDocument.collection == collection,
                    StoredDocument.collection.startswith(  # type: ignore[union-attr]
                        f"{collection}/", autoescape=True
                    ),
                )
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount or 0

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

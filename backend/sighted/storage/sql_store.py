"""
SightEd Backend — SQL DocumentStore
=====================================

What:  DocumentStore over the `documents` table with async SQLAlchemy.
Who:   Selected when STORAGE_BACKEND=sql. Works with PostgreSQL (asyncpg)
       and SQLite (aiosqlite).
How:   One short-lived session per operation, committed on success and
       rolled back on error. Driver errors are logged with full detail and
       re-raised as StorageError with a generic message.

Ordering:
    Rows come back ordered by (created_at, doc_id). Ordering by a document
    field (e.g. createdAt) happens in Python after loading the collection,
    so the same code path works on every dialect.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from sighted.database import Base, build_engine, build_session_factory
from sighted.exceptions import ConflictError, NotFoundError, StorageError
from sighted.models.document import Document
from sighted.storage.base import DocumentStore, order_documents, strip_id, with_id

logger = logging.getLogger(__name__)


class SQLDocumentStore(DocumentStore):
    """DocumentStore persisted in a relational database."""

    backend_name = "sql"

    def __init__(self, database_url: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        if engine is None:
            if not database_url:
                raise ValueError("SQLDocumentStore needs a database_url or an engine")
            engine = build_engine(database_url)
        self.engine = engine
        self._session_factory = build_session_factory(engine)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Session scope: commit on success, rollback and wrap driver errors."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Storage %s failed: %s", operation, str(e), exc_info=True)
                raise StorageError(context={"operation": operation}) from e
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Creates missing tables; Alembic owns the schema in production."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            logger.error("Could not create tables: %s", str(e))
            raise StorageError(
                message="Could not initialize the database schema",
                context={"operation": "create_tables"},
            ) from e

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        async with self._session("get") as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                return None
            return with_id(row.doc_id, row.data)

    async def _load(self, session: AsyncSession, collection: str) -> List[Document]:
        result = await session.execute(
            select(Document)
            .where(Document.collection == collection)
            .order_by(Document.created_at, Document.doc_id)
        )
        return list(result.scalars().all())

    async def list(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        async with self._session("list") as session:
            rows = await self._load(session, collection)
            documents = [with_id(row.doc_id, row.data) for row in rows]
        return order_documents(documents, order_by, descending, limit, offset)

    async def count(self, collection: str) -> int:
        async with self._session("count") as session:
            result = await session.execute(
                select(func.count()).select_from(Document).where(Document.collection == collection)
            )
            return int(result.scalar() or 0)

    async def find(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        async with self._session("find") as session:
            rows = await self._load(session, collection)
            return [
                with_id(row.doc_id, row.data)
                for row in rows
                if row.data.get(field) == value
            ]

    # ── Writes ────────────────────────────────────────────────────────────

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        body = strip_id(data)
        async with self._session("set") as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                session.add(Document(collection=collection, doc_id=doc_id, data=body))
            else:
                row.data = body
        return with_id(doc_id, body)

    async def create(
        self, collection: str, doc_id: str, data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Inserts a new row; the (collection, doc_id) primary key settles races
        between concurrent creators.
        """
        body = strip_id(data)
        async with self._session("create") as session:
            session.add(Document(collection=collection, doc_id=doc_id, data=body))
            try:
                await session.flush()
            except IntegrityError as e:
                raise ConflictError(context={"collection": collection, "id": doc_id}) from e
        return with_id(doc_id, body)

    async def update(
        self, collection: str, doc_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        async with self._session("update") as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                raise NotFoundError(resource=collection, resource_id=doc_id)
            # New dict so the JSON column registers the change
            merged = {**row.data, **strip_id(changes)}
            row.data = merged
        return with_id(doc_id, merged)

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._session("delete") as session:
            result = await session.execute(
                delete(Document).where(
                    Document.collection == collection,
                    Document.doc_id == doc_id,
                )
            )
            return (result.rowcount or 0) > 0

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def health_check(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Storage health check failed: %s", str(e))
            return False

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("SQL store engine disposed")

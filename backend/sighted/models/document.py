"""
SightEd Backend — Document SQLAlchemy Model
=============================================

What:  ORM model for the `documents` table, the SQL backing of DocumentStore.
How:   Every collection (users, images, contact-submissions) shares one table.
       A row is keyed by (collection, doc_id) and carries the document body
       as JSON. PostgreSQL stores it as JSONB; other dialects use plain JSON.

Query Patterns:
    - get/set/update/delete: primary key lookup on (collection, doc_id)
    - list/count:            WHERE collection = :c, served by idx_documents_collection_created
    - find:                  WHERE collection = :c, field match done on the loaded JSON
"""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import JSON, DateTime, Index, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from sighted.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document(Base):
    """One JSON document inside a named collection."""

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Logical collection name: users, images, contact-submissions",
    )

    doc_id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Document id, unique within its collection",
    )

    data: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        comment="Document body without the id field",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When this row was first written (UTC)",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When this row was last written (UTC)",
    )

    __table_args__ = (
        Index("idx_documents_collection_created", "collection", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Document(collection='{self.collection}', doc_id='{self.doc_id}')>"

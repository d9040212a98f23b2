"""Create documents table

Revision ID: 001
Revises: None
Create Date: 2024-06-01 00:00:00.000000+00:00

What:  Creates the single `documents` table behind the SQL DocumentStore.
       Users, image analyses and contact submissions all live here, keyed by
       (collection, doc_id) with the body stored as JSON (JSONB on PostgreSQL).

Rollback: downgrade() drops the table and every stored document with it.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "documents",
        sa.Column(
            "collection",
            sa.String(64),
            nullable=False,
            comment="Logical collection name: users, images, contact-submissions",
        ),
        sa.Column(
            "doc_id",
            sa.String(64),
            nullable=False,
            comment="Document id, unique within its collection",
        ),
        sa.Column(
            "data",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
            comment="Document body without the id field",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When this row was first written (UTC)",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When this row was last written (UTC)",
        ),
        sa.PrimaryKeyConstraint("collection", "doc_id"),
    )

    # Newest-first listing of one collection (saved gallery, contact inbox)
    op.create_index(
        "idx_documents_collection_created",
        "documents",
        ["collection", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_documents_collection_created", table_name="documents")
    op.drop_table("documents")

"""Initial schema: subject_memory

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- subject_memory (one durable memory document per subject) ---
    op.create_table(
        "subject_memory",
        sa.Column("subject_id", sa.Text, nullable=False),
        sa.Column("document_id", sa.String(64), nullable=False, server_default="current"),
        sa.Column("document", postgresql.JSONB, nullable=False),
        sa.Column("schema_version", sa.Integer, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("subject_id", "document_id", name="pk_subject_memory"),
        sa.CheckConstraint("schema_version >= 1", name="chk_subject_memory_schema_version"),
    )
    op.create_index(
        "idx_subject_memory_updated_at",
        "subject_memory",
        [sa.text("updated_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_subject_memory_updated_at", table_name="subject_memory")
    op.drop_table("subject_memory")

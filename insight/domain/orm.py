"""SQLAlchemy ORM model for the durable memory document.

One row per document path ``subjects/{subject_id}/memory/{document_id}``;
only ``current`` is used today.  The document column holds the full
serialized Memory, so the row is always replaced wholesale.
"""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

CURRENT_DOCUMENT_ID = "current"


class Base(DeclarativeBase):
    pass


class MemoryDocumentModel(Base):
    __tablename__ = "subject_memory"

    # Identity
    subject_id: Mapped[str] = mapped_column(Text, primary_key=True)
    document_id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=CURRENT_DOCUMENT_ID
    )

    # Payload
    document: Mapped[dict] = mapped_column(JSONB, nullable=False)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Temporal
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint("schema_version >= 1", name="chk_subject_memory_schema_version"),
        Index("idx_subject_memory_updated_at", updated_at.desc()),
    )

"""Memory document repository: all DB access for the durable memory store."""

from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from insight.domain.orm import CURRENT_DOCUMENT_ID, MemoryDocumentModel


class MemoryDocumentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(
        self, subject_id: str, document_id: str = CURRENT_DOCUMENT_ID
    ) -> dict[str, Any] | None:
        query = select(MemoryDocumentModel.document).where(
            MemoryDocumentModel.subject_id == subject_id,
            MemoryDocumentModel.document_id == document_id,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def replace(
        self,
        subject_id: str,
        document: dict[str, Any],
        schema_version: int,
        document_id: str = CURRENT_DOCUMENT_ID,
    ) -> None:
        """Insert or overwrite the whole document. No field-level merge."""
        stmt = pg_insert(MemoryDocumentModel).values(
            subject_id=subject_id,
            document_id=document_id,
            document=document,
            schema_version=schema_version,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["subject_id", "document_id"],
            set_={
                "document": stmt.excluded.document,
                "schema_version": stmt.excluded.schema_version,
                "updated_at": func.now(),
            },
        )
        await self.session.execute(stmt)

    async def delete(self, subject_id: str, document_id: str = CURRENT_DOCUMENT_ID) -> bool:
        """Delete the document. Returns False when there was nothing to delete."""
        result = await self.session.execute(
            delete(MemoryDocumentModel).where(
                MemoryDocumentModel.subject_id == subject_id,
                MemoryDocumentModel.document_id == document_id,
            )
        )
        return result.rowcount > 0

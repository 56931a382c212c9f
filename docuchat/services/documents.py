from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..models import Document


def claim_expired(started_at: Optional[datetime], lease_seconds: int, now: Optional[datetime] = None) -> bool:
    """True when nobody holds the ingestion claim, or its holder has outlived the lease."""
    if started_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    return started_at < now - timedelta(seconds=lease_seconds)


class SqlDocumentRepository:
    """Document rows and the status writes used by the ingestion pipeline.

    Every call runs in its own short session and commits immediately, so
    progress is visible to readers while ingestion is still running.
    """

    def __init__(self, session_factory: async_sessionmaker, lease_seconds: Optional[int] = None):
        self.session_factory = session_factory
        self.lease_seconds = settings.INGESTION_LEASE_SECONDS if lease_seconds is None else lease_seconds

    async def get(self, document_id: UUID) -> Optional[Document]:
        async with self.session_factory() as session:
            return await session.get(Document, document_id)

    async def get_for_user(self, document_id: UUID, user_id: UUID) -> Optional[Document]:
        doc = await self.get(document_id)
        return doc if doc is not None and doc.user_id == user_id else None

    async def list_for_user(self, user_id: UUID) -> List[Document]:
        async with self.session_factory() as session:
            res = await session.execute(
                select(Document).where(Document.user_id == user_id).order_by(Document.created_at.desc())
            )
            return list(res.scalars().all())

    async def create(self, **values) -> Document:
        doc = Document(**values)
        async with self.session_factory() as session:
            session.add(doc)
            await session.commit()
            await session.refresh(doc)
        return doc

    async def delete(self, document_id: UUID) -> None:
        # chunks go with it (ON DELETE CASCADE)
        async with self.session_factory() as session:
            await session.execute(delete(Document).where(Document.id == document_id))
            await session.commit()

    async def claim(self, document_id: UUID) -> bool:
        """Mark the document as taken by the caller; False if a live task already has it."""
        now = datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=self.lease_seconds)
        async with self.session_factory() as session:
            res = await session.execute(
                update(Document)
                .where(
                    Document.id == document_id,
                    Document.status == "processing",
                    or_(Document.ingestion_started_at.is_(None), Document.ingestion_started_at < cutoff),
                )
                .values(ingestion_started_at=now)
            )
            await session.commit()
            return res.rowcount == 1

    def is_ingesting(self, doc: Document) -> bool:
        return doc.status == "processing" and not claim_expired(doc.ingestion_started_at, self.lease_seconds)

    async def _update(self, document_id: UUID, **values) -> None:
        async with self.session_factory() as session:
            await session.execute(update(Document).where(Document.id == document_id).values(**values))
            await session.commit()

    async def set_progress(self, document_id: UUID, progress: int) -> None:
        await self._update(document_id, processing_progress=progress)

    async def mark_completed(self, document_id: UUID) -> None:
        await self._update(document_id, status="completed", processing_progress=100, error_message=None)

    async def mark_failed(self, document_id: UUID, error_message: str) -> None:
        await self._update(document_id, status="failed", error_message=error_message)

    async def reset(self, document_id: UUID) -> None:
        await self._update(
            document_id,
            status="processing",
            processing_progress=0,
            error_message=None,
            ingestion_started_at=None,
        )

    async def completed_ids_for_user(self, user_id: UUID, limit: Optional[int] = None) -> List[UUID]:
        """Newest first."""
        stmt = (
            select(Document.id)
            .where(Document.user_id == user_id, Document.status == "completed")
            .order_by(Document.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session_factory() as session:
            res = await session.execute(stmt)
            return [r[0] for r in res.all()]

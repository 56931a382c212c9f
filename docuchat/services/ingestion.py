"""Document ingestion: storage -> text -> chunks -> embeddings -> chunk store.

A document moves ``processing -> completed`` or ``processing -> failed``.
Chunks are embedded one at a time. A chunk whose embedding fails is skipped
and the document still completes; every other error fails the document and
is recorded on it instead of being raised.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from ..config import settings
from ..errors import EmbeddingError, ExtractionError, NotFoundError
from ..utils.text import chunk_text
from .extract import extract_text

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    total: int
    processed: int = 0
    skipped: int = 0
    errors: List[EmbeddingError] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.processed + self.skipped


@dataclass
class IngestionReport:
    document_id: UUID
    status: str  # completed | failed | skipped
    chunks_processed: int = 0
    chunks_skipped: int = 0
    error_message: Optional[str] = None


def progress_percent(done: int, total: int) -> int:
    """round(100 * done / total), halves rounded up."""
    if total <= 0:
        return 100
    return (200 * done + total) // (2 * total)


class IngestionPipeline:
    def __init__(self, documents, storage, embedder, chunks, chunk_size: Optional[int] = None):
        self.documents = documents
        self.storage = storage
        self.embedder = embedder
        self.chunks = chunks
        self.chunk_size = chunk_size or settings.CHUNK_SIZE

    async def run(self, document_id: UUID) -> IngestionReport:
        try:
            document = await self.documents.get(document_id)
            if document is None:
                raise NotFoundError("Document not found")

            if not await self.documents.claim(document_id):
                logger.warning("Document %s is already being ingested or finished, skipping", document_id)
                return IngestionReport(document_id=document_id, status="skipped")

            logger.info("Downloading file from path: %s", document.file_path)
            content = await self.storage.download(document.file_path)
            logger.info("Downloaded %d bytes for document %s", len(content), document_id)

            # parsers are CPU-bound; keep them off the event loop
            text = await asyncio.to_thread(extract_text, document.file_path, content, document.mime_type)
            if not text.strip():
                raise ExtractionError("No text could be extracted from the document")

            pieces = chunk_text(text, self.chunk_size)
            logger.info("Document %s split into %d chunks", document_id, len(pieces))

            self.embedder.ensure_configured()
            result = await self.embed_chunks(document_id, pieces)

            await self.documents.mark_completed(document_id)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error("Ingestion of document %s failed: %s", document_id, message)
            await self._record_failure(document_id, message)
            return IngestionReport(document_id=document_id, status="failed", error_message=message)

        if result.skipped:
            logger.warning(
                "Document %s completed with %d of %d chunks skipped",
                document_id, result.skipped, result.total,
            )
        else:
            logger.info("Document %s completed with %d chunks", document_id, result.processed)
        return IngestionReport(
            document_id=document_id,
            status="completed",
            chunks_processed=result.processed,
            chunks_skipped=result.skipped,
        )

    async def embed_chunks(self, document_id: UUID, pieces: List[str]) -> BatchResult:
        result = BatchResult(total=len(pieces))
        for index, piece in enumerate(pieces):
            try:
                embedding = await self.embedder.embed(piece)
            except EmbeddingError as e:
                logger.warning("Failed to generate embedding for chunk %d of document %s: %s", index, document_id, e)
                result.skipped += 1
                result.errors.append(e)
                continue

            await self.chunks.add_chunk(document_id, piece, embedding, index)
            result.processed += 1
            await self.documents.set_progress(document_id, progress_percent(result.attempted, result.total))
        return result

    async def _record_failure(self, document_id: UUID, message: str) -> None:
        try:
            await self.documents.mark_failed(document_id, message)
        except Exception:
            logger.exception("Failed to update document %s error status", document_id)

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

import numpy as np
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..models import DocumentChunk

logger = logging.getLogger(__name__)


@dataclass
class ChunkMatch:
    content: str
    document_id: UUID
    similarity: float
    chunk_id: Optional[UUID] = None


# (chunk_id, document_id, content, embedding)
Candidate = Tuple[Optional[UUID], UUID, str, Any]


def _to_vec(raw) -> np.ndarray:
    # Compatibility with the old {"v": [...]} storage format
    if isinstance(raw, dict):
        raw = raw.get("v", [])
    if raw is None:
        raw = []
    return np.asarray([float(x) for x in raw], dtype=np.float32).reshape(-1)


def cosine_similarity(a, b) -> float:
    """1 - cosine distance; 0.0 for empty or zero vectors."""
    q, e = _to_vec(a), _to_vec(b)
    if q.size == 0 or q.size != e.size:
        return 0.0
    denom = float(np.linalg.norm(q) * np.linalg.norm(e))
    if denom == 0.0:
        return 0.0
    return float(np.dot(q, e) / denom)


def rank_chunks(
    query_embedding: Sequence[float],
    candidates: Iterable[Candidate],
    match_threshold: float,
    match_count: int,
) -> List[ChunkMatch]:
    """Exact scan: keep similarity > threshold, best first, at most match_count."""
    if match_count <= 0:
        return []
    scored: List[ChunkMatch] = []
    for chunk_id, document_id, content, embedding in candidates:
        score = cosine_similarity(query_embedding, embedding)
        if score > match_threshold:
            scored.append(ChunkMatch(content=content, document_id=document_id, similarity=score, chunk_id=chunk_id))
    scored.sort(key=lambda m: m.similarity, reverse=True)
    return scored[:match_count]


class SqlChunkStore:
    """DocumentChunk persistence; each write commits in its own session."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def add_chunk(self, document_id: UUID, content: str, embedding: List[float], chunk_index: int) -> None:
        async with self.session_factory() as session:
            session.add(DocumentChunk(
                document_id=document_id,
                content=content,
                embedding=embedding,
                meta={"chunk_index": chunk_index},
            ))
            await session.commit()

    async def match_chunks(
        self,
        query_embedding: Sequence[float],
        document_ids: Sequence[UUID],
        match_threshold: float,
        match_count: int,
    ) -> List[ChunkMatch]:
        if not document_ids:
            return []
        async with self.session_factory() as session:
            res = await session.execute(
                select(DocumentChunk.id, DocumentChunk.document_id, DocumentChunk.content, DocumentChunk.embedding)
                .where(DocumentChunk.document_id.in_(list(document_ids)))
            )
            rows = [tuple(r) for r in res.all()]
        matches = rank_chunks(query_embedding, rows, match_threshold, match_count)
        logger.debug("Scanned %d chunks across %d documents, %d matched", len(rows), len(document_ids), len(matches))
        return matches

    async def chunks_for_documents(self, document_ids: Sequence[UUID], limit: int) -> List[str]:
        """Chunk contents of the given documents in document order, up to ``limit``."""
        if not document_ids:
            return []
        order = {doc_id: i for i, doc_id in enumerate(document_ids)}
        async with self.session_factory() as session:
            res = await session.execute(
                select(DocumentChunk.document_id, DocumentChunk.content, DocumentChunk.meta)
                .where(DocumentChunk.document_id.in_(list(document_ids)))
            )
            rows = res.all()
        rows = sorted(rows, key=lambda r: (order[r[0]], (r[2] or {}).get("chunk_index", 0)))
        return [r[1] for r in rows[:limit]]

    async def delete_for_document(self, document_id: UUID) -> None:
        async with self.session_factory() as session:
            await session.execute(delete(DocumentChunk).where(DocumentChunk.document_id == document_id))
            await session.commit()

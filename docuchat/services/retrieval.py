import logging
from typing import List, Optional, Sequence
from uuid import UUID

from ..config import settings
from .chunk_store import ChunkMatch

logger = logging.getLogger(__name__)


async def retrieve(
    query: str,
    document_ids: Sequence[UUID],
    *,
    embedder,
    store,
    match_threshold: Optional[float] = None,
    match_count: Optional[int] = None,
) -> List[ChunkMatch]:
    """Best-matching chunks of ``document_ids`` for ``query``, highest similarity first.

    An unavailable embedding service fails the whole call (EmbeddingError);
    finding nothing is an empty list.
    """
    threshold = settings.MATCH_THRESHOLD if match_threshold is None else match_threshold
    count = settings.MATCH_COUNT if match_count is None else match_count
    if not document_ids or count <= 0:
        return []

    query_embedding = await embedder.embed(query)
    matches = await store.match_chunks(query_embedding, list(document_ids), threshold, count)

    allowed = set(document_ids)
    results = [m for m in matches if m.document_id in allowed and m.similarity > threshold]
    results.sort(key=lambda m: m.similarity, reverse=True)
    results = results[:count]
    logger.info("Found %d matching chunks in %d documents", len(results), len(allowed))
    return results

"""System instruction for a realtime voice session.

Voice sessions cannot run a retrieval round per utterance, so the resolved
documents' chunks are inlined up front as a knowledge base.
"""
import logging
from typing import Awaitable, Callable, List, Sequence
from uuid import UUID

from .knowledge import ResolvedKnowledge

logger = logging.getLogger(__name__)

KNOWLEDGE_BASE_TEMPLATE = """{system_prompt}

=== KNOWLEDGE BASE ===
You have access to the following information from uploaded documents. Use it to answer questions precisely:

{content}

=== END OF KNOWLEDGE BASE ===

IMPORTANT INSTRUCTIONS:
- Use the information from the knowledge base to answer questions
- When the answer is in the knowledge base, refer to it explicitly
- When the information is not in the knowledge base, say so clearly"""

EMPTY_KNOWLEDGE_BASE_NOTE = "Note: the knowledge base is available but currently empty."

ChunkLoader = Callable[[Sequence[UUID], int], Awaitable[List[str]]]


async def build_session_instructions(knowledge: ResolvedKnowledge, load_chunks: ChunkLoader, chunk_limit: int) -> str:
    if not knowledge.rag_enabled or not knowledge.document_ids:
        return knowledge.system_prompt

    contents = await load_chunks(knowledge.document_ids, chunk_limit)
    if not contents:
        logger.info("No chunks stored for %d documents", len(knowledge.document_ids))
        return f"{knowledge.system_prompt}\n\n{EMPTY_KNOWLEDGE_BASE_NOTE}"

    content = "\n\n".join(contents)
    logger.info("Inlined %d chunks (%d characters) into the voice session", len(contents), len(content))
    return KNOWLEDGE_BASE_TEMPLATE.format(system_prompt=knowledge.system_prompt, content=content)

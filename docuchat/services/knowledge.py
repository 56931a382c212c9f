"""Which documents may answer a conversation, and under which system prompt.

Precedence: an attached Agent's knowledge base, then the attached Context's
documents, then the user's own completed documents (newest first). The first
non-empty source wins; sources are never merged.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Optional
from uuid import UUID

from ..config import settings

logger = logging.getLogger(__name__)

AgentLookup = Callable[[UUID], Awaitable[Optional[Any]]]
ContextLookup = Callable[[UUID], Awaitable[Optional[Any]]]
UserDocumentsLookup = Callable[[UUID, int], Awaitable[List[UUID]]]


@dataclass
class ResolvedKnowledge:
    system_prompt: str
    rag_enabled: bool
    document_ids: List[UUID] = field(default_factory=list)
    source: str = "none"  # agent | context | user | none


def _dedupe(ids: Optional[Iterable[UUID]]) -> List[UUID]:
    seen = set()
    return [i for i in (ids or []) if not (i in seen or seen.add(i))]


async def resolve(
    conversation,
    user_id: UUID,
    *,
    agent_lookup: AgentLookup,
    context_lookup: ContextLookup,
    user_documents_lookup: UserDocumentsLookup,
    requested_rag_enabled: Optional[bool] = None,
    fallback_limit: int = 100,
    base_prompt: Optional[str] = None,
) -> ResolvedKnowledge:
    system_prompt = base_prompt or settings.DEFAULT_SYSTEM_PROMPT
    rag_enabled = True if requested_rag_enabled is None else requested_rag_enabled
    document_ids: List[UUID] = []
    source = "none"

    if conversation is not None:
        rag_enabled = conversation.rag_enabled

        if conversation.agent_id:
            agent = await agent_lookup(conversation.agent_id)
            if agent is None:
                logger.warning("Conversation %s references missing agent %s", conversation.id, conversation.agent_id)
            else:
                system_prompt = agent.system_prompt or system_prompt
                rag_enabled = agent.rag_enabled
                document_ids = _dedupe(agent.document_ids)
                if document_ids:
                    source = "agent"

        if not document_ids and rag_enabled and conversation.context_id:
            context = await context_lookup(conversation.context_id)
            if context is None:
                logger.warning("Conversation %s references missing context %s", conversation.id, conversation.context_id)
            else:
                if context.system_prompt:
                    system_prompt = context.system_prompt
                document_ids = _dedupe(context.document_ids)
                if document_ids:
                    source = "context"

    if not rag_enabled:
        return ResolvedKnowledge(system_prompt=system_prompt, rag_enabled=False)

    if not document_ids:
        document_ids = _dedupe(await user_documents_lookup(user_id, fallback_limit))
        if document_ids:
            source = "user"

    logger.debug("Resolved %d documents from %s", len(document_ids), source)
    return ResolvedKnowledge(
        system_prompt=system_prompt,
        rag_enabled=True,
        document_ids=document_ids,
        source=source,
    )

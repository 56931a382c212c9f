import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from ..config import settings
from .chunk_store import ChunkMatch
from .knowledge import ResolvedKnowledge
from .retrieval import retrieve

logger = logging.getLogger(__name__)

NOT_FOUND_RESPONSE = "The requested information is not contained in the provided documents."

RAG_DISABLED_NOTE = "RAG is disabled. Answer based on your general knowledge."
NO_DOCUMENTS_NOTE = "RAG is enabled but no documents are available. Answer based on your general knowledge."

CONTEXT_TEMPLATE = """{system_prompt}

Relevant information from documents:
{passages}

IMPORTANT: Answer the question exclusively based on the provided document information. \
If the information is not contained in the documents, reply with: "{not_found}\""""

ChatModel = Callable[[List[Dict[str, str]]], Awaitable[Tuple[str, str]]]


@dataclass
class AssembledPrompt:
    messages: List[Dict[str, str]]
    rag_used: bool
    # Set when the model must not be called; this is the whole answer
    short_circuit: Optional[str] = None


@dataclass
class RagAnswer:
    response: str
    rag_used: bool
    model: Optional[str] = None
    passages: List[ChunkMatch] = field(default_factory=list)


def build_system_prompt(knowledge: ResolvedKnowledge, passages: Sequence[ChunkMatch]) -> str:
    if not knowledge.rag_enabled:
        return f"{knowledge.system_prompt}\n\n{RAG_DISABLED_NOTE}"
    if not knowledge.document_ids:
        return f"{knowledge.system_prompt}\n\n{NO_DOCUMENTS_NOTE}"
    return CONTEXT_TEMPLATE.format(
        system_prompt=knowledge.system_prompt,
        passages="\n\n".join(p.content for p in passages),
        not_found=NOT_FOUND_RESPONSE,
    )


def assemble(
    knowledge: ResolvedKnowledge,
    passages: Sequence[ChunkMatch],
    history: Sequence[Dict[str, str]],
    message: str,
) -> AssembledPrompt:
    if knowledge.rag_enabled and knowledge.document_ids and not passages:
        return AssembledPrompt(messages=[], rag_used=True, short_circuit=NOT_FOUND_RESPONSE)

    messages = [{"role": "system", "content": build_system_prompt(knowledge, passages)}]
    recent = list(history)[-settings.HISTORY_LIMIT:] if settings.HISTORY_LIMIT > 0 else []
    messages.extend({"role": m["role"], "content": m["content"]} for m in recent)
    messages.append({"role": "user", "content": message})
    return AssembledPrompt(
        messages=messages,
        rag_used=knowledge.rag_enabled and bool(knowledge.document_ids) and bool(passages),
    )


async def answer_message(
    message: str,
    knowledge: ResolvedKnowledge,
    history: Sequence[Dict[str, str]],
    *,
    embedder,
    store,
    complete: ChatModel,
    match_threshold: Optional[float] = None,
    match_count: Optional[int] = None,
) -> RagAnswer:
    passages: List[ChunkMatch] = []
    if knowledge.rag_enabled and knowledge.document_ids:
        passages = await retrieve(
            message,
            knowledge.document_ids,
            embedder=embedder,
            store=store,
            match_threshold=match_threshold,
            match_count=match_count,
        )

    prompt = assemble(knowledge, passages, history, message)
    if prompt.short_circuit is not None:
        logger.info("No matching chunks in %d documents, answering without the model", len(knowledge.document_ids))
        return RagAnswer(response=prompt.short_circuit, rag_used=prompt.rag_used)

    text, model_used = await complete(prompt.messages)
    return RagAnswer(response=text.strip(), rag_used=prompt.rag_used, model=model_used, passages=passages)

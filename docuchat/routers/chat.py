import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from ..config import settings
from ..deps import get_chunk_store, get_conversation_repository, get_current_user_id, get_document_repository
from ..errors import DocuChatError, http_error
from ..schemas import QueryRequest, QueryResponse, SearchRequest, SearchResponse, SearchResult
from ..services.chunk_store import SqlChunkStore
from ..services.conversations import ConversationRepository
from ..services.documents import SqlDocumentRepository
from ..services.embedding import EmbeddingClient, get_embedder
from ..services.knowledge import resolve
from ..services.llm import get_chat_model
from ..services.rag import answer_message
from ..services.retrieval import retrieve

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.post("/chat/query", response_model=QueryResponse)
async def query(
    req: QueryRequest,
    user_id: UUID = Depends(get_current_user_id),
    conversations: ConversationRepository = Depends(get_conversation_repository),
    documents: SqlDocumentRepository = Depends(get_document_repository),
    store: SqlChunkStore = Depends(get_chunk_store),
    embedder: EmbeddingClient = Depends(get_embedder),
    complete=Depends(get_chat_model),
):
    try:
        conversation = None
        history = []
        if req.conversation_id:
            conversation = await conversations.get(req.conversation_id, user_id)
            history = await conversations.recent_history(conversation.id, settings.HISTORY_LIMIT)

        agent_lookup, context_lookup = conversations.owned_lookups(user_id)
        knowledge = await resolve(
            conversation,
            user_id,
            agent_lookup=agent_lookup,
            context_lookup=context_lookup,
            user_documents_lookup=documents.completed_ids_for_user,
            requested_rag_enabled=req.rag_enabled,
            fallback_limit=settings.CHAT_FALLBACK_DOCUMENTS,
        )
        answer = await answer_message(
            req.message,
            knowledge,
            history,
            embedder=embedder,
            store=store,
            complete=complete,
        )
    except DocuChatError as e:
        logger.error("Query failed: %s", e)
        raise http_error(e)

    if conversation is None:
        conversation = await conversations.create(
            user_id,
            req.message,
            rag_enabled=True if req.rag_enabled is None else req.rag_enabled,
        )
    await conversations.append_message(conversation.id, "user", req.message)
    await conversations.append_message(
        conversation.id,
        "assistant",
        answer.response,
        meta={"rag_used": answer.rag_used, "model": answer.model, "source": knowledge.source},
    )
    await conversations.commit()

    return QueryResponse(response=answer.response, rag_used=answer.rag_used, conversation_id=conversation.id)


@router.post("/search", response_model=SearchResponse)
async def search(
    req: SearchRequest,
    user_id: UUID = Depends(get_current_user_id),
    documents: SqlDocumentRepository = Depends(get_document_repository),
    store: SqlChunkStore = Depends(get_chunk_store),
    embedder: EmbeddingClient = Depends(get_embedder),
):
    if req.user_id != user_id:
        raise HTTPException(403, "Cannot search another user's documents")

    document_ids = await documents.completed_ids_for_user(req.user_id)
    if not document_ids:
        return SearchResponse(results=[])
    try:
        matches = await retrieve(req.query, document_ids, embedder=embedder, store=store)
    except DocuChatError as e:
        logger.error("Search failed: %s", e)
        raise http_error(e)
    return SearchResponse(results=[SearchResult(content=m.content, score=m.similarity) for m in matches])

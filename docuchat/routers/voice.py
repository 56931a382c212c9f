from uuid import UUID

from fastapi import APIRouter, Depends

from ..config import settings
from ..deps import get_chunk_store, get_conversation_repository, get_current_user_id, get_document_repository
from ..errors import NotFoundError, http_error
from ..schemas import VoiceContextRequest, VoiceContextResponse
from ..services.chunk_store import SqlChunkStore
from ..services.conversations import ConversationRepository
from ..services.documents import SqlDocumentRepository
from ..services.knowledge import resolve
from ..services.voice_context import build_session_instructions

router = APIRouter(tags=["voice"])


@router.post("/voice/session-context", response_model=VoiceContextResponse)
async def session_context(
    req: VoiceContextRequest,
    user_id: UUID = Depends(get_current_user_id),
    conversations: ConversationRepository = Depends(get_conversation_repository),
    documents: SqlDocumentRepository = Depends(get_document_repository),
    store: SqlChunkStore = Depends(get_chunk_store),
):
    conversation = None
    if req.conversation_id:
        try:
            conversation = await conversations.get(req.conversation_id, user_id)
        except NotFoundError as e:
            raise http_error(e)

    agent_lookup, context_lookup = conversations.owned_lookups(user_id)
    knowledge = await resolve(
        conversation,
        user_id,
        agent_lookup=agent_lookup,
        context_lookup=context_lookup,
        user_documents_lookup=documents.completed_ids_for_user,
        fallback_limit=settings.VOICE_FALLBACK_DOCUMENTS,
    )
    instructions = await build_session_instructions(knowledge, store.chunks_for_documents, settings.VOICE_CONTEXT_CHUNKS)
    return VoiceContextResponse(instructions=instructions, document_ids=knowledge.document_ids)

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_conversation_repository, get_current_user_id
from ..errors import NotFoundError, http_error
from ..schemas import ConversationCreate, ConversationOut, ConversationUpdate, MessageOut
from ..services.conversations import ConversationRepository

router = APIRouter(tags=["conversations"])


async def _check_bindings(conversations: ConversationRepository, user_id: UUID, agent_id, context_id) -> None:
    if agent_id is not None and await conversations.agent(agent_id, user_id) is None:
        raise HTTPException(400, "Unknown agent")
    if context_id is not None and await conversations.context(context_id, user_id) is None:
        raise HTTPException(400, "Unknown context")


async def _owned(conversations: ConversationRepository, conversation_id: UUID, user_id: UUID):
    try:
        return await conversations.get(conversation_id, user_id)
    except NotFoundError as e:
        raise http_error(e)


@router.post("/conversations", response_model=ConversationOut, status_code=201)
async def create_conversation(
    req: ConversationCreate,
    user_id: UUID = Depends(get_current_user_id),
    conversations: ConversationRepository = Depends(get_conversation_repository),
):
    await _check_bindings(conversations, user_id, req.agent_id, req.context_id)
    conv = await conversations.create(
        user_id, req.title,
        agent_id=req.agent_id, context_id=req.context_id, rag_enabled=req.rag_enabled,
    )
    await conversations.commit()
    return ConversationOut.model_validate(conv)


@router.patch("/conversations/{conversation_id}", response_model=ConversationOut)
async def update_conversation(
    conversation_id: UUID,
    req: ConversationUpdate,
    user_id: UUID = Depends(get_current_user_id),
    conversations: ConversationRepository = Depends(get_conversation_repository),
):
    conv = await _owned(conversations, conversation_id, user_id)
    changes = req.model_dump(exclude_unset=True)
    await _check_bindings(conversations, user_id, changes.get("agent_id"), changes.get("context_id"))
    if changes.get("rag_enabled", True) is None:
        raise HTTPException(400, "rag_enabled cannot be null")
    if "title" in changes and not changes["title"]:
        raise HTTPException(400, "title cannot be empty")
    for key, value in changes.items():
        setattr(conv, key, value)
    await conversations.commit()
    return ConversationOut.model_validate(conv)


@router.get("/conversations/{conversation_id}/messages", response_model=List[MessageOut])
async def list_messages(
    conversation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    conversations: ConversationRepository = Depends(get_conversation_repository),
):
    await _owned(conversations, conversation_id, user_id)
    return [MessageOut.model_validate(m) for m in await conversations.messages(conversation_id)]

from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFoundError
from ..models import Agent, Context, Conversation, Message

TITLE_LENGTH = 50


def history_statement(conversation_id: UUID, limit: int):
    """Newest ``limit`` messages; ``seq`` keeps a turn's question ahead of its reply."""
    return (
        select(Message.role, Message.content)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.seq.desc())
        .limit(limit)
    )


def messages_statement(conversation_id: UUID):
    return select(Message).where(Message.conversation_id == conversation_id).order_by(Message.seq.asc())


class ConversationRepository:
    """Conversation, message and knowledge-base reads and writes on the request session.

    Writes are flushed, not committed; the route decides when the turn is done.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, conversation_id: UUID, user_id: UUID) -> Conversation:
        conv = await self.session.get(Conversation, conversation_id)
        if conv is None or conv.user_id != user_id:
            raise NotFoundError("Conversation not found")
        return conv

    async def create(
        self,
        user_id: UUID,
        title: str,
        *,
        agent_id: Optional[UUID] = None,
        context_id: Optional[UUID] = None,
        rag_enabled: bool = True,
    ) -> Conversation:
        conv = Conversation(
            user_id=user_id,
            title=title[:TITLE_LENGTH] or "New conversation",
            agent_id=agent_id,
            context_id=context_id,
            rag_enabled=rag_enabled,
        )
        self.session.add(conv)
        await self.session.flush()
        await self.session.refresh(conv)
        return conv

    async def recent_history(self, conversation_id: UUID, limit: int) -> List[Dict[str, str]]:
        """Last ``limit`` messages, oldest first."""
        if limit <= 0:
            return []
        res = await self.session.execute(history_statement(conversation_id, limit))
        rows = res.all()
        return [{"role": role, "content": content} for role, content in reversed(rows)]

    async def messages(self, conversation_id: UUID) -> List[Message]:
        res = await self.session.execute(messages_statement(conversation_id))
        return list(res.scalars().all())

    async def append_message(
        self, conversation_id: UUID, role: str, content: str, meta: Optional[dict] = None
    ) -> Message:
        msg = Message(conversation_id=conversation_id, role=role, content=content, meta=meta)
        self.session.add(msg)
        await self.session.flush()
        return msg

    async def agent(self, agent_id: UUID, user_id: UUID) -> Optional[Agent]:
        agent = await self.session.get(Agent, agent_id)
        return agent if agent is not None and agent.user_id == user_id else None

    async def context(self, context_id: UUID, user_id: UUID) -> Optional[Context]:
        context = await self.session.get(Context, context_id)
        return context if context is not None and context.user_id == user_id else None

    def owned_lookups(self, user_id: UUID):
        """Agent and context lookups that only see rows owned by ``user_id``."""

        async def agent_lookup(agent_id: UUID) -> Optional[Agent]:
            return await self.agent(agent_id, user_id)

        async def context_lookup(context_id: UUID) -> Optional[Context]:
            return await self.context(context_id, user_id)

        return agent_lookup, context_lookup

    async def commit(self) -> None:
        await self.session.commit()

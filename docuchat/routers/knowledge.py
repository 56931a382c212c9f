from typing import List, Sequence
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..deps import get_current_user_id
from ..models import Agent, Context, Document
from ..schemas import AgentCreate, AgentOut, ContextCreate, ContextOut

router = APIRouter(tags=["knowledge"])


async def _check_documents(session: AsyncSession, user_id: UUID, document_ids: Sequence[UUID]) -> None:
    """A knowledge base may only reference the caller's own documents."""
    if not document_ids:
        return
    res = await session.execute(
        select(Document.id).where(Document.id.in_(list(document_ids)), Document.user_id == user_id)
    )
    missing = set(document_ids) - {r[0] for r in res.all()}
    if missing:
        raise HTTPException(400, f"Unknown documents: {', '.join(sorted(str(m) for m in missing))}")


def _unique(ids: Sequence[UUID]) -> List[UUID]:
    return list(dict.fromkeys(ids))


@router.post("/agents", response_model=AgentOut, status_code=201)
async def create_agent(
    req: AgentCreate,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    await _check_documents(session, user_id, req.document_ids)
    agent = Agent(user_id=user_id, **req.model_dump(exclude={"document_ids"}), document_ids=_unique(req.document_ids))
    session.add(agent)
    await session.commit()
    return AgentOut.model_validate(agent)


@router.get("/agents", response_model=List[AgentOut])
async def list_agents(
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    res = await session.execute(select(Agent).where(Agent.user_id == user_id).order_by(Agent.created_at.desc()))
    return [AgentOut.model_validate(a) for a in res.scalars().all()]


@router.delete("/agents/{agent_id}", status_code=204)
async def delete_agent(
    agent_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    agent = await session.get(Agent, agent_id)
    if agent is None or agent.user_id != user_id:
        raise HTTPException(404, "Agent not found")
    await session.delete(agent)
    await session.commit()


@router.post("/contexts", response_model=ContextOut, status_code=201)
async def create_context(
    req: ContextCreate,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    await _check_documents(session, user_id, req.document_ids)
    context = Context(user_id=user_id, **req.model_dump(exclude={"document_ids"}), document_ids=_unique(req.document_ids))
    session.add(context)
    await session.commit()
    return ContextOut.model_validate(context)


@router.get("/contexts", response_model=List[ContextOut])
async def list_contexts(
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    res = await session.execute(select(Context).where(Context.user_id == user_id).order_by(Context.created_at.desc()))
    return [ContextOut.model_validate(c) for c in res.scalars().all()]


@router.delete("/contexts/{context_id}", status_code=204)
async def delete_context(
    context_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    context = await session.get(Context, context_id)
    if context is None or context.user_id != user_id:
        raise HTTPException(404, "Context not found")
    await session.delete(context)
    await session.commit()

from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db import get_session, get_session_local
from .services.chunk_store import SqlChunkStore
from .services.conversations import ConversationRepository
from .services.documents import SqlDocumentRepository
from .services.embedding import EmbeddingClient, get_embedder
from .services.ingestion import IngestionPipeline
from .services.storage import LocalStorage, get_storage

# Authentication happens upstream; the gateway forwards the caller's id.
async def get_current_user_id(x_user_id: UUID = Header(...)) -> UUID:
    return x_user_id

def get_session_factory() -> async_sessionmaker:
    SessionLocal = get_session_local()
    if SessionLocal is None:
        raise HTTPException(503, "Database connection is not available.")
    return SessionLocal

def get_document_repository(session_factory: async_sessionmaker = Depends(get_session_factory)) -> SqlDocumentRepository:
    return SqlDocumentRepository(session_factory)

def get_chunk_store(session_factory: async_sessionmaker = Depends(get_session_factory)) -> SqlChunkStore:
    return SqlChunkStore(session_factory)

def get_ingestion_pipeline(
    documents: SqlDocumentRepository = Depends(get_document_repository),
    chunks: SqlChunkStore = Depends(get_chunk_store),
    storage: LocalStorage = Depends(get_storage),
    embedder: EmbeddingClient = Depends(get_embedder),
) -> IngestionPipeline:
    return IngestionPipeline(documents=documents, storage=storage, embedder=embedder, chunks=chunks)

def get_conversation_repository(session: AsyncSession = Depends(get_session)) -> ConversationRepository:
    return ConversationRepository(session)

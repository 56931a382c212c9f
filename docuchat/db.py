import os
from typing import AsyncIterator

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from .config import settings

# Lazy initialization: the engine is only created on first use
_engine = None
_SessionLocal = None

SKIP_DB = os.getenv("SKIP_DB", "false").lower() == "true"

def get_engine():
    """Return the engine, creating it on first use."""
    global _engine
    if _engine is None and not SKIP_DB:
        DATABASE_URL = f"postgresql+asyncpg://{settings.DB_USER}:{settings.DB_PASSWORD}@{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"
        _engine = create_async_engine(DATABASE_URL, echo=False, pool_pre_ping=True)
    return _engine

def get_session_local():
    """Return the session factory, creating it on first use."""
    global _SessionLocal
    if _SessionLocal is None:
        engine = get_engine()
        if engine is not None:
            _SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
    return _SessionLocal

async def get_session() -> AsyncIterator[AsyncSession]:
    SessionLocal = get_session_local()
    if SessionLocal is None:
        raise HTTPException(503, "Database connection is not available.")
    async with SessionLocal() as session:
        yield session

async def create_tables() -> None:
    engine = get_engine()
    if engine is None:
        return
    from . import models  # noqa: F401  registers the mappers
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

class Base(DeclarativeBase):
    pass

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import settings
from .db import create_tables
from .logging_setup import setup_logging
from .routers import chat, conversations, documents, knowledge, voice

logger = setup_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DB_CREATE_TABLES:
        await create_tables()
        logger.info("Database tables ensured")
    yield

app = FastAPI(title="DocuChat", version="0.2.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware,
    allow_origins=[o.strip() for o in settings.ALLOWED_ORIGINS.split(",")],
    allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

@app.get("/health")
async def health(): return {"status": "ok"}

app.include_router(documents.router, prefix="/v1")
app.include_router(chat.router, prefix="/v1")
app.include_router(conversations.router, prefix="/v1")
app.include_router(knowledge.router, prefix="/v1")
app.include_router(voice.router, prefix="/v1")

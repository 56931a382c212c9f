from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional
from uuid import UUID

class DocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    status: Literal["processing", "completed", "failed"]
    processing_progress: int
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None

class UploadResponse(BaseModel):
    document_id: UUID
    status: str

class IngestResponse(BaseModel):
    document_id: UUID
    status: str
    chunks_processed: int
    chunks_skipped: int = 0

class QueryRequest(BaseModel):
    message: str = Field(min_length=1)
    conversation_id: Optional[UUID] = None
    rag_enabled: Optional[bool] = None

class QueryResponse(BaseModel):
    response: str
    rag_used: bool
    conversation_id: UUID

class SearchRequest(BaseModel):
    user_id: UUID
    query: str = Field(min_length=1)

class SearchResult(BaseModel):
    content: str
    score: float

class SearchResponse(BaseModel):
    results: List[SearchResult]

class AgentCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    system_prompt: str = Field(min_length=1)
    rag_enabled: bool = True
    document_ids: List[UUID] = Field(default_factory=list)

class AgentOut(AgentCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID

class ContextCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    system_prompt: Optional[str] = None
    document_ids: List[UUID] = Field(default_factory=list)

class ContextOut(ContextCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID

class ConversationCreate(BaseModel):
    title: str = "New conversation"
    agent_id: Optional[UUID] = None
    context_id: Optional[UUID] = None
    rag_enabled: bool = True

class ConversationUpdate(BaseModel):
    """Only fields present in the request are applied; an explicit null detaches."""
    title: Optional[str] = None
    agent_id: Optional[UUID] = None
    context_id: Optional[UUID] = None
    rag_enabled: Optional[bool] = None

class ConversationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    agent_id: Optional[UUID] = None
    context_id: Optional[UUID] = None
    rag_enabled: bool
    created_at: Optional[datetime] = None

class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    role: Literal["user", "assistant", "system"]
    content: str
    created_at: Optional[datetime] = None

class VoiceContextRequest(BaseModel):
    conversation_id: Optional[UUID] = None

class VoiceContextResponse(BaseModel):
    instructions: str
    document_ids: List[UUID]

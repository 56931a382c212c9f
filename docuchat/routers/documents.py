import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, UploadFile, File, Form, HTTPException

from ..config import settings
from ..deps import get_chunk_store, get_current_user_id, get_document_repository, get_ingestion_pipeline
from ..models import Document
from ..schemas import DocumentOut, IngestResponse, UploadResponse
from ..services.chunk_store import SqlChunkStore
from ..services.documents import SqlDocumentRepository
from ..services.ingestion import IngestionPipeline
from ..services.storage import LocalStorage, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])


async def _owned_document(documents: SqlDocumentRepository, document_id: UUID, user_id: UUID) -> Document:
    doc = await documents.get_for_user(document_id, user_id)
    if doc is None:
        raise HTTPException(404, "Document not found")
    return doc


@router.post("/documents/upload", response_model=UploadResponse, status_code=201)
async def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    user_id: UUID = Depends(get_current_user_id),
    documents: SqlDocumentRepository = Depends(get_document_repository),
    storage: LocalStorage = Depends(get_storage),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    content_bytes = await file.read()
    if not content_bytes:
        raise HTTPException(400, "Uploaded file is empty")
    if len(content_bytes) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(413, f"File exceeds {settings.MAX_UPLOAD_BYTES} bytes")

    filename = file.filename or "document"
    file_path = storage.make_path(user_id, filename)
    await storage.upload(file_path, content_bytes)

    doc = await documents.create(
        user_id=user_id,
        title=title or filename,
        file_path=file_path,
        file_size=len(content_bytes),
        mime_type=file.content_type,
        status="processing",
        processing_progress=0,
    )
    logger.info("Stored %s (%d bytes) as document %s", filename, len(content_bytes), doc.id)

    # Runs after the response is sent; the caller follows progress via GET /documents/{id}
    background_tasks.add_task(pipeline.run, doc.id)
    return UploadResponse(document_id=doc.id, status=doc.status)


@router.post("/documents/{document_id}/ingest", response_model=IngestResponse)
async def ingest_document(
    document_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    documents: SqlDocumentRepository = Depends(get_document_repository),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    await _owned_document(documents, document_id, user_id)
    report = await pipeline.run(document_id)
    if report.status == "failed":
        raise HTTPException(500, report.error_message or "Ingestion failed")
    if report.status == "skipped":
        raise HTTPException(409, "Document is already being ingested or was already processed")
    return IngestResponse(
        document_id=document_id,
        status=report.status,
        chunks_processed=report.chunks_processed,
        chunks_skipped=report.chunks_skipped,
    )


@router.post("/documents/{document_id}/reprocess", response_model=UploadResponse, status_code=202)
async def reprocess_document(
    document_id: UUID,
    background_tasks: BackgroundTasks,
    user_id: UUID = Depends(get_current_user_id),
    documents: SqlDocumentRepository = Depends(get_document_repository),
    chunks: SqlChunkStore = Depends(get_chunk_store),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    doc = await _owned_document(documents, document_id, user_id)
    if documents.is_ingesting(doc):
        raise HTTPException(409, "Document is being ingested")
    await chunks.delete_for_document(document_id)
    await documents.reset(document_id)
    background_tasks.add_task(pipeline.run, document_id)
    return UploadResponse(document_id=document_id, status="processing")


@router.get("/documents", response_model=List[DocumentOut])
async def list_documents(
    user_id: UUID = Depends(get_current_user_id),
    documents: SqlDocumentRepository = Depends(get_document_repository),
):
    return [DocumentOut.model_validate(d) for d in await documents.list_for_user(user_id)]


@router.get("/documents/{document_id}", response_model=DocumentOut)
async def get_document(
    document_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    documents: SqlDocumentRepository = Depends(get_document_repository),
):
    return DocumentOut.model_validate(await _owned_document(documents, document_id, user_id))


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(
    document_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    documents: SqlDocumentRepository = Depends(get_document_repository),
    storage: LocalStorage = Depends(get_storage),
):
    doc = await _owned_document(documents, document_id, user_id)
    await documents.delete(document_id)
    await storage.delete(doc.file_path)

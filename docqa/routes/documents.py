"""
Document management API routes.
Handles document upload, listing, deletion and document-scoped questions.
"""
import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from . import http_error
from ..config import DEFAULT_CHUNK_SIZE, MAX_FILE_SIZE_BYTES
from ..dependencies import get_document_service, get_rag_service
from ..exceptions import DocQAError
from ..logging_config import logger
from ..schemas import AnswerResult, DocumentInfo, QuestionBody, UploadResult
from ..services.document_service import DocumentService
from ..services.rag_service import RagService
from ..text_extraction import SUPPORTED_EXTENSIONS, file_extension

router = APIRouter(prefix="/api/documents", tags=["documents"])


# ==================== Document Upload ====================

@router.post("/upload", response_model=UploadResult)
async def upload_document(
    file: UploadFile = File(...),
    chunk_size: int = Form(DEFAULT_CHUNK_SIZE),
    embedding_model: Optional[str] = Form(None),
    documents: DocumentService = Depends(get_document_service),
):
    """
    Upload one document.

    Supported formats: PDF, DOCX, TXT (up to 10 MB)

    Process:
    1. Extract text
    2. Split text into passages
    3. Generate embeddings for passages
    4. Store passages with vector embeddings
    """
    filename = file.filename or ""
    logger.info("Processing file", filename=filename, content_type=file.content_type)

    if file_extension(filename) not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=415,
            detail=f"Unsupported file format. Allowed: {', '.join(SUPPORTED_EXTENSIONS)}",
        )
    if chunk_size <= 0:
        raise HTTPException(status_code=422, detail="chunk_size must be positive")

    data = await file.read()
    if len(data) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB",
        )

    try:
        document_id = await asyncio.to_thread(
            documents.ingest, data, filename, chunk_size, embedding_model
        )
    except DocQAError as e:
        raise http_error(e)

    document = documents.get_document(document_id)
    logger.info("Document uploaded successfully", filename=filename, document_id=document_id,
                chunks=document.total_chunks)
    return UploadResult(
        document_id=document.id,
        filename=document.filename,
        total_chunks=document.total_chunks,
        status=document.status,
    )


# ==================== Document Listing ====================

@router.get("", response_model=List[DocumentInfo])
async def list_documents(documents: DocumentService = Depends(get_document_service)):
    """Returns all documents with status and passage counts, newest first."""
    return documents.list_documents()


@router.get("/{document_id}", response_model=DocumentInfo)
async def get_document(document_id: int, documents: DocumentService = Depends(get_document_service)):
    try:
        return documents.get_document(document_id)
    except DocQAError as e:
        raise http_error(e)


# ==================== Document Deletion ====================

@router.delete("/{document_id}")
async def delete_document(document_id: int, documents: DocumentService = Depends(get_document_service)):
    """Deletes a document and all its passages."""
    try:
        documents.delete_document(document_id)
    except DocQAError as e:
        raise http_error(e)
    return {"ok": True, "deleted": document_id}


# ==================== Document Q&A ====================

@router.post("/{document_id}/ask", response_model=AnswerResult)
async def ask_document(
    document_id: int,
    payload: QuestionBody,
    documents: DocumentService = Depends(get_document_service),
    rag: RagService = Depends(get_rag_service),
):
    """Answer a question using passages from a single document."""
    try:
        document = documents.get_document(document_id)
        return await rag.answer(
            payload.question,
            top_k=payload.top_k,
            document_id=document_id,
            model=payload.model,
            embedding_model=payload.embedding_model or document.embedding_model,
        )
    except DocQAError as e:
        raise http_error(e)
    except Exception as e:
        logger.error("Error answering document question", exc_info=e, document_id=document_id)
        raise HTTPException(status_code=500, detail="Error processing query")

"""
Document ingest and management.

Upload flow: extract text -> chunk -> embed -> store passages. The document row
is created first as PROCESSING; passages and the PROCESSED status are written in
one transaction so retrieval never sees a partial passage set.
"""
from time import perf_counter
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import sessionmaker

from ..chunking import chunk_text
from ..config import DEFAULT_CHUNK_SIZE
from ..embedding import EmbeddingGateway
from ..exceptions import DocumentNotFoundError
from ..logging_config import logger
from ..models import Chunk, Document, DocumentStatus
from ..schemas import DocumentInfo
from ..text_extraction import file_extension, read_any


class DocumentService:

    def __init__(self, session_factory: sessionmaker, embedder: EmbeddingGateway):
        self._session_factory = session_factory
        self.embedder = embedder

    def ingest(
        self,
        file_bytes: bytes,
        filename: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        embedding_model: Optional[str] = None,
    ) -> int:
        """
        Turn an uploaded file into searchable passages.

        Returns:
            The new document id

        Raises:
            UnsupportedFileTypeError, TextExtractionError, EmptyDocumentError,
            EmbeddingError: the document is left in FAILED state
            UnknownModelError: embedding model not registered (nothing is stored)
        """
        model = self.embedder.resolve_model(embedding_model)
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

        with self._session_factory() as db, db.begin():
            document = Document(
                filename=filename,
                file_extension=file_extension(filename)[:10],
                file_size_bytes=len(file_bytes),
                chunk_size=chunk_size,
                total_chunks=0,
                embedding_model=model,
                status=DocumentStatus.PROCESSING,
            )
            db.add(document)
            db.flush()
            document_id = document.id

        logger.info("Processing document", document_id=document_id, filename=filename,
                    size_bytes=len(file_bytes), chunk_size=chunk_size, embedding_model=model)
        t = perf_counter()
        try:
            full_text, _ = read_any(file_bytes, filename)
            passages = chunk_text(full_text, chunk_size)
            vectors = self.embedder.embed_texts(passages, model)

            with self._session_factory() as db, db.begin():
                document = db.get(Document, document_id)
                db.add_all(
                    Chunk(document_id=document_id, chunk_index=i, content=passage, embedding=vector)
                    for i, (passage, vector) in enumerate(zip(passages, vectors))
                )
                document.full_text = full_text
                document.total_chunks = len(passages)
                document.status = DocumentStatus.PROCESSED
        except Exception as e:
            self._mark_failed(document_id)
            logger.error("Document processing failed", document_id=document_id, filename=filename,
                         error=str(e), error_type=type(e).__name__)
            raise

        logger.info("Document processed", document_id=document_id, chunks=len(passages),
                    ms=round((perf_counter() - t) * 1000, 2))
        return document_id

    def _mark_failed(self, document_id: int) -> None:
        with self._session_factory() as db, db.begin():
            document = db.get(Document, document_id)
            if document is not None:
                document.status = DocumentStatus.FAILED

    def list_documents(self) -> List[DocumentInfo]:
        """Returns all documents, newest upload first."""
        with self._session_factory() as db:
            rows = db.scalars(
                select(Document).order_by(Document.upload_timestamp.desc(), Document.id.desc())
            ).all()
            documents = [_to_info(d) for d in rows]
        logger.info("Listed documents", count=len(documents))
        return documents

    def get_document(self, document_id: int) -> DocumentInfo:
        with self._session_factory() as db:
            document = db.get(Document, document_id)
            if document is None:
                raise DocumentNotFoundError(document_id)
            return _to_info(document)

    def delete_document(self, document_id: int) -> None:
        """
        Deletes a document and all its passages.

        Raises:
            DocumentNotFoundError: unknown document id
        """
        with self._session_factory() as db, db.begin():
            if db.get(Document, document_id) is None:
                logger.warning("Document not found for deletion", document_id=document_id)
                raise DocumentNotFoundError(document_id)
            db.execute(delete(Chunk).where(Chunk.document_id == document_id))
            db.execute(delete(Document).where(Document.id == document_id))
        logger.info("Document deleted", document_id=document_id)


def _to_info(document: Document) -> DocumentInfo:
    return DocumentInfo(
        id=document.id,
        filename=document.filename,
        file_extension=document.file_extension,
        file_size_bytes=document.file_size_bytes,
        upload_timestamp=document.upload_timestamp,
        chunk_size=document.chunk_size,
        total_chunks=document.total_chunks,
        embedding_model=document.embedding_model,
        status=document.status.value,
    )

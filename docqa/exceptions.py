"""Error taxonomy shared by ingest, retrieval, generation and conversation code."""


class DocQAError(Exception):
    """Base exception for the service"""

    code = "internal_error"


# ---- Ingest ----

class IngestError(DocQAError):
    """Upload could not be turned into passages"""

    code = "ingest_failed"


class UnsupportedFileTypeError(IngestError):
    """File extension is not pdf, docx or txt"""

    code = "unsupported_file_type"


class TextExtractionError(IngestError):
    """The file could not be parsed"""

    code = "extraction_failed"


class EmptyDocumentError(IngestError):
    """No text could be extracted from the file"""

    code = "empty_document"


class EmbeddingError(DocQAError):
    """Embedding model unavailable or inference failed"""

    code = "embedding_failed"


# ---- Retrieval ----

class RetrievalError(DocQAError):
    """Retrieval pipeline errors"""

    code = "retrieval_failed"


class NoDocumentsIngestedError(RetrievalError):
    """Nothing is indexed yet for the requested scope"""

    code = "no_documents"

    def __init__(self, message: str = "No documents have been ingested yet. Please upload a document first."):
        super().__init__(message)


# ---- Generation ----

class GenerationError(DocQAError):
    """LLM backend errors (connection refused, timeout, bad response)"""

    code = "generation_failed"


# ---- Validation ----

class UnknownModelError(DocQAError):
    """Requested embedding or generation model is not registered"""

    code = "unknown_model"


# ---- Integrity ----

class NotFoundError(DocQAError):
    code = "not_found"


class ConversationNotFoundError(NotFoundError):
    code = "conversation_not_found"

    def __init__(self, conversation_id: int):
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class MessageNotFoundError(NotFoundError):
    code = "message_not_found"

    def __init__(self, message_id: int):
        super().__init__(f"Message not found: {message_id}")
        self.message_id = message_id


class DocumentNotFoundError(NotFoundError):
    code = "document_not_found"

    def __init__(self, document_id: int):
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class ParentMismatchError(DocQAError):
    """Parent message does not belong to the stated conversation"""

    code = "parent_mismatch"

    def __init__(self, parent_id: int, conversation_id: int):
        super().__init__(
            f"Parent message {parent_id} does not belong to conversation {conversation_id}"
        )
        self.parent_id = parent_id
        self.conversation_id = conversation_id

"""
API routers.
"""
from fastapi import HTTPException

from ..exceptions import (
    DocQAError,
    EmbeddingError,
    EmptyDocumentError,
    GenerationError,
    NoDocumentsIngestedError,
    NotFoundError,
    ParentMismatchError,
    TextExtractionError,
    UnknownModelError,
    UnsupportedFileTypeError,
)

# Most specific first
STATUS_CODES = (
    (NotFoundError, 404),
    (NoDocumentsIngestedError, 404),
    (ParentMismatchError, 409),
    (UnsupportedFileTypeError, 415),
    (EmptyDocumentError, 422),
    (TextExtractionError, 422),
    (UnknownModelError, 400),
    (GenerationError, 502),
    (EmbeddingError, 503),
)


def http_error(e: DocQAError) -> HTTPException:
    """Translate a domain error into the HTTP status the API reports for it."""
    for error_type, status_code in STATUS_CODES:
        if isinstance(e, error_type):
            return HTTPException(status_code=status_code, detail=str(e))
    return HTTPException(status_code=500, detail="Internal server error")

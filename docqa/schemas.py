"""
Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]


class AskBody(BaseModel):
    """Request body for the streaming answer endpoint."""
    question: str = Field(..., min_length=1, description="The question to ask")
    conversation_id: Optional[int] = Field(None, description="Existing conversation ID or None for a new one")
    parent_id: Optional[int] = Field(None, description="Message to attach the question under")
    is_edit: bool = Field(False, description="True when the question edits an earlier turn")
    top_k: int = Field(5, ge=1, le=20, description="Number of passages to retrieve")
    document_id: Optional[int] = Field(None, description="Restrict retrieval to one document")
    model: Optional[str] = Field(None, description="Model identifier: 'ollama:llama3:8b' or 'openai:gpt-4o-mini'")
    embedding_model: Optional[str] = Field(None, description="Embedding model used for retrieval")


class QuestionBody(BaseModel):
    """Request body for blocking question answering."""
    question: str = Field(..., min_length=1)
    top_k: int = Field(5, ge=1, le=20)
    model: Optional[str] = None
    embedding_model: Optional[str] = None


class MessageRef(BaseModel):
    """Identity and sibling position of a just-persisted message."""
    id: int
    parent_id: Optional[int] = None
    sibling_count: int
    sibling_index: int


class ThreadMessage(BaseModel):
    """A message annotated with its position among same-(parent, role) siblings."""
    id: int
    role: Role
    content: str
    created_at: datetime
    parent_id: Optional[int] = None
    sibling_count: int
    sibling_index: int


class ConversationInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    created_at: datetime
    updated_at: datetime


class DocumentInfo(BaseModel):
    id: int
    filename: str
    file_extension: str
    file_size_bytes: Optional[int] = None
    upload_timestamp: datetime
    chunk_size: int
    total_chunks: int
    embedding_model: str
    status: Literal["PROCESSING", "PROCESSED", "FAILED"]


class UploadResult(BaseModel):
    document_id: int
    filename: str
    total_chunks: int
    status: str


class AnswerResult(BaseModel):
    question: str
    answer: str
    response_style: str
    question_type: str
    passages: List[str] = Field(default_factory=list)
    truncated: bool = False

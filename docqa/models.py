import enum
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from pgvector.sqlalchemy import Vector

from .config import EMBED_DIM

Base = declarative_base()

# BIGSERIAL on Postgres; SQLite only autoincrements INTEGER primary keys
Id = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, enum.Enum):
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"

    @property
    def opposite(self) -> "MessageRole":
        return MessageRole.ASSISTANT if self is MessageRole.USER else MessageRole.USER


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Document(Base):
    __tablename__ = "documents"
    id = Column(Id, primary_key=True, autoincrement=True)
    filename = Column(String(500), nullable=False)
    file_extension = Column(String(10), nullable=False)
    file_size_bytes = Column(BigInteger)
    upload_timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    chunk_size = Column(Integer, nullable=False)
    total_chunks = Column(Integer, nullable=False, default=0)
    full_text = Column(Text)
    embedding_model = Column(String(100), nullable=False)
    status = Column(
        Enum(DocumentStatus, native_enum=False, length=50, values_callable=_enum_values),
        nullable=False,
        default=DocumentStatus.PROCESSING,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    chunks = relationship(
        "Chunk",
        back_populates="document",
        order_by="Chunk.chunk_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Chunk(Base):
    __tablename__ = "document_chunks"
    id = Column(Id, primary_key=True, autoincrement=True)
    document_id = Column(Id, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    embedding = Column(Vector(EMBED_DIM), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    document = relationship("Document", back_populates="chunks")

    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="unique_document_chunk"),
        Index("idx_chunks_document_id", "document_id"),
    )


class Conversation(Base):
    __tablename__ = "conversations"
    id = Column(Id, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    messages = relationship(
        "ChatMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    id = Column(Id, primary_key=True, autoincrement=True)
    conversation_id = Column(Id, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)
    role = Column(
        Enum(MessageRole, native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    parent_id = Column(Id, ForeignKey("chat_messages.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")

    __table_args__ = (
        CheckConstraint("parent_id IS NULL OR parent_id <> id", name="chk_chat_messages_not_self_parent"),
        Index("idx_messages_conv_parent_role_created", "conversation_id", "parent_id", "role", "created_at", "id"),
    )

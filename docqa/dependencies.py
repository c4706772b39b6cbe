"""
Service wiring for the API layer.

Each provider returns a process-wide instance built from ``docqa.config``;
tests swap them out through ``app.dependency_overrides``.
"""
from functools import lru_cache

from .db import SessionLocal, engine
from .embedding import EmbeddingGateway, SentenceTransformerEmbedder
from .passage_store import get_passage_store
from .retrieval import HybridRetriever
from .services.conversation_service import ConversationService
from .services.document_service import DocumentService
from .services.model_service import GeneratorRegistry
from .services.rag_service import RagService


@lru_cache
def get_embedder() -> EmbeddingGateway:
    return SentenceTransformerEmbedder()


@lru_cache
def get_generators() -> GeneratorRegistry:
    return GeneratorRegistry()


@lru_cache
def get_retriever() -> HybridRetriever:
    return HybridRetriever(get_passage_store(engine), get_embedder())


@lru_cache
def get_conversation_service() -> ConversationService:
    return ConversationService(SessionLocal)


@lru_cache
def get_document_service() -> DocumentService:
    return DocumentService(SessionLocal, get_embedder())


@lru_cache
def get_rag_service() -> RagService:
    return RagService(get_conversation_service(), get_retriever(), get_generators())

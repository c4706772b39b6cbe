"""Pytest configuration and fixtures"""
import os

# Must be set before docqa.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RUN_STARTUP_TASKS"] = "false"
os.environ["WEB_DIR"] = "__no_web_dir__"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from docqa import dependencies
from docqa.db import enable_sqlite_foreign_keys
from docqa.main import app
from docqa.models import Base
from docqa.passage_store import PortablePassageStore
from docqa.retrieval import HybridRetriever
from docqa.services.conversation_service import ConversationService
from docqa.services.document_service import DocumentService
from docqa.services.rag_service import RagService

from fakes import FakeEmbedder, FakeGenerator, FakeGenerators


@pytest.fixture(scope="function")
def engine():
    """In-memory database shared by every session of one test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def conversations(session_factory):
    return ConversationService(session_factory)


@pytest.fixture
def documents(session_factory, embedder):
    return DocumentService(session_factory, embedder)


@pytest.fixture
def retriever(engine, embedder):
    return HybridRetriever(PortablePassageStore(engine), embedder)


@pytest.fixture
def rag(conversations, retriever, generator):
    return RagService(conversations, retriever, FakeGenerators(generator))


@pytest.fixture
def client(conversations, documents, retriever, rag, embedder, generator):
    """Test client fixture"""
    app.dependency_overrides[dependencies.get_conversation_service] = lambda: conversations
    app.dependency_overrides[dependencies.get_document_service] = lambda: documents
    app.dependency_overrides[dependencies.get_retriever] = lambda: retriever
    app.dependency_overrides[dependencies.get_rag_service] = lambda: rag
    app.dependency_overrides[dependencies.get_embedder] = lambda: embedder
    app.dependency_overrides[dependencies.get_generators] = lambda: FakeGenerators(generator)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

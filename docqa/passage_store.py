"""
Query surface over stored passages.

``PgVectorPassageStore`` pushes cosine distance and full-text ranking down to
PostgreSQL (pgvector ``<=>`` and ``ts_rank``). ``PortablePassageStore`` keeps the
same contract for other engines by scoring candidates in Python.

Only passages of PROCESSED documents embedded with the requested model are
ever visible.
"""
import re
from dataclasses import dataclass
from time import perf_counter
from typing import List, Optional, Sequence

import numpy as np
from sqlalchemy import func, select, text as sa_text
from sqlalchemy.engine import Engine

from .logging_config import logger
from .models import Chunk, Document, DocumentStatus


@dataclass(frozen=True)
class SemanticHit:
    passage_id: int
    content: str
    distance: float


@dataclass(frozen=True)
class KeywordHit:
    passage_id: int
    content: str
    rank: float


def to_pgvector(vec: Sequence[float]) -> str:
    return "[" + ",".join(str(float(x)) for x in vec) + "]"


class PassageStore:
    """Base class; both methods return hits in store order (best first)."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def count_passages(self, embedding_model: str, document_id: Optional[int] = None) -> int:
        stmt = (
            select(func.count(Chunk.id))
            .join(Document, Document.id == Chunk.document_id)
            .where(Document.status == DocumentStatus.PROCESSED)
            .where(Document.embedding_model == embedding_model)
        )
        if document_id is not None:
            stmt = stmt.where(Chunk.document_id == document_id)
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar_one()

    def semantic_search(
        self,
        query_vector: Sequence[float],
        limit: int,
        max_distance: float,
        embedding_model: str,
        document_id: Optional[int] = None,
    ) -> List[SemanticHit]:
        raise NotImplementedError

    def keyword_search(
        self,
        keywords: Sequence[str],
        limit: int,
        embedding_model: str,
        document_id: Optional[int] = None,
    ) -> List[KeywordHit]:
        raise NotImplementedError


class PgVectorPassageStore(PassageStore):

    @staticmethod
    def _scope(document_id: Optional[int]) -> str:
        clause = "d.status = 'PROCESSED' AND d.embedding_model = :model"
        if document_id is not None:
            clause += " AND c.document_id = :doc_id"
        return clause

    def semantic_search(self, query_vector, limit, max_distance, embedding_model, document_id=None):
        t = perf_counter()
        with self.engine.connect() as conn:
            rows = conn.execute(
                sa_text(f"""
                    SELECT c.id,
                           c.content,
                           c.embedding <=> CAST(:qv AS vector) AS distance
                    FROM document_chunks c
                    JOIN documents d ON d.id = c.document_id
                    WHERE {self._scope(document_id)}
                      AND c.embedding <=> CAST(:qv AS vector) < :max_distance
                    ORDER BY distance
                    LIMIT :k
                """),
                {
                    "qv": to_pgvector(query_vector),
                    "model": embedding_model,
                    "doc_id": document_id,
                    "max_distance": max_distance,
                    "k": limit,
                },
            ).mappings().all()
        logger.debug("Semantic search", hits=len(rows), ms=round((perf_counter() - t) * 1000, 2))
        return [SemanticHit(r["id"], r["content"], float(r["distance"])) for r in rows]

    def keyword_search(self, keywords, limit, embedding_model, document_id=None):
        if not keywords:
            return []
        # Terms are alphanumeric after extraction, so OR-ing them is a valid tsquery
        tsquery = " | ".join(keywords)
        t = perf_counter()
        with self.engine.connect() as conn:
            rows = conn.execute(
                sa_text(f"""
                    SELECT c.id,
                           c.content,
                           ts_rank(to_tsvector('english', c.content), to_tsquery('english', :q)) AS rank
                    FROM document_chunks c
                    JOIN documents d ON d.id = c.document_id
                    WHERE {self._scope(document_id)}
                      AND to_tsvector('english', c.content) @@ to_tsquery('english', :q)
                    ORDER BY rank DESC
                    LIMIT :k
                """),
                {"q": tsquery, "model": embedding_model, "doc_id": document_id, "k": limit},
            ).mappings().all()
        logger.debug("Keyword search", hits=len(rows), ms=round((perf_counter() - t) * 1000, 2))
        return [KeywordHit(r["id"], r["content"], float(r["rank"])) for r in rows]


class PortablePassageStore(PassageStore):
    """
    Loads the scoped passages and scores them with numpy.
    Keyword rank is the fraction of keywords found at a word start in the passage.
    """

    def _load(self, embedding_model: str, document_id: Optional[int], with_vectors: bool):
        columns = [Chunk.id, Chunk.content]
        if with_vectors:
            columns.append(Chunk.embedding)
        stmt = (
            select(*columns)
            .join(Document, Document.id == Chunk.document_id)
            .where(Document.status == DocumentStatus.PROCESSED)
            .where(Document.embedding_model == embedding_model)
            .order_by(Chunk.document_id, Chunk.chunk_index)
        )
        if document_id is not None:
            stmt = stmt.where(Chunk.document_id == document_id)
        with self.engine.connect() as conn:
            return conn.execute(stmt).all()

    def semantic_search(self, query_vector, limit, max_distance, embedding_model, document_id=None):
        rows = self._load(embedding_model, document_id, with_vectors=True)
        if not rows:
            return []

        q = np.asarray(query_vector, dtype=np.float32)
        matrix = np.vstack([np.asarray(r.embedding, dtype=np.float32) for r in rows])
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
        with np.errstate(divide="ignore", invalid="ignore"):
            similarity = np.where(norms > 0, matrix @ q / norms, 0.0)
        distances = 1.0 - similarity

        # Stable sort keeps store order among equal distances
        order = np.argsort(distances, kind="stable")
        hits = []
        for idx in order:
            if distances[idx] >= max_distance:
                break
            hits.append(SemanticHit(rows[idx].id, rows[idx].content, float(distances[idx])))
            if len(hits) >= limit:
                break
        return hits

    def keyword_search(self, keywords, limit, embedding_model, document_id=None):
        if not keywords:
            return []
        patterns = [re.compile(r"\b" + re.escape(k), re.IGNORECASE) for k in keywords]
        scored = []
        for row in self._load(embedding_model, document_id, with_vectors=False):
            matched = sum(1 for p in patterns if p.search(row.content))
            if matched:
                scored.append(KeywordHit(row.id, row.content, matched / len(patterns)))
        scored.sort(key=lambda h: h.rank, reverse=True)
        return scored[:limit]


def get_passage_store(engine: Engine) -> PassageStore:
    if engine.dialect.name == "postgresql":
        return PgVectorPassageStore(engine)
    return PortablePassageStore(engine)

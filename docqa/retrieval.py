"""
Hybrid retrieval: vector similarity fused with keyword relevance.
"""
import re
from dataclasses import dataclass
from time import perf_counter
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .config import (
    RETRIEVAL_KEYWORD_WEIGHT,
    RETRIEVAL_MAX_DISTANCE,
    RETRIEVAL_SEMANTIC_WEIGHT,
)
from .embedding import EmbeddingGateway
from .exceptions import NoDocumentsIngestedError
from .logging_config import logger
from .passage_store import PassageStore

STOP_WORDS = frozenset({
    "the", "is", "are", "was", "were", "and", "or", "but", "in", "on", "at",
    "to", "for", "of", "with", "by", "what", "how", "who", "when", "where",
    "which", "why", "does", "did", "can", "you", "your", "this", "that",
    "there", "about", "from", "have", "has", "will", "would", "should",
})

# Question terms mapped to wording documents tend to use
DEFAULT_SYNONYMS: Dict[str, Sequence[str]] = {
    "cost": ("amount", "fee", "charge", "rate", "expense"),
    "price": ("cost", "amount", "fee", "charge"),
    "timing": ("hours", "schedule", "clock", "start", "end"),
    "time": ("hours", "schedule", "clock", "start", "end"),
    "office": ("workplace", "work", "company", "organization"),
    "leave": ("vacation", "holiday", "absence", "pto"),
    "policy": ("rule", "procedure", "guideline", "regulation"),
    "salary": ("pay", "wage", "compensation", "remuneration"),
    "holiday": ("festival", "vacation", "leave"),
}

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


class KeywordExtractor:
    """
    Turns a question into full-text search terms.

    The synonym table is a replaceable policy: pass any mapping of
    term -> related terms. Multi-word synonyms are split into single words.
    """

    def __init__(
        self,
        stop_words: Iterable[str] = STOP_WORDS,
        synonyms: Optional[Mapping[str, Sequence[str]]] = None,
        min_length: int = 3,
    ):
        self.stop_words = frozenset(stop_words)
        self.synonyms = dict(DEFAULT_SYNONYMS if synonyms is None else synonyms)
        self.min_length = min_length

    def extract(self, question: str) -> List[str]:
        words = _NON_ALNUM.sub("", question.lower()).split()
        keywords: List[str] = []
        seen = set()

        def add(term: str):
            if term and term not in seen:
                seen.add(term)
                keywords.append(term)

        for word in words:
            if len(word) < self.min_length or word in self.stop_words:
                continue
            add(word)
            for related in self.synonyms.get(word, ()):
                for part in _NON_ALNUM.sub("", related.lower()).split():
                    add(part)
        return keywords


@dataclass
class RetrievedPassage:
    passage_id: int
    content: str
    score: float
    semantic_score: float = 0.0
    keyword_score: float = 0.0


class HybridRetriever:
    """
    Ranks passages for a question.

    Semantic candidates (cosine distance below ``max_distance``, up to 2 x top_k)
    and keyword candidates (up to top_k) are fused as
    ``semantic_weight * (1 - distance) + keyword_weight * rank``.
    """

    def __init__(
        self,
        store: PassageStore,
        embedder: EmbeddingGateway,
        keyword_extractor: Optional[KeywordExtractor] = None,
        max_distance: float = RETRIEVAL_MAX_DISTANCE,
        semantic_weight: float = RETRIEVAL_SEMANTIC_WEIGHT,
        keyword_weight: float = RETRIEVAL_KEYWORD_WEIGHT,
    ):
        self.store = store
        self.embedder = embedder
        self.keyword_extractor = keyword_extractor or KeywordExtractor()
        self.max_distance = max_distance
        self.semantic_weight = semantic_weight
        self.keyword_weight = keyword_weight

    def retrieve(
        self,
        question: str,
        top_k: int,
        document_id: Optional[int] = None,
        embedding_model: Optional[str] = None,
    ) -> List[str]:
        """Ordered passage texts, best first. Empty when nothing is relevant."""
        return [p.content for p in self.retrieve_scored(question, top_k, document_id, embedding_model)]

    def retrieve_scored(
        self,
        question: str,
        top_k: int,
        document_id: Optional[int] = None,
        embedding_model: Optional[str] = None,
    ) -> List[RetrievedPassage]:
        """
        Raises:
            NoDocumentsIngestedError: no processed passages exist for the scope
        """
        top_k = max(1, top_k)
        model = self.embedder.resolve_model(embedding_model)

        if self.store.count_passages(model, document_id) == 0:
            raise NoDocumentsIngestedError()

        t = perf_counter()
        query_vector = self.embedder.embed_query(question, model)
        keywords = self.keyword_extractor.extract(question)

        semantic_hits = self.store.semantic_search(
            query_vector,
            limit=top_k * 2,
            max_distance=self.max_distance,
            embedding_model=model,
            document_id=document_id,
        )

        if not keywords:
            results = [
                RetrievedPassage(
                    passage_id=h.passage_id,
                    content=h.content,
                    score=max(0.0, 1.0 - h.distance),
                    semantic_score=max(0.0, 1.0 - h.distance),
                )
                for h in semantic_hits[:top_k]
            ]
            logger.info("Retrieved passages", mode="semantic", count=len(results),
                        ms=round((perf_counter() - t) * 1000, 2))
            return results

        keyword_hits = self.store.keyword_search(
            keywords, limit=top_k, embedding_model=model, document_id=document_id
        )

        fused = self.fuse(semantic_hits, keyword_hits)[:top_k]
        logger.info(
            "Retrieved passages",
            mode="hybrid",
            keywords=keywords,
            semantic_candidates=len(semantic_hits),
            keyword_candidates=len(keyword_hits),
            count=len(fused),
            ms=round((perf_counter() - t) * 1000, 2),
        )
        return fused

    def fuse(self, semantic_hits, keyword_hits) -> List[RetrievedPassage]:
        candidates: Dict[int, RetrievedPassage] = {}

        for hit in semantic_hits:
            candidates[hit.passage_id] = RetrievedPassage(
                passage_id=hit.passage_id,
                content=hit.content,
                score=0.0,
                semantic_score=max(0.0, 1.0 - hit.distance),
            )
        for hit in keyword_hits:
            passage = candidates.get(hit.passage_id)
            if passage is None:
                passage = candidates[hit.passage_id] = RetrievedPassage(
                    passage_id=hit.passage_id, content=hit.content, score=0.0
                )
            passage.keyword_score = hit.rank

        for passage in candidates.values():
            passage.score = (
                self.semantic_weight * passage.semantic_score
                + self.keyword_weight * passage.keyword_score
            )

        # sorted() is stable: ties keep semantic order, then keyword-only order
        return sorted(candidates.values(), key=lambda p: p.score, reverse=True)

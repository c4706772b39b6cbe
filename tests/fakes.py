"""Deterministic stand-ins for the embedding and generation backends, plus async helpers."""
import asyncio
import re
import zlib
from typing import List, Optional, Sequence

import numpy as np

from docqa.config import EMBED_DIM
from docqa.embedding import EmbeddingGateway
from docqa.exceptions import EmbeddingError, GenerationError
from docqa.generation import GenerationChunk, GenerationGateway

_WORD = re.compile(r"[a-z0-9]+")


class FakeEmbedder(EmbeddingGateway):
    """Bag-of-words hashed into EMBED_DIM buckets, L2-normalized."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    def embed_texts(self, texts: List[str], model_name: Optional[str] = None) -> List[List[float]]:
        self.resolve_model(model_name)
        self.calls += 1
        if self.fail:
            raise EmbeddingError("embedding backend unavailable")
        vectors = []
        for text in texts:
            vec = np.zeros(EMBED_DIM, dtype=np.float32)
            for word in _WORD.findall(text.lower()):
                vec[zlib.crc32(word.encode("utf-8")) % EMBED_DIM] += 1.0
            norm = np.linalg.norm(vec)
            if norm > 0:
                vec /= norm
            vectors.append(vec.tolist())
        return vectors


class FakeGenerator(GenerationGateway):
    """Streams scripted tokens, optionally failing after ``fail_after`` tokens."""

    provider = "fake"
    model = "scripted"

    def __init__(
        self,
        tokens: Sequence[str] = ("Paris ", "is ", "the ", "capital."),
        done_reason: str = "stop",
        fail_after: Optional[int] = None,
    ):
        self.tokens = list(tokens)
        self.done_reason = done_reason
        self.fail_after = fail_after
        self.prompts: List[str] = []
        self.max_tokens: List[int] = []

    async def stream(self, prompt: str, max_tokens: int):
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        for i, token in enumerate(self.tokens):
            if self.fail_after is not None and i >= self.fail_after:
                raise GenerationError("Connection to Ollama failed")
            yield GenerationChunk(text=token)
        if self.fail_after is not None and self.fail_after >= len(self.tokens):
            raise GenerationError("Connection to Ollama failed")
        yield GenerationChunk(done=True, done_reason=self.done_reason)

    async def is_available(self) -> bool:
        return True


class FakeGenerators:
    """Registry double: every model string resolves to the same generator."""

    def __init__(self, generator: GenerationGateway):
        self.generator = generator

    def get(self, model_string: Optional[str] = None) -> GenerationGateway:
        return self.generator


def run(coro):
    """Drive a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


async def collect(agen):
    return [item async for item in agen]

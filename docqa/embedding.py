import threading
from typing import Dict, List, Optional

import numpy as np

from .config import EMBED_MODEL
from .exceptions import EmbeddingError, UnknownModelError
from .logging_config import logger

# Short model names accepted by the API, mapped to their Hugging Face repos
AVAILABLE_EMBEDDING_MODELS: Dict[str, str] = {
    "all-MiniLM-L6-v2": "sentence-transformers/all-MiniLM-L6-v2",
    "all-MiniLM-L12-v2": "sentence-transformers/all-MiniLM-L12-v2",
    "multi-qa-MiniLM-L6-cos-v1": "sentence-transformers/multi-qa-MiniLM-L6-cos-v1",
}


class EmbeddingGateway:
    """Maps text to fixed-length vectors. Subclasses implement ``embed_texts``."""

    default_model: str = EMBED_MODEL

    def available_models(self) -> List[str]:
        return list(AVAILABLE_EMBEDDING_MODELS)

    def resolve_model(self, model_name: Optional[str] = None) -> str:
        name = model_name or self.default_model
        if name not in self.available_models():
            raise UnknownModelError(f"Unknown embedding model: {name}")
        return name

    def embed_texts(self, texts: List[str], model_name: Optional[str] = None) -> List[List[float]]:
        raise NotImplementedError

    def embed_query(self, text: str, model_name: Optional[str] = None) -> List[float]:
        return self.embed_texts([text], model_name)[0]


class SentenceTransformerEmbedder(EmbeddingGateway):
    """
    Local sentence-transformers models, loaded lazily and cached per model name.
    The model is always chosen per call; nothing here switches a shared "current" model.
    """

    def __init__(self, default_model: str = EMBED_MODEL):
        self.default_model = default_model
        self._models = {}
        self._lock = threading.Lock()

    def preload(self, model_name: Optional[str] = None):
        """Load a model ahead of the first request and warm it up."""
        model = self._get_model(self.resolve_model(model_name))
        model.encode(["test"], normalize_embeddings=True, show_progress_bar=False)
        return model

    def _get_model(self, name: str):
        model = self._models.get(name)
        if model is not None:
            return model
        with self._lock:
            model = self._models.get(name)
            if model is None:
                repo = AVAILABLE_EMBEDDING_MODELS[name]
                logger.info("Loading embedding model", model=name, repo=repo)
                try:
                    from sentence_transformers import SentenceTransformer

                    # Explicit tokenizer settings avoid a FutureWarning on load
                    model = SentenceTransformer(
                        repo,
                        tokenizer_kwargs={"clean_up_tokenization_spaces": False},
                    )
                except Exception as e:
                    raise EmbeddingError(f"Embedding model {name} is unavailable: {e}") from e
                self._models[name] = model
                logger.info("Embedding model loaded", model=name)
        return model

    def embed_texts(self, texts: List[str], model_name: Optional[str] = None) -> List[List[float]]:
        if not texts:
            return []
        name = self.resolve_model(model_name)
        model = self._get_model(name)
        try:
            vecs = model.encode(texts, normalize_embeddings=True, show_progress_bar=False)
        except Exception as e:
            raise EmbeddingError(f"Embedding failed with model {name}: {e}") from e
        if isinstance(vecs, np.ndarray):
            vecs = vecs.tolist()
        else:
            vecs = [list(v) for v in vecs]
        if len(vecs) != len(texts):
            raise EmbeddingError(
                f"Embedding model {name} returned {len(vecs)} vectors for {len(texts)} texts"
            )
        return vecs

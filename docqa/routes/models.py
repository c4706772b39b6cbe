"""
Model-related API routes.
Handles listing available models and backend status.
"""
from fastapi import APIRouter, Depends

from ..dependencies import get_embedder, get_generators
from ..embedding import EmbeddingGateway
from ..exceptions import DocQAError
from ..logging_config import logger
from ..services.model_service import GeneratorRegistry, get_available_models, get_embedding_models

router = APIRouter(prefix="/api", tags=["models"])


@router.get("/models")
async def list_available_models():
    """
    Return all supported models.

    Example response:
    {
        "generation": {"ollama": ["llama3:8b"], "openai": ["gpt-4o-mini"]},
        "embedding": ["all-MiniLM-L6-v2", "all-MiniLM-L12-v2", "multi-qa-MiniLM-L6-cos-v1"]
    }
    """
    return {
        "generation": get_available_models(),
        "embedding": get_embedding_models(),
    }


@router.get("/status")
async def status(
    embedder: EmbeddingGateway = Depends(get_embedder),
    generators: GeneratorRegistry = Depends(get_generators),
):
    """Reachability of the default generation backend and the active embedding defaults."""
    try:
        generator = generators.get()
        available = await generator.is_available()
        provider, model = generator.provider, generator.model
    except DocQAError as e:
        logger.warning("Default generator unavailable", error=str(e))
        available, provider, model = False, None, None

    return {
        "generator": {"provider": provider, "model": model, "available": available},
        "embedding_model": embedder.default_model,
        "embedding_models": embedder.available_models(),
        "generation_models": get_available_models(),
    }

"""
Model service for generation and embedding model management.
Handles model resolution and listing available models.
"""
from typing import Dict, List, Optional, Tuple

from .. import config
from ..embedding import AVAILABLE_EMBEDDING_MODELS
from ..exceptions import UnknownModelError
from ..generation import GenerationGateway
from ..ollama_client import OllamaClient
from ..openai_client import OpenAIClient

# Model registry
AVAILABLE_MODELS = {
    "ollama": list(dict.fromkeys([config.OLLAMA_MODEL, *config.OLLAMA_DEFAULT_MODELS])),
    "openai": [config.OPENAI_MODEL],
}

DEFAULT_MODELS = {
    "ollama": config.OLLAMA_MODEL,
    "openai": config.OPENAI_MODEL,
}


def get_available_models() -> Dict[str, List[str]]:
    """
    Get all available generation models grouped by provider.

    Returns:
        Dictionary with provider names as keys and model lists as values
    """
    return AVAILABLE_MODELS


def get_embedding_models() -> List[str]:
    return list(AVAILABLE_EMBEDDING_MODELS)


def resolve_model(model_string: Optional[str] = None) -> Tuple[str, str]:
    """
    Resolve a model string to provider and model name.

    Args:
        model_string: Format "provider:model_name" (e.g., "ollama:llama3:8b")
                     or None for the default provider

    Returns:
        Tuple of (provider, model_name)

    Raises:
        UnknownModelError: provider prefix or model is not registered

    Examples:
        >>> resolve_model("openai:gpt-4o-mini")
        ("openai", "gpt-4o-mini")

        >>> resolve_model("ollama:llama3:8b")
        ("ollama", "llama3:8b")
    """
    if not model_string:
        provider = config.DEFAULT_PROVIDER
        return provider, DEFAULT_MODELS[provider]

    provider, sep, model_name = model_string.partition(":")
    if not sep or not model_name:
        raise UnknownModelError(f"Model must look like 'provider:model', got {model_string!r}")
    if not validate_model(provider, model_name):
        raise UnknownModelError(f"Unknown model: {model_string}")
    return provider, model_name


def validate_model(provider: str, model_name: str) -> bool:
    """
    Check if a model is available in the registry.
    """
    return (
        provider in AVAILABLE_MODELS
        and model_name in AVAILABLE_MODELS[provider]
    )


class GeneratorRegistry:
    """Hands out one gateway instance per (provider, model)."""

    def __init__(self):
        self._gateways: Dict[Tuple[str, str], GenerationGateway] = {}

    def get(self, model_string: Optional[str] = None) -> GenerationGateway:
        provider, model_name = resolve_model(model_string)
        key = (provider, model_name)
        gateway = self._gateways.get(key)
        if gateway is None:
            if provider == "openai":
                gateway = OpenAIClient(model=model_name)
            else:
                gateway = OllamaClient(model=model_name)
            self._gateways[key] = gateway
        return gateway

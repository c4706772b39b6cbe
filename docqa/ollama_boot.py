"""
Make sure the configured Ollama models are present before serving requests.
Never fatal: when Ollama is unreachable the API still starts.
"""
import asyncio
import time
from typing import Iterable, List, Optional

import aiohttp

from . import config
from .logging_config import logger

PULL_TIMEOUT_SEC = 600


async def _wait_for_tags(session: aiohttp.ClientSession, base_url: str, wait_sec: int) -> Optional[List[str]]:
    """Poll /api/tags until it answers; returns the installed model names or None on timeout."""
    deadline = time.monotonic() + wait_sec
    while True:
        try:
            async with session.get(f"{base_url}/api/tags", timeout=aiohttp.ClientTimeout(total=3)) as r:
                if r.ok:
                    data = await r.json()
                    return [m.get("name") or "" for m in data.get("models", [])]
        except (aiohttp.ClientError, asyncio.TimeoutError):
            pass
        if time.monotonic() >= deadline:
            return None
        await asyncio.sleep(1.0)


async def _pull(session: aiohttp.ClientSession, base_url: str, name: str):
    """Non-streaming pull; returns once Ollama reports success."""
    async with session.post(
        f"{base_url}/api/pull",
        json={"name": name, "stream": False},
        timeout=aiohttp.ClientTimeout(total=PULL_TIMEOUT_SEC),
    ) as r:
        r.raise_for_status()


async def ensure_ollama_models(
    models: Optional[Iterable[str]] = None,
    base_url: str = config.OLLAMA_URL,
    wait_sec: int = 90,
) -> List[str]:
    """
    Pull every requested model that Ollama does not have yet.

    Returns:
        Names of the models that were pulled
    """
    wanted = list(models) if models is not None else config.OLLAMA_DEFAULT_MODELS
    pulled: List[str] = []

    async with aiohttp.ClientSession() as session:
        installed = await _wait_for_tags(session, base_url, wait_sec)
        if installed is None:
            logger.warning("Ollama not reachable; skipping model pre-pull", url=base_url)
            return pulled

        for model in wanted:
            if any(name.startswith(model) for name in installed):
                logger.info("Ollama model present", model=model)
                continue
            logger.info("Pulling missing Ollama model", model=model)
            try:
                await _pull(session, base_url, model)
                pulled.append(model)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                # Ollama pulls on first use anyway
                logger.warning("Failed to pull Ollama model", model=model, error=str(e))
    return pulled

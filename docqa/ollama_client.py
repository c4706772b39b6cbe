import asyncio
import json
import os
from typing import AsyncGenerator, Dict

import aiohttp

from . import config
from .exceptions import GenerationError
from .generation import GenerationChunk, GenerationGateway, GenerationResult
from .logging_config import logger


class OllamaClient(GenerationGateway):
    """
    Text generation against Ollama's /api/generate endpoint.
    Streaming responses are newline-delimited JSON objects.
    """

    provider = "ollama"

    def __init__(
        self,
        model: str = config.OLLAMA_MODEL,
        base_url: str = config.OLLAMA_URL,
        connect_timeout: float = config.OLLAMA_CONNECT_TIMEOUT,
        read_timeout: float = config.OLLAMA_READ_TIMEOUT,
        num_ctx: int = config.LLM_NUM_CTX,
        num_batch: int = config.LLM_NUM_BATCH,
        num_thread: int = config.LLM_NUM_THREAD,
        stop_sequences_enabled: bool = config.LLM_STOP_SEQUENCES_ENABLED,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.num_ctx = num_ctx
        self.num_batch = num_batch
        self.num_thread = num_thread
        self.stop_sequences_enabled = stop_sequences_enabled

    def _options(self, max_tokens: int) -> Dict:
        options = {
            "temperature": 0.2,
            "top_p": 0.7,
            "top_k": 20,
            "repeat_penalty": 1.1,
            "num_ctx": self.num_ctx,
            "num_thread": self.num_thread if self.num_thread > 0 else (os.cpu_count() or 1),
            "num_batch": self.num_batch,
            "num_predict": max_tokens,
        }
        if self.stop_sequences_enabled:
            # Keeps the model from echoing the prompt scaffolding
            options["stop"] = ["Question:", "Context:"]
        return options

    def _body(self, prompt: str, max_tokens: int, stream: bool) -> Dict:
        return {
            "model": self.model,
            "prompt": prompt,
            "stream": stream,
            "keep_alive": -1,
            "options": self._options(max_tokens),
        }

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=None, connect=self.connect_timeout, sock_read=self.read_timeout)

    async def generate(self, prompt: str, max_tokens: int) -> GenerationResult:
        logger.info("Sent request to Ollama", model=self.model, num_predict=max_tokens, stream=False)
        try:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.post(
                    f"{self.base_url}/api/generate",
                    json=self._body(prompt, max_tokens, stream=False),
                ) as resp:
                    if resp.status != 200:
                        detail = await resp.text()
                        raise GenerationError(f"Ollama returned HTTP {resp.status}: {detail[:200]}")
                    data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise GenerationError(
                f"Connection to Ollama failed. Please ensure Ollama is running with {self.model}. Error: {e}"
            ) from e

        if "response" not in data:
            raise GenerationError(data.get("error") or f"Unable to generate response with {self.model}")
        done_reason = data.get("done_reason", "unknown")
        logger.info("Ollama responded", done_reason=done_reason, eval_count=data.get("eval_count", -1))
        return GenerationResult(data["response"], done_reason)

    async def stream(self, prompt: str, max_tokens: int) -> AsyncGenerator[GenerationChunk, None]:
        """
        Yield tokens as Ollama produces them.
        Leaving the generator early (client disconnect) closes the HTTP request.
        """
        logger.info("Sent request to Ollama", model=self.model, num_predict=max_tokens, stream=True)
        try:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.post(
                    f"{self.base_url}/api/generate",
                    json=self._body(prompt, max_tokens, stream=True),
                ) as resp:
                    if resp.status != 200:
                        detail = await resp.text()
                        raise GenerationError(f"Ollama returned HTTP {resp.status}: {detail[:200]}")

                    async for raw in resp.content:
                        line = raw.decode("utf-8").strip()
                        if not line:
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError as e:
                            raise GenerationError(f"Malformed stream line from Ollama: {line[:100]}") from e
                        if data.get("error"):
                            raise GenerationError(f"Ollama error: {data['error']}")

                        token = data.get("response") or ""
                        if token:
                            yield GenerationChunk(text=token)
                        if data.get("done"):
                            done_reason = data.get("done_reason", "unknown")
                            logger.info("Stream finished", done_reason=done_reason,
                                        eval_count=data.get("eval_count", -1))
                            yield GenerationChunk(done=True, done_reason=done_reason)
                            return
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise GenerationError(
                f"Connection to Ollama failed. Please ensure Ollama is running with {self.model}. Error: {e}"
            ) from e

        logger.warning("Stream ended without done marker", model=self.model)
        yield GenerationChunk(done=True, done_reason="missing_done")

    async def is_available(self) -> bool:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(self.base_url, timeout=aiohttp.ClientTimeout(total=3)) as r:
                    return r.ok
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return False

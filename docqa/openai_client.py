from typing import AsyncGenerator, Optional

import openai
from openai import AsyncOpenAI

from . import config
from .exceptions import GenerationError
from .generation import GenerationChunk, GenerationGateway
from .logging_config import logger


class OpenAIClient(GenerationGateway):
    """Chat-completions backend; the prompt is sent as a single user turn."""

    provider = "openai"

    def __init__(self, model: str = config.OPENAI_MODEL, api_key: Optional[str] = None):
        self.model = model
        self._api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise GenerationError("OPENAI_API_KEY is not set. Put it in env or .env (server-side only).")
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def stream(self, prompt: str, max_tokens: int) -> AsyncGenerator[GenerationChunk, None]:
        logger.info("Sent request to OpenAI API", model=self.model, max_tokens=max_tokens)
        finish_reason = None
        try:
            stream_response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.2,
                max_tokens=max_tokens,
                stream=True,
            )
            async for chunk in stream_response:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta.content or ""
                if delta:
                    yield GenerationChunk(text=delta)
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        except openai.OpenAIError as e:
            raise GenerationError(f"OpenAI request failed: {e}") from e

        yield GenerationChunk(done=True, done_reason=finish_reason or "stop")

    async def is_available(self) -> bool:
        return bool(self._api_key)

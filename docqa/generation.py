"""
Generation gateway contract shared by the Ollama and OpenAI clients.

``stream`` yields text chunks in generation order and finishes with exactly one
chunk whose ``done`` flag is set, or raises ``GenerationError``. Nothing is
yielded after the done chunk.
"""
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

# done_reason reported when the backend stopped at the token limit
TRUNCATED_AT_LIMIT = "length"


@dataclass(frozen=True)
class GenerationChunk:
    text: str = ""
    done: bool = False
    done_reason: Optional[str] = None


@dataclass(frozen=True)
class GenerationResult:
    text: str
    done_reason: Optional[str] = None

    @property
    def truncated(self) -> bool:
        return self.done_reason == TRUNCATED_AT_LIMIT


class GenerationGateway:
    provider = "unknown"
    model = ""

    async def generate(self, prompt: str, max_tokens: int) -> GenerationResult:
        """Blocking variant built on ``stream``; clients may override it."""
        parts: List[str] = []
        done_reason = None
        async for chunk in self.stream(prompt, max_tokens):
            if chunk.text:
                parts.append(chunk.text)
            if chunk.done:
                done_reason = chunk.done_reason
        return GenerationResult("".join(parts), done_reason)

    def stream(self, prompt: str, max_tokens: int) -> AsyncIterator[GenerationChunk]:
        raise NotImplementedError

    async def is_available(self) -> bool:
        return True

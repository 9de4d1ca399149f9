"""LLM Module - contract required from the generative AI backend."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Protocol

from personalized_eval.modules.prompts.interface import PromptResult

# Receives each streamed text chunk; may be a plain function or a coroutine function
ChunkHandler = Callable[[str], Awaitable[None] | None]


@dataclass
class AIRequestOptions:
    """Per-request options for the AI backend."""

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    response_format: Literal["json", "text"] = "json"
    # Continuation token from an earlier response in the same thread
    previous_response_id: str | None = None


@dataclass
class AIResponse:
    """Response from the AI backend."""

    response_id: str | None
    data: Any  # Parsed JSON object for "json" requests, text otherwise
    model: str | None = None
    usage: dict[str, int] = field(default_factory=dict)
    raw_text: str | None = None


class IAIClient(Protocol):
    """Interface for the generative AI backend."""

    async def send_structured_request(
        self,
        prompt: PromptResult,
        options: AIRequestOptions,
    ) -> AIResponse:
        """Send a prompt and wait for the full response.

        Args:
            prompt: Canonical prompt (input + optional instructions)
            options: Model, temperature, response format, continuation token

        Returns:
            AIResponse with the response id and parsed payload
        """
        ...

    async def stream_request(
        self,
        prompt: PromptResult,
        options: AIRequestOptions,
        on_chunk: ChunkHandler,
    ) -> str | None:
        """Stream a response, delivering text chunks to ``on_chunk``.

        Returns:
            The response id of the completed response, if any
        """
        ...

"""LLM Service - Anthropic Claude API wrapper.

The Messages API is stateless, so conversation continuity is emulated: every
response's transcript is kept in a bounded LRU cache under the response id,
and a request naming that id as ``previous_response_id`` replays it before
the new user turn.
"""

import inspect
import json
import logging
import re
from collections import OrderedDict
from typing import Any

from anthropic import AsyncAnthropic

from personalized_eval.modules.llm.interface import (
    AIRequestOptions,
    AIResponse,
    ChunkHandler,
)
from personalized_eval.modules.prompts.interface import PromptResult
from personalized_eval.shared.config import get_settings
from personalized_eval.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def parse_json_payload(text: str) -> Any:
    """Parse a JSON payload from model output.

    Accepts bare JSON, JSON wrapped in a markdown code fence, or JSON
    surrounded by stray prose.

    Raises:
        ValueError: If no JSON object can be recovered
    """
    cleaned = text.strip()
    fenced = _CODE_FENCE.match(cleaned)
    if fenced:
        cleaned = fenced.group(1).strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError:
            pass

    raise ValueError(f"Response is not valid JSON: {cleaned[:200]!r}")


def _text_of(message: Any) -> str:
    return "".join(
        block.text for block in message.content
        if getattr(block, "type", None) == "text"
    )


class AnthropicAIClient:
    """AI backend client for Anthropic Claude."""

    def __init__(
        self,
        api_key: str | None = None,
        client: AsyncAnthropic | None = None,
        transcript_cache_size: int | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Anthropic API key, defaults to ANTHROPIC_API_KEY
            client: Pre-built SDK client (tests inject a mock here)
            transcript_cache_size: Number of transcripts kept for replay

        Raises:
            ConfigurationError: If no client is given and no API key is configured
        """
        settings = get_settings()
        if client is None:
            key = api_key or settings.anthropic_api_key
            if not key:
                raise ConfigurationError("ANTHROPIC_API_KEY is not configured")
            client = AsyncAnthropic(api_key=key)

        self.client = client
        self.default_model = settings.default_model
        self.max_tokens = settings.max_tokens
        self.default_temperature = settings.temperature
        self._cache_size = transcript_cache_size or settings.transcript_cache_size
        self._transcripts: OrderedDict[str, list[dict[str, Any]]] = OrderedDict()

    # ===================
    # Transcript cache
    # ===================

    def _history(self, previous_response_id: str | None) -> list[dict[str, Any]]:
        if not previous_response_id:
            return []
        transcript = self._transcripts.get(previous_response_id)
        if transcript is None:
            logger.warning(
                "Unknown previous response id, starting a fresh transcript",
                extra={"previous_response_id": previous_response_id},
            )
            return []
        self._transcripts.move_to_end(previous_response_id)
        return list(transcript)

    def _remember(self, response_id: str | None, transcript: list[dict[str, Any]]) -> None:
        if not response_id:
            return
        self._transcripts[response_id] = transcript
        self._transcripts.move_to_end(response_id)
        while len(self._transcripts) > self._cache_size:
            self._transcripts.popitem(last=False)

    def _messages(self, prompt: PromptResult, previous_response_id: str | None) -> list[dict[str, Any]]:
        if isinstance(prompt.input, str):
            turn = [{"role": "user", "content": prompt.input}]
        else:
            turn = [dict(message) for message in prompt.input]
        return self._history(previous_response_id) + turn

    def _request_kwargs(
        self,
        prompt: PromptResult,
        options: AIRequestOptions,
        messages: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return {
            "model": options.model or self.default_model,
            "max_tokens": options.max_tokens or self.max_tokens,
            "temperature": (
                options.temperature if options.temperature is not None else self.default_temperature
            ),
            "system": prompt.instructions or "",
            "messages": messages,
        }

    # ===================
    # IAIClient
    # ===================

    async def send_structured_request(
        self,
        prompt: PromptResult,
        options: AIRequestOptions,
    ) -> AIResponse:
        """Send a prompt and return the parsed response.

        Args:
            prompt: Canonical prompt
            options: Request options

        Returns:
            AIResponse whose ``data`` is the parsed JSON object for
            ``response_format="json"`` and the raw text otherwise

        Raises:
            ValueError: If a JSON response cannot be parsed
            anthropic.APIError: If the API call fails
        """
        messages = self._messages(prompt, options.previous_response_id)
        response = await self.client.messages.create(
            **self._request_kwargs(prompt, options, messages)
        )

        text = _text_of(response)
        self._remember(response.id, messages + [{"role": "assistant", "content": text}])

        data = parse_json_payload(text) if options.response_format == "json" else text
        logger.debug(
            "AI request completed",
            extra={"response_id": response.id, "model": response.model},
        )
        return AIResponse(
            response_id=response.id,
            data=data,
            model=response.model,
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
            raw_text=text,
        )

    async def stream_request(
        self,
        prompt: PromptResult,
        options: AIRequestOptions,
        on_chunk: ChunkHandler,
    ) -> str | None:
        """Stream completion chunks to ``on_chunk``.

        Returns:
            Id of the final message
        """
        messages = self._messages(prompt, options.previous_response_id)
        chunks: list[str] = []

        async with self.client.messages.stream(
            **self._request_kwargs(prompt, options, messages)
        ) as stream:
            async for text in stream.text_stream:
                chunks.append(text)
                result = on_chunk(text)
                if inspect.isawaitable(result):
                    await result
            final = await stream.get_final_message()

        self._remember(final.id, messages + [{"role": "assistant", "content": "".join(chunks)}])
        return final.id


# Singleton instance
_ai_client: AnthropicAIClient | None = None


def get_ai_client() -> AnthropicAIClient:
    """Get AI client singleton."""
    global _ai_client
    if _ai_client is None:
        _ai_client = AnthropicAIClient()
    return _ai_client

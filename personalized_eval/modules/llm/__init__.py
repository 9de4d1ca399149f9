"""LLM Module - generative AI backend adapter."""

from personalized_eval.modules.llm.interface import (
    AIRequestOptions,
    AIResponse,
    ChunkHandler,
    IAIClient,
)
from personalized_eval.modules.llm.service import (
    AnthropicAIClient,
    get_ai_client,
    parse_json_payload,
)

__all__ = [
    "AIRequestOptions",
    "AIResponse",
    "AnthropicAIClient",
    "ChunkHandler",
    "IAIClient",
    "get_ai_client",
    "parse_json_payload",
]

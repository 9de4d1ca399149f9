"""Prompts Module - registry, builders, guidance and category weights."""

from personalized_eval.modules.prompts.interface import PromptBuilder, PromptKind, PromptResult
from personalized_eval.modules.prompts.registry import (
    PromptBuilderRegistry,
    build_prompt,
    get_prompt_registry,
    normalize_prompt_result,
)
from personalized_eval.modules.prompts.schemas import EvaluationHistory
from personalized_eval.modules.prompts.weights import select_category_weights

__all__ = [
    "EvaluationHistory",
    "PromptBuilder",
    "PromptBuilderRegistry",
    "PromptKind",
    "PromptResult",
    "build_prompt",
    "get_prompt_registry",
    "normalize_prompt_result",
    "select_category_weights",
]

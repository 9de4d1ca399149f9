"""Shared configuration, constants, errors and infrastructure helpers."""

from personalized_eval.shared.config import Settings, get_settings
from personalized_eval.shared.exceptions import (
    BuilderNotFoundError,
    ConfigurationError,
    ConversationStateNotFoundError,
    GenerationError,
    InvalidBuilderError,
    NotFoundError,
    PersonalizedEvalException,
    PromptConstructionError,
    StateStoreError,
    ValidationError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Errors
    "PersonalizedEvalException",
    "ValidationError",
    "NotFoundError",
    "ConversationStateNotFoundError",
    "BuilderNotFoundError",
    "InvalidBuilderError",
    "PromptConstructionError",
    "GenerationError",
    "StateStoreError",
    "ConfigurationError",
]

"""Shared exceptions for the evaluation core.

Every error raised across module boundaries derives from
``PersonalizedEvalException`` so callers can handle the whole family in one
place and still branch on ``code`` for the specific kind.
"""

from typing import Any


class PersonalizedEvalException(Exception):
    """Base exception for all package errors."""

    code = "error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# ===================
# Validation Errors
# ===================

class ValidationError(PersonalizedEvalException):
    """Raised when required input is missing or malformed."""

    code = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(
            f"Validation error for '{field}': {message}",
            {"field": field}
        )
        self.field = field


# ===================
# Resource Errors
# ===================

class NotFoundError(PersonalizedEvalException):
    """Raised when a referenced resource does not exist."""

    code = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            {"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class ConversationStateNotFoundError(NotFoundError):
    """Raised when a conversation state id is unknown to the store."""

    def __init__(self, state_id: str) -> None:
        super().__init__("ConversationState", state_id)


# ===================
# Prompt Errors
# ===================

class PromptError(PersonalizedEvalException):
    """Base class for prompt registry and builder errors."""

    code = "prompt_error"


class BuilderNotFoundError(PromptError):
    """Raised when no builder is registered for a prompt kind."""

    code = "builder_not_found"

    def __init__(self, kind: str) -> None:
        super().__init__(
            f"No prompt builder registered for kind: {kind}",
            {"kind": kind}
        )
        self.kind = kind


class InvalidBuilderError(PromptError):
    """Raised when something that cannot build prompts is registered."""

    code = "invalid_builder"

    def __init__(self, kind: str, reason: str) -> None:
        super().__init__(
            f"Invalid builder for '{kind}': {reason}",
            {"kind": kind}
        )
        self.kind = kind


class PromptConstructionError(PromptError):
    """Raised when a builder fails or returns an unrecognizable shape."""

    code = "prompt_construction_error"

    def __init__(
        self,
        message: str,
        kind: str | None = None,
        raw_result: Any = None,
    ) -> None:
        details: dict[str, Any] = {}
        if kind is not None:
            details["kind"] = kind
        if raw_result is not None:
            details["raw_result"] = raw_result
        super().__init__(message, details)
        self.kind = kind
        self.raw_result = raw_result


# ===================
# Integration Errors
# ===================

class ExternalServiceError(PersonalizedEvalException):
    """Raised when an external service call fails."""

    code = "external_service_error"

    def __init__(
        self,
        service: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"External service error ({service}): {message}",
            {"service": service, **(details or {})}
        )


class GenerationError(ExternalServiceError):
    """Raised when the AI backend fails or returns an unusable payload."""

    code = "generation_error"

    def __init__(
        self,
        message: str,
        challenge_id: str | None = None,
        user_id: str | None = None,
    ) -> None:
        super().__init__(
            "AI",
            message,
            {"challenge_id": challenge_id, "user_id": user_id},
        )
        self.challenge_id = challenge_id
        self.user_id = user_id


# ===================
# Infrastructure Errors
# ===================

class StateStoreError(PersonalizedEvalException):
    """Raised when the conversation state backend cannot be read or written."""

    code = "state_store_error"


class ConfigurationError(PersonalizedEvalException):
    """Raised when there's a configuration problem."""

    code = "configuration_error"

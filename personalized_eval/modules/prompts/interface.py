"""Prompts Module - builder interface and the canonical prompt shape."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any


class PromptKind(str, Enum):
    """Kinds of prompts the registry can build."""

    EVALUATION = "evaluation"
    CHALLENGE = "challenge"
    FOCUS_AREA = "focus_area"
    PERSONALITY = "personality"

    @classmethod
    def parse(cls, value: "str | PromptKind") -> "PromptKind | None":
        """Look up a kind by value, ignoring case. Returns None if unknown."""
        if isinstance(value, PromptKind):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class PromptResult:
    """Canonical builder output.

    ``input`` is either prompt text or a list of chat messages and is never
    empty. ``instructions`` is the system message, or None when the kind
    has no dedicated one.
    """

    input: str | list[dict[str, Any]]
    instructions: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"input": self.input, "instructions": self.instructions}


class PromptBuilder(ABC):
    """Base class for prompt builders.

    Subclasses declare the ``kind`` they serve, validate their raw
    parameters into a typed schema and turn it into a PromptResult.
    """

    kind: PromptKind

    @abstractmethod
    def validate(self, params: dict[str, Any]) -> Any:
        """Validate raw parameters.

        Args:
            params: Builder parameters, camelCase or snake_case keys

        Returns:
            Validated parameter model

        Raises:
            ValidationError: If required parameters are missing or malformed
        """
        pass

    @abstractmethod
    def build(self, params: dict[str, Any]) -> PromptResult:
        """Build the prompt for the given parameters.

        Raises:
            ValidationError: If parameters are invalid
            PromptConstructionError: If the prompt cannot be assembled
        """
        pass

"""Shared plumbing for the built-in prompt builders."""

import logging
from abc import abstractmethod
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel

from personalized_eval.modules.prompts.interface import PromptBuilder, PromptResult
from personalized_eval.modules.prompts.schemas import validate_params
from personalized_eval.shared.exceptions import PromptConstructionError, ValidationError

logger = logging.getLogger(__name__)

ParamsT = TypeVar("ParamsT", bound=BaseModel)

JSON_OUTPUT_STANDARDS = (
    "### OUTPUT REQUIREMENTS\n"
    "- Respond with a single valid JSON object and nothing else.\n"
    "- Do not wrap the JSON in markdown code fences or add commentary.\n"
    "- Use the camelCase keys exactly as shown in the response format.\n"
    "- Use numbers, not strings, for every score."
)


def join_sections(*sections: str | None) -> str:
    """Join non-empty prompt sections with blank lines."""
    return "\n\n".join(s.strip() for s in sections if s and s.strip())


def bullet_list(label: str, values: list[Any]) -> str | None:
    if not values:
        return None
    return f"{label}: {', '.join(str(v) for v in values)}"


def rating_section(title: str, ratings: dict[str, Any]) -> str | None:
    """Render a 1-10 rating table as a titled bullet list."""
    if not ratings:
        return None
    lines = [f"### {title} (1-10 scale)"]
    lines.extend(f"- {name}: {score}" for name, score in ratings.items())
    return "\n".join(lines)


class SchemaPromptBuilder(PromptBuilder, Generic[ParamsT]):
    """Builder that validates against a pydantic schema before composing.

    Subclasses set ``kind`` and ``schema`` and implement ``compose``.
    Unexpected failures while composing surface as PromptConstructionError.
    """

    schema: ClassVar[type[BaseModel]]

    def validate(self, params: dict[str, Any]) -> ParamsT:
        return validate_params(self.schema, params)

    def build(self, params: dict[str, Any]) -> PromptResult:
        validated = self.validate(params)
        try:
            return self.compose(validated)
        except (ValidationError, PromptConstructionError):
            raise
        except Exception as e:
            logger.error(f"Error building {self.kind.value} prompt: {e}", exc_info=True)
            raise PromptConstructionError(
                f"Failed to build {self.kind.value} prompt: {e}",
                kind=self.kind.value,
            ) from e

    @abstractmethod
    def compose(self, params: ParamsT) -> PromptResult:
        """Render validated parameters into a prompt."""

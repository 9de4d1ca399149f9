"""Built-in prompt builders, one per PromptKind."""

from personalized_eval.modules.prompts.builders.base import SchemaPromptBuilder
from personalized_eval.modules.prompts.builders.challenge import ChallengePromptBuilder
from personalized_eval.modules.prompts.builders.evaluation import EvaluationPromptBuilder
from personalized_eval.modules.prompts.builders.focus_area import FocusAreaPromptBuilder
from personalized_eval.modules.prompts.builders.personality import PersonalityPromptBuilder


def default_builders() -> list[SchemaPromptBuilder]:
    """Fresh instances of every built-in builder."""
    return [
        EvaluationPromptBuilder(),
        ChallengePromptBuilder(),
        FocusAreaPromptBuilder(),
        PersonalityPromptBuilder(),
    ]


__all__ = [
    "ChallengePromptBuilder",
    "EvaluationPromptBuilder",
    "FocusAreaPromptBuilder",
    "PersonalityPromptBuilder",
    "SchemaPromptBuilder",
    "default_builders",
]

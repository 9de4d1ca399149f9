"""Pydantic schemas for prompt builder parameters.

Builders receive loosely shaped dictionaries from callers. These models accept
both camelCase and snake_case keys, tolerate unknown fields, and reject
missing required input with a ValidationError before any prompt text is
produced.
"""

import json
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel, to_snake

from personalized_eval.shared.constants import DEFAULT_CREATIVE_VARIATION, DEFAULT_FOCUS_AREA_COUNT
from personalized_eval.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from personalized_eval.modules.context.interface import UserContext


class PromptSchema(BaseModel):
    """Base for builder parameter models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_params(model: type[ModelT], params: Any) -> ModelT:
    """Validate builder parameters, translating pydantic errors.

    Args:
        model: Schema to validate against
        params: Raw parameters (mapping or model instance)

    Returns:
        Validated model instance

    Raises:
        ValidationError: For the first offending field
    """
    if isinstance(params, model):
        return params
    if params is None:
        raise ValidationError("params", "Prompt parameters are required")
    if isinstance(params, BaseModel):
        params = params.model_dump(by_alias=True)

    try:
        return model.model_validate(params)
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = ".".join(to_snake(str(part)) for part in first.get("loc", ()))
        raise ValidationError(loc or "params", first.get("msg", "invalid value")) from e


def as_list(value: Any) -> list[Any]:
    """Coerce a scalar, sequence or mapping (its keys) into a list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    if isinstance(value, dict):
        return list(value.keys())
    return [value]


# ===================
# Shared pieces
# ===================

class ChallengeContent(PromptSchema):
    """Structured challenge body."""

    context: str | None = None
    scenario: str | None = None
    instructions: str | None = None


class ChallengeInfo(PromptSchema):
    """Challenge being answered or referenced."""

    id: str | None = None
    title: str | None = None
    challenge_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("challengeType", "challenge_type", "challengeTypeCode", "type"),
    )
    format_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("formatType", "format_type", "formatTypeCode", "format"),
    )
    focus_area: str | None = None
    difficulty: str | None = None
    content: ChallengeContent | str | None = None
    score: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if value is not None else None


class UserInfo(PromptSchema):
    """User profile as seen by prompt builders."""

    id: str | None = None
    name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("name", "fullName", "full_name"),
    )
    email: str | None = None
    skill_level: str | None = None
    professional_title: str | None = Field(
        default=None,
        validation_alias=AliasChoices("professionalTitle", "professional_title", "profession"),
    )
    location: str | None = None
    focus_areas: list[str] = Field(default_factory=list)
    learning_goals: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    completed_challenges: int | None = None
    learning_style: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "learningStyle", "learning_style", "preferredLearningStyle", "preferred_learning_style"
        ),
    )
    communication_style: str | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)
    dominant_traits: list[str] = Field(default_factory=list)
    existing_traits: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("existingTraits", "existing_traits"),
    )
    ai_attitudes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @field_validator("focus_areas", "learning_goals", "interests", "dominant_traits", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> list[Any]:
        return as_list(value)

    @property
    def feedback_style(self) -> str | None:
        return self.preferences.get("feedbackStyle") or self.preferences.get("feedback_style")

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_defaults=True)


class PersonalityProfile(PromptSchema):
    """Personality signals that adjust tone and emphasis."""

    communication_style: str | None = None
    traits: list[str] = Field(default_factory=list)

    @field_validator("traits", mode="before")
    @classmethod
    def _coerce_traits(cls, value: Any) -> list[Any]:
        # Trait maps ({"creative": 8}) are reduced to their names
        return [str(t).lower() for t in as_list(value)]


class EvaluationHistory(PromptSchema):
    """Snapshot of a user's previous evaluation used for growth tracking."""

    previous_scores: dict[str, int | float] = Field(default_factory=dict)
    consistent_strengths: list[str] = Field(default_factory=list)
    persistent_weaknesses: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "persistentWeaknesses",
            "persistent_weaknesses",
            "areasNeedingImprovement",
            "areas_needing_improvement",
        ),
    )
    last_evaluation_id: str | None = None

    @field_validator("last_evaluation_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @model_validator(mode="before")
    @classmethod
    def _merge_legacy_scores(cls, data: Any) -> Any:
        # Older callers send previousScore / previousCategoryScores separately
        if not isinstance(data, dict):
            return data
        data = dict(data)
        scores = dict(data.get("previousScores") or data.get("previous_scores") or {})
        overall = data.pop("previousScore", data.pop("previous_score", None))
        if overall is not None and "overall" not in scores:
            scores["overall"] = overall
        category_scores = data.pop("previousCategoryScores", data.pop("previous_category_scores", None))
        for category, score in (category_scores or {}).items():
            scores.setdefault(category, score)
        data.pop("previous_scores", None)
        data["previousScores"] = {
            k: v for k, v in scores.items()
            if isinstance(v, (int, float)) and not isinstance(v, bool)
        }
        return data

    @property
    def previous_overall(self) -> int | float | None:
        return self.previous_scores.get("overall")

    @property
    def previous_category_scores(self) -> dict[str, int | float]:
        return {k: v for k, v in self.previous_scores.items() if k != "overall"}

    def is_empty(self) -> bool:
        return not (
            self.previous_scores
            or self.consistent_strengths
            or self.persistent_weaknesses
            or self.last_evaluation_id
        )

    @classmethod
    def from_user_context(cls, user_context: "UserContext") -> "EvaluationHistory":
        """Derive history from an aggregated user context.

        The most recent evaluation in the journey supplies previous scores;
        derived strengths and growth areas carry over as-is.
        """
        evaluations = user_context.learning_journey.evaluation_history
        previous_scores: dict[str, int | float] = {}
        last_id = None
        if evaluations:
            latest = evaluations[0]
            last_id = latest.id
            if latest.score is not None:
                previous_scores["overall"] = latest.score
            previous_scores.update(latest.category_scores)

        return cls(
            previous_scores=previous_scores,
            consistent_strengths=list(user_context.strengths),
            persistent_weaknesses=list(user_context.areas_for_growth),
            last_evaluation_id=last_id,
        )


# ===================
# Evaluation
# ===================

class EvaluationOptions(PromptSchema):
    streaming: bool = False
    challenge_type_name: str | None = None
    focus_area: str | None = None


class EvaluationPromptParams(PromptSchema):
    """Parameters for the evaluation prompt."""

    challenge: ChallengeInfo
    user_response: str
    user: UserInfo = Field(default_factory=UserInfo)
    personality_profile: PersonalityProfile = Field(default_factory=PersonalityProfile)
    evaluation_history: EvaluationHistory = Field(default_factory=EvaluationHistory)
    options: EvaluationOptions = Field(default_factory=EvaluationOptions)

    @field_validator("user_response", mode="before")
    @classmethod
    def _require_response(cls, value: Any) -> Any:
        if isinstance(value, (dict, list)):
            value = json.dumps(value)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("User response is required")
        return value

    @field_validator("user", "personality_profile", "evaluation_history", "options", mode="before")
    @classmethod
    def _none_to_default(cls, value: Any) -> Any:
        return {} if value is None else value


# ===================
# Challenge generation
# ===================

class ChallengeParams(PromptSchema):
    challenge_type: str = Field(
        default="standard",
        validation_alias=AliasChoices("challengeType", "challenge_type", "challengeTypeCode"),
    )
    format_type: str = Field(
        default="open-ended",
        validation_alias=AliasChoices("formatType", "format_type", "formatTypeCode"),
    )
    difficulty: str = "intermediate"
    focus_area: str = "general"
    topic: str | None = None
    keywords: list[str] = Field(default_factory=list)


class GameState(PromptSchema):
    current_level: int | str | None = None
    progress: float | None = None
    streak_count: int = 0
    recent_challenges: list[ChallengeInfo] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    areas_for_improvement: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_defaults=True)


class ChallengeOptions(PromptSchema):
    creative_variation: float = Field(default=DEFAULT_CREATIVE_VARIATION, ge=0, le=1)
    allow_dynamic_types: bool = False
    suggest_novel_types: bool = False


class ChallengePromptParams(PromptSchema):
    """Parameters for the challenge generation prompt."""

    user: UserInfo
    challenge_params: ChallengeParams
    personality_profile: PersonalityProfile = Field(default_factory=PersonalityProfile)
    game_state: GameState = Field(default_factory=GameState)
    options: ChallengeOptions = Field(default_factory=ChallengeOptions)

    @field_validator("personality_profile", "game_state", "options", mode="before")
    @classmethod
    def _none_to_default(cls, value: Any) -> Any:
        return {} if value is None else value


# ===================
# Focus areas
# ===================

class FocusAreaOptions(PromptSchema):
    count: int = Field(default=DEFAULT_FOCUS_AREA_COUNT, ge=1, le=10)
    include_rationale: bool = True


class FocusAreaPromptParams(PromptSchema):
    """Parameters for the focus area recommendation prompt."""

    user: UserInfo
    challenge_history: list[ChallengeInfo] = Field(default_factory=list)
    progress_data: dict[str, Any] = Field(default_factory=dict)
    options: FocusAreaOptions = Field(default_factory=FocusAreaOptions)

    @field_validator("challenge_history", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


# ===================
# Personality
# ===================

DEFAULT_TRAIT_CATEGORIES = [
    "openness",
    "conscientiousness",
    "extraversion",
    "agreeableness",
    "neuroticism",
    "adaptability",
    "creativity",
    "curiosity",
    "persistence",
    "analytical",
]


class Interaction(PromptSchema):
    type: str | None = None
    content: str | None = None
    score: float | None = None
    sentiment_score: float | None = None
    complexity: float | None = None


class PersonalityOptions(PromptSchema):
    detail_level: Literal["basic", "detailed", "comprehensive"] = "detailed"
    trait_categories: list[str] = Field(default_factory=lambda: list(DEFAULT_TRAIT_CATEGORIES))


class PersonalityPromptParams(PromptSchema):
    """Parameters for the personality assessment prompt."""

    user: UserInfo
    interaction_history: list[Interaction] = Field(default_factory=list)
    options: PersonalityOptions = Field(default_factory=PersonalityOptions)

    @field_validator("interaction_history", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

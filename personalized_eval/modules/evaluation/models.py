"""Evaluation records.

Evaluations are immutable once constructed; a re-evaluation produces a new
record. Performance levels, weighted scores and personalized feedback are
derived on read from the stored fields.
"""

from datetime import datetime
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from personalized_eval.modules.prompts.schemas import as_list
from personalized_eval.modules.prompts.weights import focus_area_categories
from personalized_eval.shared.constants import (
    CATEGORY_STRENGTH_THRESHOLD,
    CATEGORY_WEAKNESS_THRESHOLD,
    LOWEST_PERFORMANCE_LEVEL,
    PERFORMANCE_LEVELS,
    TEN_POINT_SCALE_MAX,
    UNRATED_PERFORMANCE_LEVEL,
)
from personalized_eval.shared.datetime_utils import utc_now
from personalized_eval.shared.math_utils import is_number, round_half_up

SCORE_SOURCE_EXPLICIT = "explicit"
SCORE_SOURCE_CATEGORY_SUM = "category_sum"
SCORE_SOURCE_DEFAULT = "default"

HIGH_PERFORMANCE_LEVELS = ("exceptional", "excellent")


def performance_level_for(score: int | float) -> str:
    """Label for a 0-100 score on the nine-band scale."""
    for minimum, level in PERFORMANCE_LEVELS:
        if score >= minimum:
            return level
    return LOWEST_PERFORMANCE_LEVEL


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name)
    return value if isinstance(value, Mapping) else {}


def _context_skill_level(user_context: Mapping[str, Any] | None) -> str | None:
    if not user_context:
        return None
    return (
        _section(user_context, "profile").get("skill_level")
        or user_context.get("skill_level")
        or user_context.get("skillLevel")
    )


def _context_focus_areas(user_context: Mapping[str, Any] | None) -> list[str]:
    if not user_context:
        return []
    candidates = (
        _section(user_context, "learning_journey").get("focus_areas"),
        _section(user_context, "profile").get("focus_areas"),
        user_context.get("focus_areas"),
        user_context.get("focusAreas"),
    )
    for value in candidates:
        if value:
            return [str(area) for area in as_list(value)]
    return []


def _skill_level_feedback(skill_level: str, level: str, strengths: list[str]) -> str:
    high = level in HIGH_PERFORMANCE_LEVELS
    if skill_level == "beginner":
        message = "As a beginner, you're showing good progress."
        if strengths:
            message += f" Your strengths in {' and '.join(strengths[:2])} are particularly notable."
        return message
    if skill_level == "intermediate":
        return (
            f"At your intermediate skill level, this is {'impressive work' if high else 'solid progress'}. "
            "Consider focusing on deeper analysis in future responses."
        )
    if skill_level == "advanced":
        verdict = "meets high standards" if high else "has room for the nuance I know you can achieve"
        return f"For your advanced level, this response {verdict}."
    return f"Your response demonstrates {level} performance overall."


def _growth_feedback(improvement: int | float) -> str:
    if improvement > 5:
        return (
            f"You've shown significant improvement (+{improvement} points) from your previous "
            "evaluations. Keep building on this progress!"
        )
    if improvement > 0:
        return f"You're showing steady improvement (+{improvement} points) from previous work."
    if improvement == 0:
        return (
            "You're maintaining a consistent performance level. "
            "Consider trying new approaches to continue growing."
        )
    return (
        "This score is slightly lower than your previous work. "
        "Review the improvement suggestions to identify opportunities."
    )


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class GrowthMetrics(FrozenModel):
    """Deltas against the user's immediately preceding evaluation."""

    score_change: int | float = 0
    # Only categories scored in both evaluations
    category_score_changes: dict[str, int | float] = Field(default_factory=dict)
    improvement_rate: float = 0.0
    consistent_strengths: list[str] = Field(default_factory=list)
    persistent_weaknesses: list[str] = Field(default_factory=list)
    last_evaluation_id: str | None = None


class ChallengeContext(FrozenModel):
    """The challenge as it was evaluated."""

    id: str | None = None
    title: str | None = None
    type: str | None = None
    format: str | None = None
    focus_area: str | None = None
    difficulty: str | None = None
    category_weights: dict[str, int] = Field(default_factory=dict)


class Evaluation(FrozenModel):
    """Canonical evaluation of one response."""

    user_id: str
    challenge_id: str
    score: int | float
    category_scores: dict[str, int | float] = Field(default_factory=dict)
    overall_feedback: str = ""
    strengths: list[str] = Field(default_factory=list)
    strength_analysis: list[dict[str, Any]] = Field(default_factory=list)
    areas_for_improvement: list[str] = Field(default_factory=list)
    improvement_plans: list[dict[str, Any]] = Field(default_factory=list)
    next_steps: str | None = None
    recommended_resources: list[dict[str, Any]] = Field(default_factory=list)
    recommended_challenges: list[dict[str, Any]] = Field(default_factory=list)
    growth_metrics: GrowthMetrics = Field(default_factory=GrowthMetrics)
    challenge_context: ChallengeContext = Field(default_factory=ChallengeContext)
    user_context: dict[str, Any] | None = None
    response_id: str | None = None
    thread_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_ungraded(self) -> bool:
        """True when the score is the placeholder for output without any scores."""
        return bool(self.metadata.get("ungraded"))

    # ===================
    # Derived metrics
    # ===================

    @property
    def normalized_score(self) -> int | float:
        """Score on a 0-100 scale; scores of 10 or less are read as out of 10."""
        if self.score <= TEN_POINT_SCALE_MAX:
            return round_half_up(self.score * 10)
        return self.score

    @property
    def performance_level(self) -> str:
        return performance_level_for(self.normalized_score)

    @property
    def category_performance_levels(self) -> dict[str, str]:
        return {category: performance_level_for(score) for category, score in self.category_scores.items()}

    def category_performance_level(self, category: str) -> str:
        score = self.category_scores.get(category)
        return performance_level_for(score) if score is not None else UNRATED_PERFORMANCE_LEVEL

    @property
    def category_strengths(self) -> list[str]:
        return [c for c, s in self.category_scores.items() if s >= CATEGORY_STRENGTH_THRESHOLD]

    @property
    def category_weaknesses(self) -> list[str]:
        return [c for c, s in self.category_scores.items() if s <= CATEGORY_WEAKNESS_THRESHOLD]

    @property
    def weighted_score(self) -> int | None:
        """Category scores averaged by their weights.

        Weights come from ``metadata["category_weights"]`` when present,
        otherwise from the challenge context. None when no scored category
        carries a weight.
        """
        weights = self.metadata.get("category_weights")
        if not isinstance(weights, Mapping):
            weights = self.challenge_context.category_weights
        total = 0.0
        weight_sum = 0.0
        for category, score in self.category_scores.items():
            weight = weights.get(category)
            if is_number(weight) and weight > 0:
                total += score * weight
                weight_sum += weight
        if weight_sum == 0:
            return None
        return round_half_up(total / weight_sum)

    @property
    def focus_area_scores(self) -> dict[str, int | float]:
        """Scores of the categories tied to the user's focus areas."""
        relevant = focus_area_categories(_context_focus_areas(self.user_context))
        return {c: self.category_scores[c] for c in relevant if c in self.category_scores}

    @property
    def focus_area_average(self) -> int:
        scores = list(self.focus_area_scores.values())
        return round_half_up(sum(scores) / len(scores)) if scores else 0

    def get_strength_analysis(self, strength: str) -> dict[str, Any] | None:
        return next((item for item in self.strength_analysis if item.get("strength") == strength), None)

    def get_improvement_plan(self, area: str) -> dict[str, Any] | None:
        return next((plan for plan in self.improvement_plans if plan.get("area") == area), None)

    def get_personalized_feedback(self) -> dict[str, str]:
        """Feedback tailored to the user's skill level, focus areas and history.

        Sections without the context they need are left empty.
        """
        level = self.performance_level
        feedback = {
            "feedback": self.overall_feedback,
            "performance_level": level,
            "skill_level_feedback": "",
            "focus_area_relevance": "",
            "growth_insights": "",
        }

        skill_level = _context_skill_level(self.user_context)
        if skill_level:
            feedback["skill_level_feedback"] = _skill_level_feedback(skill_level, level, self.strengths)

        focus_areas = _context_focus_areas(self.user_context)
        if focus_areas:
            scores = list(self.focus_area_scores.values())
            average = sum(scores) / len(scores) if scores else 0
            verdict = (
                "This shows particular strength in your areas of interest."
                if average > CATEGORY_STRENGTH_THRESHOLD
                else "These are areas you may want to concentrate on developing further."
            )
            feedback["focus_area_relevance"] = (
                f"In your focus areas ({', '.join(focus_areas)}), you scored "
                f"{round_half_up(average)}/100. {verdict}"
            )

        if self.metadata.get("has_history"):
            feedback["growth_insights"] = _growth_feedback(self.growth_metrics.score_change)

        return feedback

    def derived_metrics(self) -> dict[str, Any]:
        return {
            "normalized_score": self.normalized_score,
            "performance_level": self.performance_level,
            "category_performance_levels": self.category_performance_levels,
            "category_strengths": self.category_strengths,
            "category_weaknesses": self.category_weaknesses,
            "weighted_score": self.weighted_score,
            "focus_area_scores": self.focus_area_scores,
            "focus_area_average": self.focus_area_average,
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["metrics"] = self.derived_metrics()
        return data

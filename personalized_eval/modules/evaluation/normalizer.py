"""Evaluation Normalization & Growth Engine.

Turns the AI's raw evaluation payload into an Evaluation: resolves the overall
score, extracts feedback fields tolerant of camelCase or snake_case keys, and
computes growth metrics against the previous evaluation.

Growth metrics depend only on the raw payload and the prior history, so
identical inputs always produce identical metrics.
"""

import logging
from datetime import datetime
from statistics import fmean
from typing import Any, Mapping

from personalized_eval.modules.context.interface import UserContext
from personalized_eval.modules.evaluation.models import (
    SCORE_SOURCE_CATEGORY_SUM,
    SCORE_SOURCE_DEFAULT,
    SCORE_SOURCE_EXPLICIT,
    ChallengeContext,
    Evaluation,
    GrowthMetrics,
)
from personalized_eval.modules.prompts.schemas import EvaluationHistory, validate_params
from personalized_eval.shared.constants import UNGRADED_DEFAULT_SCORE
from personalized_eval.shared.datetime_utils import to_iso, utc_now
from personalized_eval.shared.exceptions import GenerationError
from personalized_eval.shared.math_utils import is_number, round_half_up

logger = logging.getLogger(__name__)

_SCORE_KEYS = ("overallScore", "overall_score", "score")


def _get(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _strings(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str) and item.strip()]


def _records(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, (list, tuple)):
        return []
    return [dict(item) for item in value if isinstance(item, Mapping)]


def _delta(current: int | float, previous: int | float) -> int | float:
    change = current - previous
    return round(change, 2) if isinstance(change, float) else change


def extract_category_scores(raw: Mapping[str, Any]) -> dict[str, int | float]:
    """Numeric category scores from the payload; other values are dropped."""
    scores = _mapping(_get(raw, "categoryScores", "category_scores"))
    return {category: value for category, value in scores.items() if is_number(value)}


def resolve_score(raw: Mapping[str, Any]) -> tuple[int | float, str]:
    """Resolve the overall score and where it came from.

    Order: an explicit numeric overall score, then the sum of category scores
    (categories are pre-weighted to total 100), then the ungraded placeholder.

    Returns:
        (score, source) with source one of "explicit", "category_sum", "default"
    """
    for key in _SCORE_KEYS:
        value = raw.get(key)
        if is_number(value):
            return value, SCORE_SOURCE_EXPLICIT

    category_scores = extract_category_scores(raw)
    if category_scores:
        return round_half_up(sum(category_scores.values())), SCORE_SOURCE_CATEGORY_SUM

    return UNGRADED_DEFAULT_SCORE, SCORE_SOURCE_DEFAULT


def compute_growth_metrics(
    score: int | float,
    category_scores: Mapping[str, int | float],
    history: EvaluationHistory,
    growth_insights: Mapping[str, Any] | None = None,
) -> GrowthMetrics:
    """Compare a new evaluation against the previous one.

    Args:
        score: Resolved overall score
        category_scores: Numeric category scores of the new evaluation
        history: Previous evaluation snapshot
        growth_insights: The AI's own growth insights, if any

    Returns:
        GrowthMetrics; categories missing from either side are omitted from
        ``category_score_changes`` rather than reported as zero
    """
    previous_overall = history.previous_overall
    score_change = _delta(score, previous_overall) if is_number(previous_overall) else 0

    previous = history.previous_category_scores
    changes = {
        category: _delta(value, previous[category])
        for category, value in category_scores.items()
        if category in previous and is_number(previous[category])
    }
    improvement_rate = round(fmean(changes.values()), 2) if changes else 0.0

    insights = growth_insights or {}
    strengths = _strings(_get(insights, "persistentStrengths", "persistent_strengths"))
    weaknesses = _strings(_get(insights, "developmentAreas", "development_areas"))

    return GrowthMetrics(
        score_change=score_change,
        category_score_changes=changes,
        improvement_rate=improvement_rate,
        consistent_strengths=strengths or list(history.consistent_strengths),
        persistent_weaknesses=weaknesses or list(history.persistent_weaknesses),
        last_evaluation_id=history.last_evaluation_id,
    )


def _personalization_level(has_user_context: bool, has_history: bool) -> str:
    if has_user_context and has_history:
        return "high"
    if has_user_context or has_history:
        return "medium"
    return "basic"


def normalize(
    raw: Any,
    prior_history: EvaluationHistory | Mapping[str, Any] | None,
    challenge_context: ChallengeContext | Mapping[str, Any] | None,
    *,
    user_id: str,
    challenge_id: str,
    response_id: str | None = None,
    thread_id: str | None = None,
    user_context: UserContext | Mapping[str, Any] | None = None,
    metadata: Mapping[str, Any] | None = None,
    created_at: datetime | None = None,
) -> Evaluation:
    """Build an Evaluation from raw AI output.

    Args:
        raw: Parsed AI payload
        prior_history: Previous evaluation snapshot (camelCase keys accepted)
        challenge_context: The evaluated challenge and its category weights
        user_id: Evaluated user
        challenge_id: Evaluated challenge
        response_id: AI response id
        thread_id: Conversation thread id
        user_context: Context used for personalization, stored on the record
        metadata: Extra metadata merged under the computed fields
        created_at: Creation time, defaults to now

    Returns:
        Immutable Evaluation

    Raises:
        GenerationError: If raw is not a JSON object
    """
    if not isinstance(raw, Mapping):
        raise GenerationError(
            f"AI evaluation payload must be a JSON object, got {type(raw).__name__}",
            challenge_id=challenge_id,
            user_id=user_id,
        )

    history = validate_params(EvaluationHistory, prior_history or {})
    if isinstance(challenge_context, ChallengeContext):
        context = challenge_context
    else:
        context = ChallengeContext.model_validate(challenge_context or {})

    score, score_source = resolve_score(raw)
    if score_source == SCORE_SOURCE_DEFAULT:
        logger.warning(
            "AI evaluation carried no scores, using ungraded placeholder",
            extra={"challenge_id": challenge_id, "user_id": user_id},
        )

    category_scores = extract_category_scores(raw)
    growth_insights = _mapping(_get(raw, "growthInsights", "growth_insights"))
    growth = compute_growth_metrics(score, category_scores, history, growth_insights)

    recommendations = _mapping(raw.get("recommendations"))
    next_steps = _get(recommendations, "nextSteps", "next_steps") or _get(raw, "nextSteps", "next_steps")

    if isinstance(user_context, UserContext):
        user_context_data = user_context.to_dict()
    elif isinstance(user_context, Mapping):
        user_context_data = dict(user_context)
    else:
        user_context_data = None

    created = created_at or utc_now()
    has_history = not history.is_empty()
    record_metadata = {
        **dict(metadata or {}),
        "ungraded": score_source == SCORE_SOURCE_DEFAULT,
        "score_source": score_source,
        "personalization_level": _personalization_level(bool(user_context_data), has_history),
        "has_history": has_history,
        "generated_at": to_iso(created),
    }
    if growth_insights:
        record_metadata["growth_insights"] = dict(growth_insights)

    return Evaluation(
        user_id=str(user_id),
        challenge_id=str(challenge_id),
        score=score,
        category_scores=category_scores,
        overall_feedback=str(_get(raw, "overallFeedback", "overall_feedback", "feedback", default="")),
        strengths=_strings(raw.get("strengths")),
        strength_analysis=_records(_get(raw, "strengthAnalysis", "strength_analysis")),
        areas_for_improvement=_strings(
            _get(raw, "areasForImprovement", "areas_for_improvement", "improvements")
        ),
        improvement_plans=_records(_get(raw, "improvementPlans", "improvement_plans")),
        next_steps=next_steps if isinstance(next_steps, str) else None,
        recommended_resources=_records(
            _get(recommendations, "resources") or _get(raw, "recommendedResources", "recommended_resources")
        ),
        recommended_challenges=_records(
            _get(recommendations, "recommendedChallenges", "recommended_challenges")
            or _get(raw, "recommendedChallenges", "recommended_challenges")
        ),
        growth_metrics=growth,
        challenge_context=context,
        user_context=user_context_data,
        response_id=response_id,
        thread_id=thread_id,
        metadata=record_metadata,
        created_at=created,
    )

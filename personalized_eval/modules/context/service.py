"""User Context Service.

Gathers a user's profile, challenge history and evaluation history into one
UserContext. The three lookups run concurrently and fail independently: a
failing source is logged, recorded in ``metadata.failed_sources`` and leaves
its part of the context at the default.
"""

import asyncio
import logging
from collections import Counter
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from personalized_eval.modules.context.interface import (
    ChallengeSummary,
    EvaluationSummary,
    IChallengeRepository,
    IEvaluationRepository,
    IUserRepository,
    PersonalizedCriteria,
    UserContext,
    UserProfile,
    record_field,
)
from personalized_eval.modules.prompts.weights import select_category_weights
from personalized_eval.shared.config import get_settings
from personalized_eval.shared.constants import (
    STRENGTH_SCORE_THRESHOLD,
    TRAIT_MIN_OCCURRENCES,
    WEAKNESS_SCORE_THRESHOLD,
)
from personalized_eval.shared.exceptions import ValidationError
from personalized_eval.shared.math_utils import round_half_up

logger = logging.getLogger(__name__)

T = TypeVar("T")

SOURCE_PROFILE = "profile"
SOURCE_CHALLENGES = "challenge_history"
SOURCE_EVALUATIONS = "evaluation_history"


def recurring_categories(
    evaluations: Iterable[EvaluationSummary],
    qualifies: Callable[[float], bool],
    min_occurrences: int = TRAIT_MIN_OCCURRENCES,
) -> list[str]:
    """Categories whose score qualifies in at least ``min_occurrences`` evaluations.

    Returned in the order categories were first seen.
    """
    counts: Counter[str] = Counter()
    for evaluation in evaluations:
        for category, score in evaluation.category_scores.items():
            if qualifies(score):
                counts[category] += 1
    return [category for category, count in counts.items() if count >= min_occurrences]


def consistent_strengths(evaluations: Iterable[EvaluationSummary]) -> list[str]:
    return recurring_categories(evaluations, lambda score: score >= STRENGTH_SCORE_THRESHOLD)


def persistent_weaknesses(evaluations: Iterable[EvaluationSummary]) -> list[str]:
    return recurring_categories(evaluations, lambda score: score <= WEAKNESS_SCORE_THRESHOLD)


def average_category_scores(evaluations: Iterable[EvaluationSummary]) -> dict[str, int]:
    """Integer average (rounded half up) of every observed score per category."""
    scores: dict[str, list[float]] = {}
    for evaluation in evaluations:
        for category, score in evaluation.category_scores.items():
            scores.setdefault(category, []).append(score)
    return {
        category: round_half_up(sum(values) / len(values))
        for category, values in scores.items()
    }


def merge_focus_areas(explicit: list[str], challenges: Iterable[ChallengeSummary]) -> list[str]:
    """Explicit focus areas first, then challenge focus areas by frequency."""
    counts = Counter(c.focus_area for c in challenges if c.focus_area)
    merged = list(dict.fromkeys(explicit))
    for area, _ in counts.most_common():
        if area not in merged:
            merged.append(area)
    return merged


class UserContextService:
    """Builds UserContext objects from injected repositories.

    Any repository may be omitted; a missing repository behaves like one that
    returns nothing.
    """

    def __init__(
        self,
        user_repository: IUserRepository | None = None,
        challenge_repository: IChallengeRepository | None = None,
        evaluation_repository: IEvaluationRepository | None = None,
        challenge_history_limit: int | None = None,
        evaluation_history_limit: int | None = None,
    ) -> None:
        settings = get_settings()
        self.user_repository = user_repository
        self.challenge_repository = challenge_repository
        self.evaluation_repository = evaluation_repository
        self.challenge_history_limit = challenge_history_limit or settings.challenge_history_limit
        self.evaluation_history_limit = evaluation_history_limit or settings.evaluation_history_limit

    async def _safe(
        self,
        source: str,
        user_id: str,
        fetch: Callable[[], Awaitable[T]],
        failed: list[str],
        default: T,
    ) -> T:
        try:
            return await fetch()
        except Exception as e:
            logger.warning(
                f"Error fetching {source} for user context: {e}",
                extra={"user_id": user_id, "source": source},
            )
            failed.append(source)
            return default

    async def _fetch_profile(self, user_id: str) -> UserProfile | None:
        if self.user_repository is None:
            return None
        record = await self.user_repository.get_by_id(user_id)
        if record is None:
            return None
        return UserProfile.from_record(record)

    async def _fetch_challenges(self, user_id: str, limit: int) -> list[ChallengeSummary]:
        if self.challenge_repository is None:
            return []
        records = await self.challenge_repository.get_by_user_id(
            user_id, limit=limit, sort="completed_at:desc"
        )
        return [ChallengeSummary.from_record(r) for r in list(records or [])[:limit]]

    async def _fetch_evaluations(self, user_id: str, limit: int) -> list[EvaluationSummary]:
        if self.evaluation_repository is None:
            return []
        records = await self.evaluation_repository.get_by_user_id(
            user_id, limit=limit, sort="created_at:desc"
        )
        return [EvaluationSummary.from_record(r) for r in list(records or [])[:limit]]

    async def gather_user_context(
        self,
        user_id: str,
        options: dict[str, Any] | None = None,
    ) -> UserContext:
        """Gather the context used to personalize prompts for a user.

        Args:
            user_id: User to gather context for
            options: Optional ``challenge_limit``, ``evaluation_limit`` and
                ``session_context``

        Returns:
            UserContext; never raises for repository failures

        Raises:
            ValidationError: If user_id is empty
        """
        if not user_id:
            raise ValidationError("user_id", "User id is required to gather context")
        user_id = str(user_id)
        options = options or {}
        challenge_limit = options.get("challenge_limit") or self.challenge_history_limit
        evaluation_limit = options.get("evaluation_limit") or self.evaluation_history_limit

        failed: list[str] = []
        profile, challenges, evaluations = await asyncio.gather(
            self._safe(SOURCE_PROFILE, user_id, lambda: self._fetch_profile(user_id), failed, None),
            self._safe(
                SOURCE_CHALLENGES, user_id,
                lambda: self._fetch_challenges(user_id, challenge_limit), failed, [],
            ),
            self._safe(
                SOURCE_EVALUATIONS, user_id,
                lambda: self._fetch_evaluations(user_id, evaluation_limit), failed, [],
            ),
        )

        context = UserContext(user_id=user_id)
        context.metadata.failed_sources = sorted(failed)
        context.session_context = dict(options.get("session_context") or {})

        if profile is not None:
            context.profile = profile

        journey = context.learning_journey
        journey.challenge_history = challenges
        journey.completed_challenges = len(challenges)
        journey.focus_areas = merge_focus_areas(context.profile.focus_areas, challenges)

        journey.evaluation_history = evaluations
        journey.skill_levels = average_category_scores(evaluations)
        overall_scores = [e.score for e in evaluations if e.score is not None]
        if overall_scores:
            journey.average_score = round_half_up(sum(overall_scores) / len(overall_scores))
        context.strengths = consistent_strengths(evaluations)
        context.areas_for_growth = persistent_weaknesses(evaluations)

        logger.debug(
            "User context gathered",
            extra={
                "user_id": user_id,
                "challenges": len(challenges),
                "evaluations": len(evaluations),
                "failed_sources": context.metadata.failed_sources,
            },
        )
        return context


def extract_personalized_criteria(user_context: UserContext, challenge: Any) -> PersonalizedCriteria:
    """Derive evaluation criteria for a user and challenge.

    Args:
        user_context: Aggregated user context
        challenge: Challenge mapping or object (type and focus area are read)

    Returns:
        PersonalizedCriteria with weights adjusted for persistent weaknesses
    """
    previous_scores: dict[str, int | float] = {}
    history = user_context.learning_journey.evaluation_history
    if history:
        latest = history[0]
        if latest.score is not None:
            previous_scores["overall"] = latest.score
        previous_scores.update(latest.category_scores)

    weaknesses = list(user_context.areas_for_growth)
    weights = select_category_weights(
        record_field(challenge, "challenge_type", "challengeType", "type"),
        record_field(challenge, "focus_area", "focusArea"),
        weaknesses,
    )

    return PersonalizedCriteria(
        category_weights=weights,
        focus_areas=list(user_context.learning_journey.focus_areas),
        skill_level=user_context.profile.skill_level or "intermediate",
        learning_goals=list(user_context.profile.learning_goals),
        previous_scores=previous_scores,
        consistent_strengths=list(user_context.strengths),
        persistent_weaknesses=weaknesses,
    )


# Singleton instance
_user_context_service: UserContextService | None = None


def get_user_context_service() -> UserContextService:
    """Get the shared user context service (no repositories attached)."""
    global _user_context_service
    if _user_context_service is None:
        _user_context_service = UserContextService()
    return _user_context_service


async def gather_user_context(
    user_id: str,
    options: dict[str, Any] | None = None,
) -> UserContext:
    """Gather user context with the shared service."""
    return await get_user_context_service().gather_user_context(user_id, options)

"""Context Module - aggregated view of a user's profile and learning history."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Mapping, Protocol

from personalized_eval.modules.prompts.schemas import as_list
from personalized_eval.shared.constants import CONTEXT_VERSION
from personalized_eval.shared.datetime_utils import from_iso, to_iso, utc_now
from personalized_eval.shared.math_utils import is_number


def record_field(record: Any, *names: str, default: Any = None) -> Any:
    """Read the first present attribute or key among ``names``.

    Repository records may be mappings (camelCase or snake_case) or objects.
    """
    for name in names:
        if isinstance(record, Mapping):
            value = record.get(name)
        else:
            value = getattr(record, name, None)
        if value is not None:
            return value
    return default


def _as_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return from_iso(str(value))
    except ValueError:
        return None


@dataclass
class UserProfile:
    """Profile fields relevant to personalization."""

    name: str | None = None
    email: str | None = None
    skill_level: str | None = None
    profession: str | None = None
    focus_areas: list[str] = field(default_factory=list)
    learning_goals: list[str] = field(default_factory=list)
    preferred_learning_style: str | None = None
    communication_style: str | None = None

    @classmethod
    def from_record(cls, record: Any) -> "UserProfile":
        return cls(
            name=record_field(record, "name", "display_name", "displayName", "full_name", "fullName"),
            email=record_field(record, "email"),
            skill_level=record_field(record, "skill_level", "skillLevel", default="intermediate"),
            profession=record_field(record, "profession", "title", "professional_title", "professionalTitle"),
            focus_areas=[str(a) for a in as_list(record_field(record, "focus_areas", "focusAreas"))],
            learning_goals=[str(g) for g in as_list(record_field(record, "learning_goals", "learningGoals"))],
            preferred_learning_style=record_field(
                record, "preferred_learning_style", "preferredLearningStyle", "learning_style", "learningStyle"
            ),
            communication_style=record_field(record, "communication_style", "communicationStyle"),
        )


@dataclass
class ChallengeSummary:
    """One entry of the challenge history."""

    id: str | None
    title: str | None = None
    challenge_type: str | None = None
    focus_area: str | None = None
    difficulty: str = "intermediate"
    completed_at: datetime | None = None

    @classmethod
    def from_record(cls, record: Any) -> "ChallengeSummary":
        challenge_id = record_field(record, "id")
        return cls(
            id=str(challenge_id) if challenge_id is not None else None,
            title=record_field(record, "title"),
            challenge_type=record_field(record, "challenge_type", "challengeType", "type"),
            focus_area=record_field(record, "focus_area", "focusArea"),
            difficulty=record_field(record, "difficulty", default="intermediate"),
            completed_at=_as_datetime(
                record_field(record, "completed_at", "completedAt", "updated_at", "updatedAt")
            ),
        )


@dataclass
class EvaluationSummary:
    """One entry of the evaluation history."""

    id: str | None
    challenge_id: str | None = None
    score: int | float | None = None
    category_scores: dict[str, int | float] = field(default_factory=dict)
    strengths: list[str] = field(default_factory=list)
    areas_for_improvement: list[str] = field(default_factory=list)
    created_at: datetime | None = None

    @classmethod
    def from_record(cls, record: Any) -> "EvaluationSummary":
        evaluation_id = record_field(record, "id", "evaluation_id", "evaluationId")
        challenge_id = record_field(record, "challenge_id", "challengeId")
        score = record_field(record, "score", "overall_score", "overallScore")
        raw_scores = record_field(record, "category_scores", "categoryScores")
        if not isinstance(raw_scores, Mapping):
            raw_scores = {}
        return cls(
            id=str(evaluation_id) if evaluation_id is not None else None,
            challenge_id=str(challenge_id) if challenge_id is not None else None,
            score=score if is_number(score) else None,
            # Non-numeric category values carry no signal for trait detection
            category_scores={k: v for k, v in raw_scores.items() if is_number(v)},
            strengths=as_list(record_field(record, "strengths")),
            areas_for_improvement=as_list(
                record_field(record, "areas_for_improvement", "areasForImprovement")
            ),
            created_at=_as_datetime(record_field(record, "created_at", "createdAt")),
        )


@dataclass
class LearningJourney:
    completed_challenges: int = 0
    challenge_history: list[ChallengeSummary] = field(default_factory=list)
    # Most recent first
    evaluation_history: list[EvaluationSummary] = field(default_factory=list)
    focus_areas: list[str] = field(default_factory=list)
    skill_levels: dict[str, int] = field(default_factory=dict)
    average_score: int | None = None


@dataclass
class ContextMetadata:
    last_updated: datetime = field(default_factory=utc_now)
    context_version: str = CONTEXT_VERSION
    failed_sources: list[str] = field(default_factory=list)


@dataclass
class UserContext:
    """Denormalized user context built fresh for each request."""

    user_id: str
    profile: UserProfile = field(default_factory=UserProfile)
    learning_journey: LearningJourney = field(default_factory=LearningJourney)
    strengths: list[str] = field(default_factory=list)
    areas_for_growth: list[str] = field(default_factory=list)
    session_context: dict[str, Any] = field(default_factory=dict)
    metadata: ContextMetadata = field(default_factory=ContextMetadata)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["metadata"]["last_updated"] = to_iso(self.metadata.last_updated)
        for entry, source in zip(data["learning_journey"]["challenge_history"], self.learning_journey.challenge_history):
            entry["completed_at"] = to_iso(source.completed_at)
        for entry, source in zip(data["learning_journey"]["evaluation_history"], self.learning_journey.evaluation_history):
            entry["created_at"] = to_iso(source.created_at)
        return data

    def profile_params(self) -> dict[str, Any]:
        """Profile in the shape prompt builders accept as ``user``."""
        return {
            "id": self.user_id,
            "name": self.profile.name,
            "email": self.profile.email,
            "skillLevel": self.profile.skill_level,
            "profession": self.profile.profession,
            "focusAreas": self.learning_journey.focus_areas or self.profile.focus_areas,
            "learningGoals": self.profile.learning_goals,
            "learningStyle": self.profile.preferred_learning_style,
            "communicationStyle": self.profile.communication_style,
            "completedChallenges": self.learning_journey.completed_challenges or None,
        }


@dataclass
class PersonalizedCriteria:
    """Evaluation criteria tailored to one user and challenge."""

    category_weights: dict[str, int] = field(default_factory=dict)
    focus_areas: list[str] = field(default_factory=list)
    skill_level: str = "intermediate"
    learning_goals: list[str] = field(default_factory=list)
    previous_scores: dict[str, int | float] = field(default_factory=dict)
    consistent_strengths: list[str] = field(default_factory=list)
    persistent_weaknesses: list[str] = field(default_factory=list)


# ===================
# Repository interfaces
# ===================

class IUserRepository(Protocol):
    """Read access to user profiles."""

    async def get_by_id(self, user_id: str) -> Any | None:
        """Get a user record by id, or None."""
        ...


class IChallengeRepository(Protocol):
    """Read access to a user's challenges."""

    async def get_by_user_id(
        self,
        user_id: str,
        limit: int = 10,
        sort: str = "completed_at:desc",
    ) -> list[Any]:
        """Get challenge records for a user."""
        ...


class IEvaluationRepository(Protocol):
    """Read access to a user's evaluations."""

    async def get_by_user_id(
        self,
        user_id: str,
        limit: int = 5,
        sort: str = "created_at:desc",
    ) -> list[Any]:
        """Get evaluation records for a user, most recent first."""
        ...

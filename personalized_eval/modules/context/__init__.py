"""Context Module - user profile and learning history aggregation."""

from personalized_eval.modules.context.interface import (
    ChallengeSummary,
    EvaluationSummary,
    IChallengeRepository,
    IEvaluationRepository,
    IUserRepository,
    LearningJourney,
    PersonalizedCriteria,
    UserContext,
    UserProfile,
)
from personalized_eval.modules.context.service import (
    UserContextService,
    extract_personalized_criteria,
    gather_user_context,
    get_user_context_service,
)

__all__ = [
    "ChallengeSummary",
    "EvaluationSummary",
    "IChallengeRepository",
    "IEvaluationRepository",
    "IUserRepository",
    "LearningJourney",
    "PersonalizedCriteria",
    "UserContext",
    "UserContextService",
    "UserProfile",
    "extract_personalized_criteria",
    "gather_user_context",
    "get_user_context_service",
]

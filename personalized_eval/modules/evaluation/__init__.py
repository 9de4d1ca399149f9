"""Evaluation Module - personalized scoring with growth tracking."""

from personalized_eval.modules.evaluation.models import (
    ChallengeContext,
    Evaluation,
    GrowthMetrics,
)
from personalized_eval.modules.evaluation.normalizer import (
    compute_growth_metrics,
    normalize,
    resolve_score,
)
from personalized_eval.modules.evaluation.service import (
    EvaluationRequestOptions,
    EvaluationService,
    get_evaluation_service,
)

__all__ = [
    "ChallengeContext",
    "Evaluation",
    "EvaluationRequestOptions",
    "EvaluationService",
    "GrowthMetrics",
    "compute_growth_metrics",
    "get_evaluation_service",
    "normalize",
    "resolve_score",
]

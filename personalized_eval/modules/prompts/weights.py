"""Category weights for evaluation scoring.

Weights are chosen by challenge type, falling back to focus area keywords and
finally to a general default. Categories the user persistently struggles with
get a bonus, after which the map is rescaled so it totals exactly 100 points.
"""

import logging
import math
from fractions import Fraction
from typing import Iterable, Mapping

from personalized_eval.shared.constants import TOTAL_CATEGORY_POINTS, WEAKNESS_WEIGHT_BONUS

logger = logging.getLogger(__name__)


DEFAULT_WEIGHTS: dict[str, int] = {
    "accuracy": 35,
    "clarity": 25,
    "reasoning": 25,
    "creativity": 15,
}

CHALLENGE_TYPE_WEIGHTS: dict[str, dict[str, int]] = {
    "analysis": {
        "accuracy": 30,
        "critical_thinking": 30,
        "clarity": 20,
        "insight": 20,
    },
    "scenario": {
        "problem_solving": 35,
        "application": 30,
        "reasoning": 20,
        "communication": 15,
    },
    "research": {
        "thoroughness": 35,
        "methodology": 25,
        "critical_analysis": 25,
        "presentation": 15,
    },
    "creativity": {
        "originality": 40,
        "effectiveness": 25,
        "elaboration": 20,
        "relevance": 15,
    },
    "technical": {
        "technical_accuracy": 40,
        "implementation": 30,
        "explanation": 20,
        "best_practices": 10,
    },
}

# Checked in order against the lowercased focus area
FOCUS_AREA_WEIGHTS: list[tuple[str, dict[str, int]]] = [
    ("ethics", {
        "ethical_reasoning": 40,
        "comprehensiveness": 25,
        "clarity": 20,
        "practical_application": 15,
    }),
    ("literacy", {
        "conceptual_understanding": 35,
        "application": 30,
        "communication": 20,
        "critical_perspective": 15,
    }),
    ("impact", {
        "impact_analysis": 35,
        "stakeholder_consideration": 25,
        "systemic_thinking": 25,
        "practical_insight": 15,
    }),
]

# Categories that show progress in a user's focus area
FOCUS_AREA_CATEGORIES: dict[str, list[str]] = {
    "ai_ethics": ["ethical_reasoning", "comprehensiveness", "balanced_view"],
    "ai_literacy": ["conceptual_understanding", "application", "communication"],
    "ai_capabilities": ["accuracy", "technical_understanding", "critical_thinking"],
    "ai_limitations": ["critical_analysis", "balanced_view", "technical_understanding"],
    "ai_impact": ["impact_analysis", "stakeholder_consideration", "systemic_thinking"],
}
GENERAL_FOCUS_CATEGORIES = ["accuracy", "clarity", "reasoning", "creativity"]

CATEGORY_DESCRIPTIONS: dict[str, str] = {
    # Common categories
    "accuracy": "Evaluate factual correctness, depth of knowledge, and absence of misconceptions",
    "clarity": "Assess organization, clarity of expression, and logical flow of ideas",
    "reasoning": "Evaluate logical connections, critical thinking, and soundness of arguments",
    "creativity": "Judge originality of ideas, innovative thinking, and novel approaches",
    # Specialized categories
    "critical_thinking": "Assess depth of analysis, consideration of alternatives, and avoidance of cognitive biases",
    "insight": "Evaluate the presence of meaningful, non-obvious observations and connections",
    "problem_solving": "Judge the effectiveness of solutions, considering constraints and trade-offs",
    "application": "Assess how well concepts are applied to specific situations or problems",
    "communication": "Evaluate clarity, precision, and effectiveness of communication",
    "thoroughness": "Judge comprehensiveness of research, addressing all relevant aspects",
    "methodology": "Evaluate appropriateness and rigor of methods used",
    "critical_analysis": "Assess ability to evaluate sources, identify biases, and synthesize information",
    "presentation": "Judge organization, clarity, and effective use of evidence",
    "originality": "Evaluate uniqueness and novelty of ideas and approach",
    "effectiveness": "Assess how well the response achieves its intended purpose",
    "elaboration": "Evaluate depth, detail, and development of ideas",
    "relevance": "Judge how well the response addresses the challenge requirements",
    "technical_accuracy": "Evaluate technical correctness and precision",
    "implementation": "Assess the quality and effectiveness of implementation details",
    "explanation": "Evaluate clarity and completeness of explanations for technical choices",
    "best_practices": "Judge adherence to established standards and best practices",
    # Ethics
    "ethical_reasoning": "Evaluate depth and nuance of ethical analysis and reasoning",
    "comprehensiveness": "Assess coverage of relevant ethical dimensions and perspectives",
    "practical_application": "Judge how well ethical principles are applied to concrete situations",
    # AI literacy
    "conceptual_understanding": "Evaluate understanding of core AI concepts and principles",
    "critical_perspective": "Assess ability to critically evaluate AI technologies and claims",
    # Impact
    "impact_analysis": "Evaluate depth and breadth of impact analysis across domains",
    "stakeholder_consideration": "Assess identification and consideration of affected stakeholders",
    "systemic_thinking": "Evaluate understanding of complex systemic interactions and dynamics",
    "practical_insight": "Judge how actionable and grounded the conclusions about impact are",
}

DEFAULT_CATEGORY_DESCRIPTION = "Evaluate this aspect of the response"


def normalize_category(name: str) -> str:
    """Canonical category key: lowercase, underscores for spaces and dashes."""
    return name.strip().lower().replace("-", "_").replace(" ", "_")


def get_category_description(category: str) -> str:
    return CATEGORY_DESCRIPTIONS.get(normalize_category(category), DEFAULT_CATEGORY_DESCRIPTION)


def base_category_weights(
    challenge_type: str | None = None,
    focus_area: str | None = None,
) -> dict[str, int]:
    """Select the unadjusted weight table.

    Args:
        challenge_type: Challenge type code (analysis, scenario, ...)
        focus_area: Free-text focus area, matched by keyword

    Returns:
        A fresh copy of the matching table
    """
    type_key = (challenge_type or "").strip().lower()
    if type_key in CHALLENGE_TYPE_WEIGHTS:
        return dict(CHALLENGE_TYPE_WEIGHTS[type_key])

    area = (focus_area or "").lower()
    for keyword, weights in FOCUS_AREA_WEIGHTS:
        if keyword in area:
            return dict(weights)

    return dict(DEFAULT_WEIGHTS)


def rescale_weights(weights: Mapping[str, int], total: int = TOTAL_CATEGORY_POINTS) -> dict[str, int]:
    """Rescale integer weights so they sum to exactly ``total``.

    Uses largest-remainder rounding: every category gets the floor of its
    proportional share and the leftover points go to the largest fractional
    parts, ties broken by the original category order.
    """
    current = sum(weights.values())
    if current == total:
        return dict(weights)
    if current <= 0:
        raise ValueError("Cannot rescale weights with a non-positive total")

    shares = {category: Fraction(value * total, current) for category, value in weights.items()}
    result = {category: math.floor(share) for category, share in shares.items()}

    leftover = total - sum(result.values())
    order = list(weights)
    by_remainder = sorted(
        order,
        key=lambda category: (-(shares[category] - result[category]), order.index(category)),
    )
    for category in by_remainder[:leftover]:
        result[category] += 1

    return result


def apply_weakness_bonus(
    weights: Mapping[str, int],
    persistent_weaknesses: Iterable[str],
    bonus: int = WEAKNESS_WEIGHT_BONUS,
) -> dict[str, int]:
    """Boost weak categories present in ``weights`` and rescale to 100."""
    adjusted = dict(weights)
    boosted = []
    for weakness in {normalize_category(w) for w in persistent_weaknesses if w}:
        if weakness in adjusted:
            adjusted[weakness] += bonus
            boosted.append(weakness)

    if not boosted:
        return adjusted

    logger.debug(f"Applied weakness bonus to categories: {sorted(boosted)}")
    return rescale_weights(adjusted)


def select_category_weights(
    challenge_type: str | None = None,
    focus_area: str | None = None,
    persistent_weaknesses: Iterable[str] = (),
) -> dict[str, int]:
    """Category weights for a challenge, adjusted for the user's weak spots.

    Args:
        challenge_type: Challenge type code
        focus_area: Challenge focus area
        persistent_weaknesses: Categories the user keeps scoring low in

    Returns:
        Mapping of category to points, summing to exactly 100
    """
    weights = base_category_weights(challenge_type, focus_area)
    return apply_weakness_bonus(weights, persistent_weaknesses)


def focus_area_categories(focus_areas: Iterable[str]) -> list[str]:
    """Categories relevant to the given focus areas, deduplicated in order.

    Unmapped focus areas contribute the general categories.
    """
    categories: list[str] = []
    for area in focus_areas:
        if not isinstance(area, str) or not area.strip():
            continue
        categories.extend(FOCUS_AREA_CATEGORIES.get(normalize_category(area), GENERAL_FOCUS_CATEGORIES))
    return list(dict.fromkeys(categories))

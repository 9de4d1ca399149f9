"""Evaluation prompt builder.

Turns a challenge, the user's response and whatever is known about the user
into a scoring prompt with personalized criteria, growth tracking against the
previous evaluation and a JSON response contract.
"""

import logging

from personalized_eval.modules.prompts.builders.base import (
    JSON_OUTPUT_STANDARDS,
    SchemaPromptBuilder,
    bullet_list,
    join_sections,
)
from personalized_eval.modules.prompts.guidance import (
    EVALUATION_GUIDANCE,
    GuidanceContext,
    compose_instructions,
)
from personalized_eval.modules.prompts.interface import PromptKind, PromptResult
from personalized_eval.modules.prompts.schemas import (
    ChallengeContent,
    EvaluationHistory,
    EvaluationPromptParams,
    UserInfo,
)
from personalized_eval.modules.prompts.weights import (
    get_category_description,
    select_category_weights,
)
from personalized_eval.shared.constants import TOTAL_CATEGORY_POINTS

logger = logging.getLogger(__name__)

STREAMING_NOTE = (
    "### STREAMING\n"
    "Your answer is delivered to the user incrementally. Emit the JSON object "
    "in the field order shown above so partial output stays readable."
)


def resolve_challenge_type(params: EvaluationPromptParams) -> str:
    return params.challenge.challenge_type or params.options.challenge_type_name or "standard"


def resolve_focus_area(params: EvaluationPromptParams) -> str:
    return params.challenge.focus_area or params.options.focus_area or "general"


def category_weights_for(params: EvaluationPromptParams) -> dict[str, int]:
    """Weights used for the criteria section of this prompt."""
    return select_category_weights(
        resolve_challenge_type(params),
        resolve_focus_area(params),
        params.evaluation_history.persistent_weaknesses,
    )


def _challenge_section(params: EvaluationPromptParams) -> str:
    challenge = params.challenge
    lines = [
        "### CHALLENGE INFORMATION",
        f"Title: {challenge.title or 'Untitled Challenge'}",
        f"Type: {resolve_challenge_type(params)}",
        f"Focus Area: {resolve_focus_area(params)}",
    ]
    if challenge.difficulty:
        lines.append(f"Difficulty: {challenge.difficulty}")
    return "\n".join(lines)


def _content_section(content: ChallengeContent | str | None) -> str | None:
    if isinstance(content, ChallengeContent):
        parts = [
            f"Context: {content.context}" if content.context else None,
            f"Scenario: {content.scenario}" if content.scenario else None,
            f"Instructions: {content.instructions}" if content.instructions else None,
        ]
        parts = [p for p in parts if p]
        if not parts:
            return None
        return "### CHALLENGE CONTENT\n" + "\n\n".join(parts)
    if isinstance(content, str) and content.strip():
        return f"### CHALLENGE CONTENT\n{content.strip()}"
    return None


def _user_section(user: UserInfo) -> str | None:
    if user.is_empty():
        return None
    lines = ["### USER CONTEXT"]
    if user.name:
        lines.append(f"Name: {user.name}")
    if user.email:
        lines.append(f"User ID: {user.email}")
    if user.skill_level:
        lines.append(f"Skill Level: {user.skill_level}")
    if user.professional_title:
        lines.append(f"Profession: {user.professional_title}")
    for line in (
        bullet_list("Focus Areas", user.focus_areas),
        bullet_list("Learning Goals", user.learning_goals),
    ):
        if line:
            lines.append(line)
    if user.completed_challenges:
        lines.append(f"Completed Challenges: {user.completed_challenges}")
    return "\n".join(lines) if len(lines) > 1 else None


def _history_section(history: EvaluationHistory) -> str | None:
    if history.is_empty():
        return None
    lines = ["### PREVIOUS EVALUATION DATA"]
    if history.previous_overall is not None:
        lines.append(f"Previous Overall Score: {history.previous_overall}")
    if history.previous_category_scores:
        lines.append("Previous Category Scores:")
        lines.extend(f"- {category}: {score}" for category, score in history.previous_category_scores.items())
    for line in (
        bullet_list("Consistent Strengths", history.consistent_strengths),
        bullet_list("Areas Needing Improvement", history.persistent_weaknesses),
    ):
        if line:
            lines.append(line)
    return "\n".join(lines)


def _criteria_section(weights: dict[str, int]) -> str:
    lines = [
        "### EVALUATION CRITERIA",
        "Evaluate the response using the following criteria:",
        "",
    ]
    lines.extend(
        f"- {category} (0-{points} points): {get_category_description(category)}"
        for category, points in weights.items()
    )
    lines.append("")
    lines.append(f"The total maximum score is {TOTAL_CATEGORY_POINTS} points.")
    return "\n".join(lines)


STRENGTH_ANALYSIS_SECTION = """### STRENGTH ANALYSIS
For each strength identified, provide a detailed analysis including:
1. What the user did well (the strength itself)
2. Why this aspect is effective or important
3. How it specifically contributes to the quality of the response"""

IMPROVEMENT_PLANS_SECTION = """### IMPROVEMENT PLANS
For each area needing improvement, provide a detailed plan including:
1. Specific issue to address
2. Why improving this area is important
3. Actionable steps to improve
4. Resources or exercises that could help"""

GROWTH_TRACKING_SECTION = """### GROWTH TRACKING
Compare the current response to previous evaluations:
1. Identify improvements since the last evaluation
2. Note any persistent strengths or weaknesses
3. Provide specific growth insights"""

RECOMMENDATIONS_SECTION = """### PERSONALIZED RECOMMENDATIONS
Based on the user's context, provide:
1. Personalized next steps tailored to their focus areas and skill level
2. 2-3 specific resources that would help improvement (articles, books, courses, etc.)
3. 1-2 recommended challenge types that would build on current strengths or address weaknesses"""


def _response_format_section(weights: dict[str, int]) -> str:
    category_lines = ",\n".join(f'    "{category}": 0' for category in weights)
    return f"""### RESPONSE FORMAT
Provide your evaluation as a JSON object with the following structure:

{{
  "categoryScores": {{
{category_lines}
  }},
  "overallScore": 0,
  "overallFeedback": "Comprehensive evaluation of the entire response...",
  "strengths": ["Strength 1", "Strength 2"],
  "strengthAnalysis": [
    {{
      "strength": "Strength 1",
      "analysis": "Detailed explanation of why this is effective...",
      "impact": "How this contributes to overall quality..."
    }}
  ],
  "areasForImprovement": ["Area for improvement 1", "Area for improvement 2"],
  "improvementPlans": [
    {{
      "area": "Area for improvement 1",
      "importance": "Why improving this is important...",
      "actionItems": ["Specific action 1", "Specific action 2"],
      "resources": ["Suggested resource or exercise"]
    }}
  ],
  "growthInsights": {{
    "improvements": ["Specific improvements since last evaluation"],
    "persistentStrengths": ["Strengths maintained across evaluations"],
    "developmentAreas": ["Areas that still need focus"],
    "growthSummary": "Overall assessment of growth trajectory..."
  }},
  "recommendations": {{
    "nextSteps": "Personalized next steps for improvement...",
    "resources": [
      {{"title": "Resource Title", "type": "article|video|course", "url": "URL if available", "relevance": "Why this is relevant"}}
    ],
    "recommendedChallenges": [
      {{"title": "Challenge Type", "description": "Brief description", "relevance": "Why this would help growth"}}
    ]
  }}
}}

Each category score must be between 0 and that category's maximum points, and
overallScore must equal the sum of the category scores."""


def guidance_context(params: EvaluationPromptParams) -> GuidanceContext:
    user = params.user
    profile = params.personality_profile
    return GuidanceContext(
        challenge_type=resolve_challenge_type(params),
        difficulty=params.challenge.difficulty,
        skill_level=user.skill_level,
        learning_style=user.learning_style,
        feedback_style=user.feedback_style,
        communication_style=profile.communication_style or user.communication_style,
        traits=frozenset(profile.traits),
    )


class EvaluationPromptBuilder(SchemaPromptBuilder[EvaluationPromptParams]):
    """Builds evaluation prompts with personalized criteria and instructions."""

    kind = PromptKind.EVALUATION
    schema = EvaluationPromptParams

    def compose(self, params: EvaluationPromptParams) -> PromptResult:
        weights = category_weights_for(params)
        has_history = not params.evaluation_history.is_empty()

        prompt = join_sections(
            "### EVALUATION TASK\n"
            "Evaluate the user's response to the challenge with detailed scoring in multiple "
            "categories, personalized feedback, and growth tracking.",
            _challenge_section(params),
            _content_section(params.challenge.content),
            _user_section(params.user),
            _history_section(params.evaluation_history),
            f"### USER RESPONSE\n{params.user_response}",
            _criteria_section(weights),
            STRENGTH_ANALYSIS_SECTION,
            IMPROVEMENT_PLANS_SECTION,
            GROWTH_TRACKING_SECTION if has_history else None,
            RECOMMENDATIONS_SECTION,
            _response_format_section(weights),
            JSON_OUTPUT_STANDARDS,
            STREAMING_NOTE if params.options.streaming else None,
        )

        instructions = compose_instructions(EVALUATION_GUIDANCE, guidance_context(params))

        logger.debug(
            "Built evaluation prompt",
            extra={
                "challenge_id": params.challenge.id,
                "categories": list(weights),
                "has_history": has_history,
            },
        )
        return PromptResult(input=prompt, instructions=instructions)

"""Personality assessment prompt builder.

Produces a single prompt without a dedicated system message.
"""

from statistics import mean

from personalized_eval.modules.prompts.builders.base import (
    JSON_OUTPUT_STANDARDS,
    SchemaPromptBuilder,
    bullet_list,
    join_sections,
    rating_section,
)
from personalized_eval.modules.prompts.interface import PromptKind, PromptResult
from personalized_eval.modules.prompts.schemas import (
    Interaction,
    PersonalityPromptParams,
    UserInfo,
)
from personalized_eval.shared.constants import INTERACTION_PREVIEW_CHARS, MAX_INTERACTION_SAMPLES

_DETAIL_REQUIREMENTS = {
    "comprehensive": [
        "Provide a detailed score on a 1-10 scale",
        "Include thorough rationale for each score",
        "Analyze how the trait manifests in AI interactions",
        "Offer 3-5 specific recommendations based on the trait",
    ],
    "detailed": [
        "Provide a score on a 1-10 scale",
        "Include brief rationale for each score",
        "Offer 2-3 specific recommendations based on the trait",
    ],
    "basic": [
        "Provide a score on a 1-10 scale",
        "Include a short explanation",
        "Offer 1 key recommendation based on the trait",
    ],
}

RESPONSE_FORMAT_SECTION = """### RESPONSE FORMAT
Return your analysis as a JSON object with the following structure:

{
  "traits": {
    "trait_name": {
      "score": 7,
      "description": "Description of how this trait manifests for the user",
      "rationale": "Explanation of why this score was assigned",
      "aiInteractionImpact": "How this trait affects AI interactions",
      "recommendations": ["Recommendation 1", "Recommendation 2"]
    }
  },
  "communicationStyle": {
    "summary": "Brief summary of the user's overall communication style",
    "strengths": ["Strength 1", "Strength 2"],
    "challenges": ["Challenge 1", "Challenge 2"],
    "recommendedApproach": "Recommended approach for AI communication"
  },
  "aiAttitudeProfile": {
    "overall": "Overall attitude toward AI (e.g., enthusiastic, cautious)",
    "preferences": ["Preference 1", "Preference 2"],
    "concerns": ["Concern 1", "Concern 2"]
  }
}"""


def preview(text: str, limit: int = INTERACTION_PREVIEW_CHARS) -> str:
    return f"{text[:limit]}..." if len(text) > limit else text


def _user_section(user: UserInfo) -> str:
    lines = ["### USER INFORMATION"]
    if user.name:
        lines.append(f"Name: {user.name}")
    if user.professional_title:
        lines.append(f"Professional Title: {user.professional_title}")
    if user.location:
        lines.append(f"Location: {user.location}")
    interests = bullet_list("Interests", user.interests)
    if interests:
        lines.append(interests)
    if user.communication_style:
        lines.append(f"Self-described communication style: {user.communication_style}")
    goals = bullet_list("Learning goals", user.learning_goals)
    if goals:
        lines.append(goals)
    return "\n".join(lines)


def _interaction_section(history: list[Interaction]) -> str | None:
    if not history:
        return None
    lines = [
        "### INTERACTION HISTORY",
        f"The user has {len(history)} recorded interactions with AI systems.",
        "",
    ]

    sentiments = [i.sentiment_score for i in history if i.sentiment_score is not None]
    complexities = [i.complexity for i in history if i.complexity is not None]
    if sentiments:
        lines.append(f"Average sentiment score: {mean(sentiments):.2f} (range -1 to 1)")
    if complexities:
        lines.append(f"Average complexity score: {mean(complexities):.2f} (scale 1-10)")

    lines.append("")
    lines.append("Sample interactions:")
    for index, interaction in enumerate(history[:MAX_INTERACTION_SAMPLES], start=1):
        lines.append("")
        lines.append(f"Interaction {index}:")
        lines.append(f"- Type: {interaction.type or 'Unknown'}")
        if interaction.content:
            lines.append(f'- Content preview: "{preview(interaction.content)}"')
        if interaction.score is not None:
            lines.append(f"- Score: {interaction.score:g}")
        if interaction.sentiment_score is not None:
            lines.append(f"- Sentiment: {interaction.sentiment_score:g}")
        if interaction.complexity is not None:
            lines.append(f"- Complexity: {interaction.complexity:g}")
    return "\n".join(lines)


def _guidelines_section(detail_level: str, trait_categories: list[str]) -> str:
    lines = [
        "### ANALYSIS GUIDELINES",
        f"Perform a {detail_level} personality analysis focusing on the following categories:",
        *(f"- {category}" for category in trait_categories),
        "",
        "Focus your analysis on how these traits impact the user's communication with AI systems. Consider:",
        "- How the user's personality affects their approach to AI interaction",
        "- Communication patterns that might emerge based on these traits",
        "- Strengths and potential areas for improvement in AI communication",
        "- How to adapt AI responses to better match the user's personality",
        "",
        "For each trait category:",
        *(f"- {item}" for item in _DETAIL_REQUIREMENTS[detail_level]),
    ]
    return "\n".join(lines)


class PersonalityPromptBuilder(SchemaPromptBuilder[PersonalityPromptParams]):
    """Builds personality assessment prompts."""

    kind = PromptKind.PERSONALITY
    schema = PersonalityPromptParams

    def compose(self, params: PersonalityPromptParams) -> PromptResult:
        options = params.options
        prompt = join_sections(
            "### PERSONALITY ASSESSMENT TASK\n"
            "Analyze the provided user information to create a detailed personality profile "
            "focusing on communication style and traits that affect AI interaction.",
            _user_section(params.user),
            rating_section("EXISTING TRAIT RATINGS", params.user.existing_traits),
            rating_section("AI ATTITUDE RATINGS", params.user.ai_attitudes),
            _interaction_section(params.interaction_history),
            _guidelines_section(options.detail_level, options.trait_categories),
            RESPONSE_FORMAT_SECTION,
            JSON_OUTPUT_STANDARDS,
        )
        return PromptResult(input=prompt, instructions=None)

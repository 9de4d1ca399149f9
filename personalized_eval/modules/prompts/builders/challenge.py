"""Challenge generation prompt builder."""

import logging

from personalized_eval.modules.prompts.builders.base import (
    JSON_OUTPUT_STANDARDS,
    SchemaPromptBuilder,
    bullet_list,
    join_sections,
)
from personalized_eval.modules.prompts.guidance import (
    CHALLENGE_GUIDANCE,
    GuidanceContext,
    compose_instructions,
)
from personalized_eval.modules.prompts.interface import PromptKind, PromptResult
from personalized_eval.modules.prompts.schemas import (
    ChallengeOptions,
    ChallengePromptParams,
    GameState,
    UserInfo,
)

logger = logging.getLogger(__name__)

RESPONSE_FORMAT_SECTION = """### RESPONSE FORMAT
Return the challenge as a JSON object with the following structure:

{
  "title": "Challenge title",
  "content": {
    "context": "Background information and context",
    "scenario": "Specific scenario or problem statement",
    "instructions": "What the user needs to do"
  },
  "questions": [
    {
      "id": "q1",
      "text": "Question text",
      "type": "open-ended | multiple-choice | reflection",
      "options": ["Option 1", "Option 2", "Option 3"]
    }
  ],
  "evaluationCriteria": {
    "criteria1": {"description": "Description of criteria", "weight": 0.5}
  },
  "recommendedResources": [
    {
      "title": "Resource title",
      "type": "article | video | book | tutorial",
      "url": "URL if available",
      "description": "Brief description of why this resource is helpful"
    }
  ]
}

Only multiple-choice questions carry "options"."""


def _profile_section(user: UserInfo) -> str:
    lines = [
        "### USER PROFILE",
        f"Name: {user.name or 'Anonymous'}",
        f"Professional Title: {user.professional_title or 'Professional'}",
    ]
    for line in (
        bullet_list("Focus Areas", user.focus_areas),
        bullet_list("Dominant Traits", user.dominant_traits),
        f"Skill Level: {user.skill_level}" if user.skill_level else None,
        bullet_list("Learning Goals", user.learning_goals),
    ):
        if line:
            lines.append(line)
    return "\n".join(lines)


def _parameters_section(params: ChallengePromptParams) -> str:
    cp = params.challenge_params
    lines = [
        "### CHALLENGE PARAMETERS",
        f"Type: {cp.challenge_type}",
        f"Format: {cp.format_type}",
        f"Difficulty: {cp.difficulty}",
        f"Focus Area: {cp.focus_area}",
    ]
    if cp.topic:
        lines.append(f"Topic: {cp.topic}")
    keywords = bullet_list("Keywords", cp.keywords)
    if keywords:
        lines.append(keywords)
    return "\n".join(lines)


def _game_state_section(state: GameState) -> str | None:
    if state.is_empty():
        return None
    lines = ["### GAME STATE CONTEXT"]
    if state.current_level:
        lines.append(f"Current Level: {state.current_level}")
    if state.progress:
        lines.append(f"Progress: {state.progress:g}%")
    if state.streak_count:
        lines.append(f"Streak Count: {state.streak_count}")
    if state.recent_challenges:
        lines.append("")
        lines.append("Recent Challenges:")
        for index, challenge in enumerate(state.recent_challenges, start=1):
            lines.append(
                f"{index}. {challenge.title or 'Untitled'} "
                f"({challenge.challenge_type or 'Unknown type'}, {challenge.difficulty or 'Not specified'})"
            )
    strengths = bullet_list("User Strengths", state.strengths)
    if strengths:
        lines.append("")
        lines.append(strengths)
    improvements = bullet_list("Areas for Improvement", state.areas_for_improvement)
    if improvements:
        lines.append(improvements)
    return "\n".join(lines)


def _creativity_section(options: ChallengeOptions) -> str:
    variation = options.creative_variation
    lines = ["### CREATIVITY GUIDANCE", f"- Variation level: {round(variation * 100)}%"]
    if variation > 0.8:
        lines.append("- Generate a highly creative and unique challenge.")
    elif variation > 0.6:
        lines.append("- Balance creativity with structured learning.")
    else:
        lines.append("- Focus on foundational concepts with moderate creativity.")
    if options.allow_dynamic_types:
        lines.append("- You may create novel challenge types beyond the standard categories when appropriate.")
    if options.suggest_novel_types:
        lines.append("- You are encouraged to suggest creative and unique challenge types tailored to this specific user.")
    return "\n".join(lines)


def _adaptation_section(params: ChallengePromptParams) -> str | None:
    state = params.game_state
    if state.is_empty():
        return None
    focus_area = params.challenge_params.focus_area
    lines = [
        "### ADAPTATION GUIDANCE",
        "- Create a challenge that builds on the user's strengths while addressing areas for improvement.",
        "- Avoid repeating challenge types the user has recently encountered.",
    ]
    if state.streak_count > 2:
        lines.append(
            f"- The user is on a streak of {state.streak_count} successfully completed challenges. "
            "Consider increasing difficulty slightly."
        )
    recent_areas = list(dict.fromkeys(c.focus_area for c in state.recent_challenges if c.focus_area))
    if recent_areas and focus_area not in recent_areas:
        lines.append(
            f"- This is a shift to a new focus area ({focus_area}) from previous work in "
            f"{', '.join(recent_areas)}. Provide context that bridges these areas."
        )
    return "\n".join(lines)


class ChallengePromptBuilder(SchemaPromptBuilder[ChallengePromptParams]):
    """Builds prompts that ask the AI to generate a personalized challenge."""

    kind = PromptKind.CHALLENGE
    schema = ChallengePromptParams

    def compose(self, params: ChallengePromptParams) -> PromptResult:
        cp = params.challenge_params
        prompt = join_sections(
            "### CHALLENGE GENERATION TASK\n"
            "Generate a challenge for the user based on their profile and the specified parameters.",
            _profile_section(params.user),
            _parameters_section(params),
            _game_state_section(params.game_state),
            _creativity_section(params.options),
            _adaptation_section(params),
            RESPONSE_FORMAT_SECTION,
            JSON_OUTPUT_STANDARDS,
        )

        ctx = GuidanceContext(
            challenge_type=cp.challenge_type,
            difficulty=cp.difficulty,
            format_type=cp.format_type,
            skill_level=params.user.skill_level,
            learning_style=params.user.learning_style,
            traits=frozenset(params.personality_profile.traits),
        )
        logger.debug(
            "Built challenge prompt",
            extra={"challenge_type": cp.challenge_type, "focus_area": cp.focus_area},
        )
        return PromptResult(input=prompt, instructions=compose_instructions(CHALLENGE_GUIDANCE, ctx))

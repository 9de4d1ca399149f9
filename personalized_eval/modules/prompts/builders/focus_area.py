"""Focus area recommendation prompt builder."""

from personalized_eval.modules.prompts.builders.base import (
    JSON_OUTPUT_STANDARDS,
    SchemaPromptBuilder,
    bullet_list,
    join_sections,
    rating_section,
)
from personalized_eval.modules.prompts.interface import PromptKind, PromptResult
from personalized_eval.modules.prompts.schemas import FocusAreaPromptParams, UserInfo

INSTRUCTIONS = (
    "You are an AI learning advisor who designs personalized development paths for "
    "professionals learning to work effectively with AI. Recommend focus areas that are "
    "specific, achievable and grounded in the user's profile and history rather than "
    "generic topics."
    "\n\n"
    "Your response MUST follow the exact JSON structure specified in the prompt. "
    "Ensure all required fields are included and properly formatted."
)


def _profile_section(user: UserInfo) -> str:
    lines = ["### USER PROFILE"]
    if user.name:
        lines.append(f"Name: {user.name}")
    lines.append(f"Professional Title: {user.professional_title or 'Professional'}")
    if user.location:
        lines.append(f"Location: {user.location}")
    if user.skill_level:
        lines.append(f"Skill Level: {user.skill_level}")
    for line in (
        bullet_list("Current Focus Areas", user.focus_areas),
        bullet_list("Learning Goals", user.learning_goals),
        bullet_list("Interests", user.interests),
    ):
        if line:
            lines.append(line)
    return "\n".join(lines)


def _history_section(params: FocusAreaPromptParams) -> str | None:
    if not params.challenge_history:
        return None
    lines = ["### CHALLENGE HISTORY"]
    for index, challenge in enumerate(params.challenge_history, start=1):
        details = ", ".join(
            part for part in (
                challenge.challenge_type,
                challenge.focus_area,
                f"score {challenge.score:g}" if challenge.score is not None else None,
            ) if part
        )
        title = challenge.title or "Untitled"
        lines.append(f"{index}. {title} ({details})" if details else f"{index}. {title}")
    return "\n".join(lines)


def _progress_section(progress: dict) -> str | None:
    if not progress:
        return None
    lines = ["### PROGRESS DATA"]
    lines.extend(f"- {key}: {value}" for key, value in progress.items())
    return "\n".join(lines)


def _response_format_section(count: int, include_rationale: bool) -> str:
    rationale = '\n      "rationale": "Why this focus area fits the user",' if include_rationale else ""
    return f"""### RESPONSE FORMAT
Return exactly {count} focus areas as a JSON object with the following structure:

{{
  "focusAreas": [
    {{
      "name": "Focus area name",
      "description": "What the user will work on",
      "priorityLevel": "high | medium | low",{rationale}
      "relatedAreas": ["Related area 1", "Related area 2"]
    }}
  ]
}}"""


class FocusAreaPromptBuilder(SchemaPromptBuilder[FocusAreaPromptParams]):
    """Builds prompts that recommend personalized focus areas."""

    kind = PromptKind.FOCUS_AREA
    schema = FocusAreaPromptParams

    def compose(self, params: FocusAreaPromptParams) -> PromptResult:
        count = params.options.count
        prompt = join_sections(
            "### FOCUS AREA GENERATION TASK\n"
            f"Recommend {count} personalized focus areas for the user's growth in working with AI.",
            _profile_section(params.user),
            rating_section("PERSONALITY TRAITS", params.user.existing_traits),
            rating_section("AI ATTITUDES", params.user.ai_attitudes),
            _history_section(params),
            _progress_section(params.progress_data),
            "### GUIDELINES\n"
            "- Build on the traits and attitudes above; avoid areas the user has already mastered.\n"
            "- Prefer areas that connect to the user's professional context.\n"
            "- Order focus areas from highest to lowest priority.",
            _response_format_section(count, params.options.include_rationale),
            JSON_OUTPUT_STANDARDS,
        )
        return PromptResult(input=prompt, instructions=INSTRUCTIONS)

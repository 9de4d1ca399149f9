"""Guidance fragments for system instructions.

A system message is assembled from named fragments, each pairing a predicate
over the personalization signals with the text it contributes. Fragments are
evaluated in list order and only ever append, so every signal's contribution
can be tested on its own.
"""

from dataclasses import dataclass, field
from typing import Callable


@dataclass(frozen=True)
class GuidanceContext:
    """Personalization signals visible to guidance fragments."""

    challenge_type: str = "standard"
    difficulty: str | None = None
    format_type: str | None = None
    skill_level: str | None = None
    learning_style: str | None = None
    feedback_style: str | None = None
    communication_style: str | None = None
    traits: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        # Normalize casing once so predicates stay simple
        for name in ("skill_level", "learning_style", "communication_style", "difficulty", "format_type"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, value.strip().lower() or None)
        object.__setattr__(self, "traits", frozenset(t.lower() for t in self.traits))

    def has_trait(self, *names: str) -> bool:
        return any(name in self.traits for name in names)


Predicate = Callable[[GuidanceContext], bool]


def always(ctx: GuidanceContext) -> bool:
    return True


@dataclass(frozen=True)
class GuidanceFragment:
    """One contribution to a system message."""

    name: str
    applies: Predicate
    text: str | Callable[[GuidanceContext], str]
    new_paragraph: bool = False

    def render(self, ctx: GuidanceContext) -> str:
        return self.text(ctx) if callable(self.text) else self.text


def applicable_fragments(
    fragments: list[GuidanceFragment] | tuple[GuidanceFragment, ...],
    ctx: GuidanceContext,
) -> list[GuidanceFragment]:
    """Return the fragments whose predicate holds, in declared order."""
    return [fragment for fragment in fragments if fragment.applies(ctx)]


def compose_instructions(
    fragments: list[GuidanceFragment] | tuple[GuidanceFragment, ...],
    ctx: GuidanceContext,
) -> str:
    """Compose a system message from fragments.

    Args:
        fragments: Ordered fragments
        ctx: Personalization signals

    Returns:
        The concatenated text of every applicable fragment
    """
    message = ""
    for fragment in applicable_fragments(fragments, ctx):
        text = fragment.render(ctx).strip()
        if not text:
            continue
        if message:
            message += "\n\n" if fragment.new_paragraph else " "
        message += text
    return message


def _skill(*levels: str) -> Predicate:
    return lambda ctx: ctx.skill_level in levels


def _style(style: str) -> Predicate:
    return lambda ctx: ctx.learning_style == style


def _tone(style: str) -> Predicate:
    return lambda ctx: ctx.communication_style == style


def _trait(*names: str) -> Predicate:
    return lambda ctx: ctx.has_trait(*names)


_KNOWN_TONES = ("formal", "casual", "technical")

_JSON_REQUIREMENT = GuidanceFragment(
    "json_requirement",
    always,
    "Your response MUST follow the exact JSON structure specified in the prompt. "
    "Ensure all required fields are included and properly formatted.",
    new_paragraph=True,
)


# ===================
# Evaluation
# ===================

EVALUATION_GUIDANCE: tuple[GuidanceFragment, ...] = (
    GuidanceFragment(
        "base",
        always,
        lambda ctx: (
            f"You are an AI evaluation expert providing {ctx.feedback_style or 'constructive'} "
            f"feedback on {ctx.challenge_type} challenges."
        ),
    ),
    GuidanceFragment(
        "skill_beginner",
        _skill("beginner"),
        "Explain concepts simply and thoroughly, avoiding jargon.",
    ),
    GuidanceFragment(
        "skill_intermediate",
        _skill("intermediate"),
        "Balance explanations with appropriate complexity for someone with moderate familiarity.",
    ),
    GuidanceFragment(
        "skill_advanced",
        _skill("advanced", "expert"),
        "Provide nuanced, in-depth analysis that acknowledges complexity and edge cases.",
    ),
    GuidanceFragment("tone_formal", _tone("formal"), "Maintain a formal, professional tone."),
    GuidanceFragment("tone_casual", _tone("casual"), "Use a friendly, conversational tone."),
    GuidanceFragment(
        "tone_technical",
        _tone("technical"),
        "Use precise, technical language where appropriate.",
    ),
    GuidanceFragment(
        "tone_default",
        lambda ctx: ctx.communication_style not in _KNOWN_TONES,
        "Use a clear, encouraging tone.",
    ),
    GuidanceFragment(
        "trait_sensitive_to_criticism",
        _trait("sensitive_to_criticism"),
        "Frame critiques constructively and with emotional intelligence.",
    ),
    GuidanceFragment(
        "trait_detail_oriented",
        _trait("detail_oriented"),
        "Include specific details and examples in your feedback.",
    ),
    GuidanceFragment(
        "trait_big_picture_thinker",
        _trait("big_picture_thinker"),
        "Connect feedback to broader concepts and applications.",
    ),
    GuidanceFragment(
        "style_visual",
        _style("visual"),
        "Suggest visual aids or diagrams when relevant.",
    ),
    GuidanceFragment(
        "style_practical",
        _style("practical"),
        "Focus on practical applications and concrete examples.",
    ),
    GuidanceFragment(
        "style_theoretical",
        _style("theoretical"),
        "Include theoretical underpinnings and conceptual frameworks.",
    ),
    GuidanceFragment(
        "closing_guidelines",
        always,
        "Your evaluation should be thorough, fair, and aimed at helping the user improve. "
        "Always provide specific examples from their response to illustrate your points. "
        "Balance critique with encouragement to maintain motivation.",
    ),
    _JSON_REQUIREMENT,
)


# ===================
# Challenge generation
# ===================

CHALLENGE_GUIDANCE: tuple[GuidanceFragment, ...] = (
    GuidanceFragment(
        "base",
        always,
        lambda ctx: f"You are an AI challenge creator specializing in {ctx.challenge_type} challenges.",
    ),
    GuidanceFragment(
        "difficulty_beginner",
        lambda ctx: ctx.difficulty == "beginner",
        "Keep challenges accessible and instructive for beginners.",
    ),
    GuidanceFragment(
        "difficulty_intermediate",
        lambda ctx: ctx.difficulty == "intermediate",
        "Aim for moderate complexity appropriate for intermediate learners.",
    ),
    GuidanceFragment(
        "difficulty_advanced",
        lambda ctx: ctx.difficulty in ("advanced", "expert"),
        "Design challenges that stretch advanced learners.",
    ),
    GuidanceFragment(
        "format_open_ended",
        lambda ctx: ctx.format_type == "open-ended",
        "You excel at creating open-ended challenges that promote creative thinking.",
    ),
    GuidanceFragment(
        "format_scenario",
        lambda ctx: ctx.format_type == "scenario",
        "You excel at developing rich, realistic scenarios that require thoughtful analysis.",
    ),
    GuidanceFragment(
        "format_multiple_choice",
        lambda ctx: ctx.format_type == "multiple-choice",
        "You excel at crafting multiple-choice challenges with well-designed options.",
    ),
    GuidanceFragment(
        "format_other",
        lambda ctx: ctx.format_type not in ("open-ended", "scenario", "multiple-choice"),
        "You adapt your challenge format based on learning objectives.",
    ),
    GuidanceFragment(
        "skill_beginner",
        _skill("beginner"),
        "Create challenges that build confidence while teaching fundamentals.",
    ),
    GuidanceFragment(
        "skill_intermediate",
        _skill("intermediate"),
        "Focus on application of concepts and moderate complexity.",
    ),
    GuidanceFragment(
        "skill_advanced",
        _skill("advanced", "expert"),
        "Develop challenges that test nuanced understanding and edge cases.",
    ),
    GuidanceFragment(
        "trait_analytical",
        _trait("analytical", "logical"),
        "Incorporate logical reasoning components into the challenge.",
    ),
    GuidanceFragment(
        "trait_creative",
        _trait("creative", "innovative"),
        "Include opportunities for creative problem-solving.",
    ),
    GuidanceFragment(
        "trait_detail_oriented",
        _trait("detail_oriented", "thorough"),
        "Include details that reward careful attention.",
    ),
    GuidanceFragment(
        "style_visual",
        _style("visual"),
        "Suggest visual elements or scenarios that can be easily visualized.",
    ),
    GuidanceFragment(
        "style_practical",
        _style("practical"),
        "Create challenges with clear real-world applications.",
    ),
    GuidanceFragment(
        "style_conceptual",
        _style("conceptual"),
        "Incorporate theoretical frameworks and concepts.",
    ),
    GuidanceFragment(
        "general",
        always,
        "Your challenge should be engaging, clear, and aligned with the user's profile and learning goals. "
        "Provide enough context for the user to understand the challenge but leave room for them "
        "to demonstrate their skills and creativity.",
        new_paragraph=True,
    ),
    _JSON_REQUIREMENT,
)

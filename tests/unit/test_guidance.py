"""Tests for Prompts module - system instruction guidance."""

from personalized_eval.modules.prompts.guidance import (
    CHALLENGE_GUIDANCE,
    EVALUATION_GUIDANCE,
    GuidanceContext,
    GuidanceFragment,
    always,
    applicable_fragments,
    compose_instructions,
)


def _names(fragments, ctx):
    return [fragment.name for fragment in applicable_fragments(fragments, ctx)]


class TestGuidanceContext:
    """Tests for GuidanceContext normalization."""

    def test_normalizes_case(self):
        """Test string signals and traits are lowercased."""
        ctx = GuidanceContext(skill_level=" Advanced ", traits=frozenset({"Detail_Oriented"}))

        assert ctx.skill_level == "advanced"
        assert ctx.has_trait("detail_oriented")

    def test_blank_values_become_none(self):
        """Test blank strings are treated as missing."""
        assert GuidanceContext(learning_style="  ").learning_style is None


class TestComposeInstructions:
    """Tests for compose_instructions."""

    def test_fragments_join_with_space_or_paragraph(self):
        """Test joining honours new_paragraph."""
        fragments = (
            GuidanceFragment("a", always, "First."),
            GuidanceFragment("b", always, "Second."),
            GuidanceFragment("c", always, "Third.", new_paragraph=True),
            GuidanceFragment("d", lambda ctx: False, "Never."),
        )

        assert compose_instructions(fragments, GuidanceContext()) == "First. Second.\n\nThird."

    def test_callable_text(self):
        """Test fragments may render from the context."""
        fragments = (GuidanceFragment("a", always, lambda ctx: f"Type {ctx.challenge_type}."),)

        assert compose_instructions(fragments, GuidanceContext(challenge_type="analysis")) == "Type analysis."


class TestEvaluationGuidance:
    """Tests for the evaluation fragments."""

    def test_minimal_context(self):
        """Test the fragments that apply with no personalization."""
        names = _names(EVALUATION_GUIDANCE, GuidanceContext())

        assert names == ["base", "tone_default", "closing_guidelines", "json_requirement"]

    def test_base_mentions_feedback_style_and_type(self):
        """Test the opening line reflects feedback style and challenge type."""
        text = compose_instructions(
            EVALUATION_GUIDANCE,
            GuidanceContext(challenge_type="scenario", feedback_style="direct"),
        )

        assert text.startswith("You are an AI evaluation expert providing direct feedback on scenario challenges.")

    def test_personalization_fragments(self):
        """Test each signal contributes its fragment in declared order."""
        ctx = GuidanceContext(
            skill_level="beginner",
            communication_style="formal",
            learning_style="visual",
            traits=frozenset({"sensitive_to_criticism", "big_picture_thinker"}),
        )

        assert _names(EVALUATION_GUIDANCE, ctx) == [
            "base",
            "skill_beginner",
            "tone_formal",
            "trait_sensitive_to_criticism",
            "trait_big_picture_thinker",
            "style_visual",
            "closing_guidelines",
            "json_requirement",
        ]

    def test_expert_uses_advanced_fragment(self):
        """Test expert users get the advanced guidance."""
        assert "skill_advanced" in _names(EVALUATION_GUIDANCE, GuidanceContext(skill_level="expert"))

    def test_json_requirement_is_own_paragraph(self):
        """Test the JSON requirement closes the message after a blank line."""
        text = compose_instructions(EVALUATION_GUIDANCE, GuidanceContext())

        assert text.endswith(
            "\n\nYour response MUST follow the exact JSON structure specified in the prompt. "
            "Ensure all required fields are included and properly formatted."
        )


class TestChallengeGuidance:
    """Tests for the challenge fragments."""

    def test_format_and_difficulty(self):
        """Test format and difficulty select their fragments."""
        ctx = GuidanceContext(challenge_type="analysis", difficulty="advanced", format_type="scenario")

        names = _names(CHALLENGE_GUIDANCE, ctx)

        assert names[:3] == ["base", "difficulty_advanced", "format_scenario"]
        assert names[-2:] == ["general", "json_requirement"]

    def test_unknown_format_falls_back(self):
        """Test unrecognized formats get the adaptive fragment."""
        assert "format_other" in _names(CHALLENGE_GUIDANCE, GuidanceContext(format_type="debate"))

    def test_trait_synonyms(self):
        """Test trait fragments accept their synonyms."""
        ctx = GuidanceContext(traits=frozenset({"logical", "innovative", "thorough"}))

        names = _names(CHALLENGE_GUIDANCE, ctx)

        assert {"trait_analytical", "trait_creative", "trait_detail_oriented"} <= set(names)

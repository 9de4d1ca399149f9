"""Tests for Prompts module - built-in prompt builders."""

import pytest

from personalized_eval.modules.prompts.builders import (
    ChallengePromptBuilder,
    EvaluationPromptBuilder,
    FocusAreaPromptBuilder,
    PersonalityPromptBuilder,
)
from personalized_eval.modules.prompts.builders.base import SchemaPromptBuilder, rating_section
from personalized_eval.modules.prompts.builders.evaluation import STREAMING_NOTE, category_weights_for
from personalized_eval.modules.prompts.builders.personality import preview
from personalized_eval.modules.prompts.interface import PromptKind
from personalized_eval.modules.prompts.schemas import EvaluationHistory, EvaluationPromptParams, UserInfo
from personalized_eval.shared.exceptions import ValidationError


class TestEvaluationPromptBuilder:
    """Tests for EvaluationPromptBuilder."""

    @pytest.fixture
    def builder(self) -> EvaluationPromptBuilder:
        return EvaluationPromptBuilder()

    def test_minimal_prompt(self, builder):
        """Test a challenge and response alone produce a complete prompt."""
        result = builder.build({
            "challenge": {"id": 1, "title": "Explain overfitting"},
            "userResponse": "The model memorizes noise.",
        })

        assert "Title: Explain overfitting" in result.input
        assert "Type: standard" in result.input
        assert "Focus Area: general" in result.input
        assert "The model memorizes noise." in result.input
        assert "### USER CONTEXT" not in result.input
        assert "### PREVIOUS EVALUATION DATA" not in result.input
        assert "### GROWTH TRACKING" not in result.input
        assert result.instructions.startswith("You are an AI evaluation expert")

    def test_criteria_use_type_weights(self, builder, sample_challenge):
        """Test the criteria section lists the challenge type's categories."""
        result = builder.build({"challenge": sample_challenge, "userResponse": "Answer"})

        assert "- critical_thinking (0-30 points)" in result.input
        assert '"critical_thinking": 0' in result.input
        assert "The total maximum score is 100 points." in result.input

    def test_user_and_history_sections(self, builder, sample_challenge, sample_user):
        """Test user context and history appear when supplied."""
        result = builder.build({
            "challenge": sample_challenge,
            "userResponse": "Answer",
            "user": sample_user,
            "evaluationHistory": {
                "previousScore": 72,
                "previousCategoryScores": {"accuracy": 20},
                "consistentStrengths": ["clarity"],
                "areasNeedingImprovement": ["insight"],
            },
        })

        assert "Name: Ada Lovelace" in result.input
        assert "Skill Level: advanced" in result.input
        assert "Previous Overall Score: 72" in result.input
        assert "- accuracy: 20" in result.input
        assert "Areas Needing Improvement: insight" in result.input
        assert "### GROWTH TRACKING" in result.input
        assert "nuanced, in-depth analysis" in result.instructions

    def test_weakness_adjusts_criteria(self, sample_challenge):
        """Test persistent weaknesses raise their category's points."""
        params = EvaluationPromptParams.model_validate({
            "challenge": sample_challenge,
            "userResponse": "Answer",
            "evaluationHistory": {"persistentWeaknesses": ["insight"]},
        })

        weights = category_weights_for(params)

        assert weights["insight"] > 20
        assert sum(weights.values()) == 100

    def test_streaming_note(self, builder, sample_challenge):
        """Test the streaming option appends the streaming note."""
        result = builder.build({
            "challenge": sample_challenge,
            "userResponse": "Answer",
            "options": {"streaming": True},
        })

        assert result.input.endswith(STREAMING_NOTE)

    def test_personality_adjusts_instructions(self, builder, sample_challenge):
        """Test personality traits and tone reach the instructions."""
        result = builder.build({
            "challenge": sample_challenge,
            "userResponse": "Answer",
            "personalityProfile": {"communicationStyle": "casual", "traits": {"Detail_Oriented": 8}},
        })

        assert "friendly, conversational tone" in result.instructions
        assert "specific details and examples" in result.instructions

    def test_dict_response_is_serialized(self, builder, sample_challenge):
        """Test structured responses are embedded as JSON."""
        result = builder.build({
            "challenge": sample_challenge,
            "userResponse": {"q1": "Proxy features"},
        })

        assert '{"q1": "Proxy features"}' in result.input

    @pytest.mark.parametrize("params,field", [
        ({"userResponse": "Answer"}, "challenge"),
        ({"challenge": {"title": "x"}}, "user_response"),
        ({"challenge": {"title": "x"}, "userResponse": "   "}, "user_response"),
    ])
    def test_missing_required(self, builder, params, field):
        """Test missing challenge or response fails validation."""
        with pytest.raises(ValidationError) as exc_info:
            builder.build(params)
        assert exc_info.value.field == field


class TestChallengePromptBuilder:
    """Tests for ChallengePromptBuilder."""

    @pytest.fixture
    def builder(self) -> ChallengePromptBuilder:
        return ChallengePromptBuilder()

    def test_basic_prompt(self, builder, sample_user):
        """Test profile and parameters are rendered."""
        result = builder.build({
            "user": sample_user,
            "challengeParams": {
                "challengeType": "analysis",
                "formatType": "scenario",
                "difficulty": "advanced",
                "focusArea": "AI Ethics",
                "keywords": ["fairness", "audit"],
            },
        })

        assert "Name: Ada Lovelace" in result.input
        assert "Type: analysis" in result.input
        assert "Keywords: fairness, audit" in result.input
        assert "Variation level: 70%" in result.input
        assert "### GAME STATE CONTEXT" not in result.input
        assert result.instructions.startswith("You are an AI challenge creator specializing in analysis challenges.")

    def test_game_state_and_adaptation(self, builder, sample_user):
        """Test game state drives the adaptation section."""
        result = builder.build({
            "user": sample_user,
            "challengeParams": {"focusArea": "AI Ethics"},
            "gameState": {
                "streakCount": 4,
                "recentChallenges": [{"title": "Prompting 101", "challengeType": "technical", "focusArea": "Prompting"}],
            },
        })

        assert "Streak Count: 4" in result.input
        assert "1. Prompting 101 (technical, Not specified)" in result.input
        assert "streak of 4" in result.input
        assert "shift to a new focus area (AI Ethics)" in result.input

    @pytest.mark.parametrize("variation,expected", [
        (0.9, "highly creative"),
        (0.7, "Balance creativity"),
        (0.3, "foundational concepts"),
    ])
    def test_creativity_bands(self, builder, sample_user, variation, expected):
        """Test creative variation selects its guidance band."""
        result = builder.build({
            "user": sample_user,
            "challengeParams": {},
            "options": {"creativeVariation": variation},
        })

        assert expected in result.input

    def test_requires_user_and_params(self, builder):
        """Test user and challenge parameters are required."""
        with pytest.raises(ValidationError):
            builder.build({"challengeParams": {}})
        with pytest.raises(ValidationError):
            builder.build({"user": {}})

    def test_rejects_out_of_range_variation(self, builder, sample_user):
        """Test creative variation must stay within 0..1."""
        with pytest.raises(ValidationError):
            builder.build({"user": sample_user, "challengeParams": {}, "options": {"creativeVariation": 2}})


class TestFocusAreaPromptBuilder:
    """Tests for FocusAreaPromptBuilder."""

    def test_prompt(self, sample_user):
        """Test profile, history and count appear in the prompt."""
        result = FocusAreaPromptBuilder().build({
            "user": {**sample_user, "existingTraits": {"curiosity": 9}},
            "challengeHistory": [{"title": "Bias audit", "challengeType": "analysis", "score": 82}],
            "options": {"count": 4, "includeRationale": False},
        })

        assert "Recommend 4 personalized focus areas" in result.input
        assert "- curiosity: 9" in result.input
        assert "1. Bias audit (analysis, score 82)" in result.input
        assert '"rationale"' not in result.input
        assert result.instructions

    def test_rejects_bad_count(self, sample_user):
        """Test count is bounded."""
        with pytest.raises(ValidationError):
            FocusAreaPromptBuilder().build({"user": sample_user, "options": {"count": 0}})


class TestPersonalityPromptBuilder:
    """Tests for PersonalityPromptBuilder."""

    def test_no_instructions(self, sample_user):
        """Test personality prompts carry no system message."""
        result = PersonalityPromptBuilder().build({"user": sample_user})

        assert result.instructions is None
        assert "Perform a detailed personality analysis" in result.input

    def test_interaction_samples(self, sample_user):
        """Test averages are computed and at most five samples are shown."""
        history = [
            {"type": "chat", "content": "x" * 150, "sentimentScore": 0.5, "complexity": 4}
            for _ in range(7)
        ]
        result = PersonalityPromptBuilder().build({
            "user": sample_user,
            "interactionHistory": history,
            "options": {"detailLevel": "comprehensive"},
        })

        assert "The user has 7 recorded interactions" in result.input
        assert "Average sentiment score: 0.50" in result.input
        assert "Interaction 5:" in result.input
        assert "Interaction 6:" not in result.input
        assert "Offer 3-5 specific recommendations" in result.input

    def test_preview(self):
        """Test content previews are truncated to 100 characters."""
        assert preview("short") == "short"
        assert preview("a" * 120) == "a" * 100 + "..."

    def test_rejects_unknown_detail_level(self, sample_user):
        """Test detail level is restricted."""
        with pytest.raises(ValidationError):
            PersonalityPromptBuilder().build({"user": sample_user, "options": {"detailLevel": "extreme"}})


def test_evaluation_history_merges_legacy_fields():
    """Test legacy previousScore fields fold into previousScores."""
    history = EvaluationHistory.model_validate({
        "previousScore": 70,
        "previousCategoryScores": {"ethical_reasoning": 60, "note": "n/a"},
    })

    assert history.previous_overall == 70
    assert history.previous_category_scores == {"ethical_reasoning": 60}


class TestSchemaPromptBuilder:
    """Tests for the shared builder base."""

    def test_compose_is_required(self):
        """Test a builder without compose cannot be instantiated."""

        class IncompleteBuilder(SchemaPromptBuilder[UserInfo]):
            kind = PromptKind.PERSONALITY
            schema = UserInfo

        with pytest.raises(TypeError):
            IncompleteBuilder()

    def test_rating_section(self):
        """Test ratings render as a titled 1-10 list."""
        assert rating_section("AI ATTITUDES", {"trust": 7, "curiosity": 9}) == (
            "### AI ATTITUDES (1-10 scale)\n- trust: 7\n- curiosity: 9"
        )
        assert rating_section("AI ATTITUDES", {}) is None

"""Integration tests for the evaluation flow.

Runs the real registry, builders, state store, context service and
normalizer; only the Anthropic SDK is mocked.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from personalized_eval.modules.context.service import UserContextService
from personalized_eval.modules.conversation.state_store import InMemoryConversationStateStore
from personalized_eval.modules.evaluation.service import EvaluationService
from personalized_eval.modules.llm.service import AnthropicAIClient
from personalized_eval.modules.prompts.registry import PromptBuilderRegistry
from personalized_eval.modules.prompts.weights import CHALLENGE_TYPE_WEIGHTS


def _sdk_message(message_id: str, payload: dict) -> MagicMock:
    message = MagicMock()
    message.id = message_id
    message.model = "claude-sonnet-4-20250514"
    message.content = [MagicMock(type="text", text=json.dumps(payload))]
    message.usage = MagicMock(input_tokens=100, output_tokens=200)
    return message


@pytest.fixture
def sdk() -> MagicMock:
    sdk = MagicMock()
    sdk.messages.create = AsyncMock()
    return sdk


@pytest.fixture
def service(sdk) -> EvaluationService:
    return EvaluationService(
        ai_client=AnthropicAIClient(client=sdk),
        state_store=InMemoryConversationStateStore(),
        registry=PromptBuilderRegistry(),
    )


@pytest.fixture
def scenario_challenge() -> dict:
    return {
        "id": "ch-42",
        "title": "Deploying a triage model",
        "challengeType": "scenario",
        "focusArea": "AI Ethics",
        "content": {"scenario": "A hospital wants to triage patients with a model."},
    }


class TestEvaluationFlow:
    """End-to-end evaluation scenarios."""

    @pytest.mark.asyncio
    async def test_first_evaluation_has_no_growth(self, service, sdk, scenario_challenge):
        """Test the first evaluation in a thread reports no change."""
        sdk.messages.create.return_value = _sdk_message("msg_1", {
            "categoryScores": {"problem_solving": 30, "application": 25, "reasoning": 15, "communication": 10},
            "overallFeedback": "Good start.",
        })

        evaluation = await service.evaluate_response(
            scenario_challenge, "I would audit the data first.",
            {"threadId": "thread-1", "userId": "user-1"},
        )

        assert evaluation.score == 80
        assert evaluation.metadata["score_source"] == "category_sum"
        assert evaluation.growth_metrics.score_change == 0
        assert evaluation.growth_metrics.category_score_changes == {}
        # Scenario type takes precedence over the ethics focus area
        assert evaluation.challenge_context.category_weights == CHALLENGE_TYPE_WEIGHTS["scenario"]

        prompt = sdk.messages.create.await_args.kwargs["messages"][-1]["content"]
        assert "- problem_solving (0-35 points)" in prompt
        assert "ethical_reasoning" not in prompt

    @pytest.mark.asyncio
    async def test_growth_against_previous_evaluation(self, service, sdk, scenario_challenge):
        """Test deltas against a supplied previous evaluation."""
        sdk.messages.create.return_value = _sdk_message("msg_2", {
            "overallScore": 80,
            "categoryScores": {"ethical_reasoning": 75, "problem_solving": 5},
        })

        evaluation = await service.evaluate_response(
            scenario_challenge,
            "Second attempt with stakeholder analysis.",
            {
                "threadId": "thread-1",
                "userId": "user-1",
                "evaluationHistory": {
                    "previousScore": 70,
                    "previousCategoryScores": {"ethical_reasoning": 60},
                },
            },
        )

        assert evaluation.score == 80
        assert evaluation.growth_metrics.score_change == 10
        assert evaluation.growth_metrics.category_score_changes == {"ethical_reasoning": 15}

    @pytest.mark.asyncio
    async def test_thread_continuity_replays_transcript(self, service, sdk, scenario_challenge):
        """Test the second call in a thread continues the first conversation."""
        options = {"threadId": "thread-1", "userId": "user-1"}
        sdk.messages.create.return_value = _sdk_message("msg_1", {"overallScore": 60})
        await service.evaluate_response(scenario_challenge, "First try", options)

        sdk.messages.create.return_value = _sdk_message("msg_2", {"overallScore": 75})
        await service.evaluate_response(scenario_challenge, "Second try", options)

        messages = sdk.messages.create.await_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert "First try" in messages[0]["content"]
        assert "Second try" in messages[2]["content"]

    @pytest.mark.asyncio
    async def test_ungraded_output(self, service, sdk, scenario_challenge):
        """Test output without scores is marked ungraded."""
        sdk.messages.create.return_value = _sdk_message("msg_1", {"overallFeedback": "Could not score."})

        evaluation = await service.evaluate_response(
            scenario_challenge, "Answer", {"threadId": "thread-1", "userId": "user-1"}
        )

        assert evaluation.score == 70
        assert evaluation.is_ungraded

    @pytest.mark.asyncio
    async def test_history_from_repositories(self, sdk, scenario_challenge):
        """Test context gathered from repositories drives growth and weights."""
        evaluations = AsyncMock()
        evaluations.get_by_user_id = AsyncMock(return_value=[
            {"id": "ev-2", "score": 65, "categoryScores": {"communication": 5, "problem_solving": 20}},
            {"id": "ev-1", "score": 60, "categoryScores": {"communication": 6}},
        ])
        service = EvaluationService(
            ai_client=AnthropicAIClient(client=sdk),
            state_store=InMemoryConversationStateStore(),
            registry=PromptBuilderRegistry(),
            context_service=UserContextService(evaluation_repository=evaluations),
        )
        sdk.messages.create.return_value = _sdk_message("msg_1", {
            "overallScore": 72,
            "categoryScores": {"communication": 10, "problem_solving": 25},
        })

        evaluation = await service.evaluate_response(
            scenario_challenge, "Answer", {"threadId": "thread-1", "userId": "user-1"}
        )

        assert evaluation.growth_metrics.score_change == 7
        assert evaluation.growth_metrics.category_score_changes == {"communication": 5, "problem_solving": 5}
        assert evaluation.growth_metrics.persistent_weaknesses == ["communication"]
        weights = evaluation.challenge_context.category_weights
        assert weights["communication"] > CHALLENGE_TYPE_WEIGHTS["scenario"]["communication"]
        assert sum(weights.values()) == 100

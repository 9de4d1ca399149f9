"""Tests for Evaluation module - evaluation service."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from personalized_eval.modules.context.service import UserContextService
from personalized_eval.modules.evaluation.service import EvaluationService
from personalized_eval.modules.llm.interface import AIResponse
from personalized_eval.shared.exceptions import (
    GenerationError,
    PromptConstructionError,
    ValidationError,
)


class TestEvaluationService:
    """Tests for EvaluationService."""

    @pytest.fixture
    def service(self, mock_ai_client, state_store, registry) -> EvaluationService:
        return EvaluationService(
            ai_client=mock_ai_client,
            state_store=state_store,
            registry=registry,
        )

    @pytest.fixture
    def options(self, sample_user) -> dict:
        return {"threadId": "thread-1", "user": sample_user}

    # --- Validation ---

    @pytest.mark.asyncio
    @pytest.mark.parametrize("challenge,response,opts,field", [
        (None, "Answer", {"threadId": "t", "userId": "u"}, "challenge"),
        ({"title": "No id"}, "Answer", {"threadId": "t", "userId": "u"}, "challenge.id"),
        ({"id": "ch-1"}, "   ", {"threadId": "t", "userId": "u"}, "user_response"),
        ({"id": "ch-1"}, "Answer", {"userId": "u"}, "thread_id"),
        ({"id": "ch-1"}, "Answer", {"threadId": "t"}, "user_id"),
    ])
    async def test_validation_before_any_call(
        self, service, mock_ai_client, state_store, challenge, response, opts, field
    ):
        """Test invalid input fails before the AI or state store is touched."""
        state_store.find_or_create = AsyncMock()

        with pytest.raises(ValidationError) as exc_info:
            await service.evaluate_response(challenge, response, opts)

        assert exc_info.value.field == field
        mock_ai_client.send_structured_request.assert_not_awaited()
        state_store.find_or_create.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("challenge,opts,field", [
        ({"id": "c1", "title": "t", "content": 42}, {}, "challenge.content"),
        ({"id": "c1"}, {"user": {"focusAreas": [{"nested": True}]}}, "user.focus_areas.0"),
        ({"id": "c1"}, {"evaluationHistory": {"previousScores": "high"}}, "evaluation_history"),
    ])
    async def test_shape_validation_before_context(
        self, mock_ai_client, state_store, registry, challenge, opts, field
    ):
        """Test malformed challenge, user or history fails before repositories are read."""
        context_service = MagicMock()
        context_service.gather_user_context = AsyncMock()
        service = EvaluationService(mock_ai_client, state_store, registry, context_service=context_service)

        with pytest.raises(ValidationError) as exc_info:
            await service.evaluate_response(challenge, "answer", {"threadId": "t1", "userId": "u1", **opts})

        assert exc_info.value.field.startswith(field)
        context_service.gather_user_context.assert_not_awaited()
        mock_ai_client.send_structured_request.assert_not_awaited()

    # --- Happy path ---

    @pytest.mark.asyncio
    async def test_evaluate_response(self, service, mock_ai_client, sample_challenge, options):
        """Test a successful evaluation record."""
        evaluation = await service.evaluate_response(sample_challenge, "My answer", options)

        assert evaluation.user_id == "user-1"
        assert evaluation.challenge_id == "ch-1"
        assert evaluation.score == 80
        assert evaluation.response_id == "resp_1"
        assert evaluation.thread_id == "thread-1"
        assert evaluation.challenge_context.type == "analysis"
        assert sum(evaluation.challenge_context.category_weights.values()) == 100
        assert evaluation.growth_metrics.score_change == 0

        prompt, request_options = mock_ai_client.send_structured_request.await_args.args
        assert "My answer" in prompt.input
        assert "Name: Ada Lovelace" in prompt.input
        assert request_options.response_format == "json"
        assert request_options.temperature == 0.4
        assert request_options.previous_response_id is None

    @pytest.mark.asyncio
    async def test_state_advances_and_is_reused(self, service, mock_ai_client, state_store, sample_challenge, options):
        """Test the second call in a thread continues from the first response."""
        await service.evaluate_response(sample_challenge, "First", options)

        mock_ai_client.send_structured_request.return_value = AIResponse(
            response_id="resp_2", data={"overallScore": 90}
        )
        await service.evaluate_response(sample_challenge, "Second", options)

        _, request_options = mock_ai_client.send_structured_request.await_args.args
        assert request_options.previous_response_id == "resp_1"

        state = await state_store.find_or_create("user-1", "evaluation_thread-1")
        assert state.last_response_id == "resp_2"

    @pytest.mark.asyncio
    async def test_explicit_previous_response_id_wins(self, service, mock_ai_client, sample_challenge, options):
        """Test a caller supplied continuation token overrides the stored one."""
        await service.evaluate_response(
            sample_challenge, "Answer", {**options, "previousResponseId": "resp_external"}
        )

        _, request_options = mock_ai_client.send_structured_request.await_args.args
        assert request_options.previous_response_id == "resp_external"

    @pytest.mark.asyncio
    async def test_threads_are_isolated(self, service, mock_ai_client, sample_challenge, options):
        """Test different thread ids do not share continuation."""
        await service.evaluate_response(sample_challenge, "First", options)
        await service.evaluate_response(sample_challenge, "Other", {**options, "threadId": "thread-2"})

        _, request_options = mock_ai_client.send_structured_request.await_args.args
        assert request_options.previous_response_id is None

    @pytest.mark.asyncio
    async def test_overrides_model_and_temperature(self, service, mock_ai_client, sample_challenge, options):
        """Test caller options reach the AI request."""
        await service.evaluate_response(
            sample_challenge, "Answer", {**options, "model": "claude-test", "temperature": 0.1}
        )

        _, request_options = mock_ai_client.send_structured_request.await_args.args
        assert request_options.model == "claude-test"
        assert request_options.temperature == 0.1

    # --- Failures ---

    @pytest.mark.asyncio
    async def test_ai_failure_wrapped(self, service, mock_ai_client, state_store, sample_challenge, options):
        """Test AI errors surface as GenerationError and leave state untouched."""
        mock_ai_client.send_structured_request.side_effect = RuntimeError("timeout")

        with pytest.raises(GenerationError) as exc_info:
            await service.evaluate_response(sample_challenge, "Answer", options)

        assert exc_info.value.challenge_id == "ch-1"
        assert exc_info.value.user_id == "user-1"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        state = await state_store.find_or_create("user-1", "evaluation_thread-1")
        assert state.last_response_id is None

    @pytest.mark.asyncio
    async def test_non_object_payload(self, service, mock_ai_client, sample_challenge, options):
        """Test a non-object payload raises GenerationError."""
        mock_ai_client.send_structured_request.return_value = AIResponse(response_id="r", data="text")

        with pytest.raises(GenerationError):
            await service.evaluate_response(sample_challenge, "Answer", options)

    @pytest.mark.asyncio
    async def test_state_update_failure_is_not_fatal(self, service, state_store, sample_challenge, options):
        """Test a failing state update still returns the evaluation."""
        state_store.update_last_response_id = AsyncMock(side_effect=RuntimeError("redis down"))

        evaluation = await service.evaluate_response(sample_challenge, "Answer", options)

        assert evaluation.score == 80

    @pytest.mark.asyncio
    async def test_prompt_failure_propagates(self, mock_ai_client, state_store, sample_challenge, options):
        """Test prompt construction errors propagate without an AI call."""
        registry = MagicMock()
        registry.build = AsyncMock(side_effect=PromptConstructionError("broken", kind="evaluation"))
        service = EvaluationService(mock_ai_client, state_store, registry=registry)

        with pytest.raises(PromptConstructionError):
            await service.evaluate_response(sample_challenge, "Answer", options)
        mock_ai_client.send_structured_request.assert_not_awaited()

    # --- Context ---

    @pytest.mark.asyncio
    async def test_gathers_context_when_not_supplied(self, mock_ai_client, state_store, registry, sample_challenge):
        """Test user context fills in the profile and history."""
        evaluations = AsyncMock()
        evaluations.get_by_user_id = AsyncMock(return_value=[
            {"id": "ev-1", "score": 70, "categoryScores": {"accuracy": 25}},
        ])
        context_service = UserContextService(evaluation_repository=evaluations)
        service = EvaluationService(mock_ai_client, state_store, registry, context_service=context_service)

        evaluation = await service.evaluate_response(
            sample_challenge, "Answer", {"threadId": "t", "userId": "user-9"}
        )

        assert evaluation.growth_metrics.score_change == 10
        assert evaluation.growth_metrics.category_score_changes == {"accuracy": 5}
        assert evaluation.growth_metrics.last_evaluation_id == "ev-1"
        assert evaluation.metadata["personalization_level"] == "high"
        prompt, _ = mock_ai_client.send_structured_request.await_args.args
        assert "Previous Overall Score: 70" in prompt.input

    @pytest.mark.asyncio
    async def test_explicit_inputs_skip_context(self, mock_ai_client, state_store, registry, sample_challenge, options):
        """Test context is not gathered when user and history are given."""
        context_service = MagicMock()
        context_service.gather_user_context = AsyncMock()
        service = EvaluationService(mock_ai_client, state_store, registry, context_service=context_service)

        await service.evaluate_response(sample_challenge, "Answer", {**options, "evaluationHistory": {}})

        context_service.gather_user_context.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unusable_gathered_profile_is_skipped(self, mock_ai_client, state_store, registry, sample_challenge):
        """Test a profile that does not fit the prompt schema does not fail the evaluation."""
        users = AsyncMock()
        users.get_by_id = AsyncMock(return_value={"fullName": 12345, "skillLevel": "advanced"})
        context_service = UserContextService(user_repository=users)
        service = EvaluationService(mock_ai_client, state_store, registry, context_service=context_service)

        evaluation = await service.evaluate_response(
            sample_challenge, "Answer", {"threadId": "t", "userId": "user-9"}
        )

        assert evaluation.score == 80
        prompt, _ = mock_ai_client.send_structured_request.await_args.args
        assert "12345" not in prompt.input

    # --- Streaming ---

    @pytest.mark.asyncio
    async def test_stream_evaluation(self, service, mock_ai_client, state_store, sample_challenge, options):
        """Test streaming uses the streaming prompt and advances state."""
        on_chunk = AsyncMock()

        await service.stream_evaluation(sample_challenge, "Answer", options, on_chunk)

        prompt, request_options, handler = mock_ai_client.stream_request.await_args.args
        assert "### STREAMING" in prompt.input
        assert handler is on_chunk
        state = await state_store.find_or_create("user-1", "evaluation_thread-1")
        assert state.last_response_id == "resp_stream"

    @pytest.mark.asyncio
    async def test_stream_requires_handler(self, service, sample_challenge, options):
        """Test a missing chunk handler is rejected."""
        with pytest.raises(ValidationError):
            await service.stream_evaluation(sample_challenge, "Answer", options, None)

    @pytest.mark.asyncio
    async def test_stream_failure_wrapped(self, service, mock_ai_client, sample_challenge, options):
        """Test stream errors surface as GenerationError."""
        mock_ai_client.stream_request.side_effect = ConnectionError("reset")

        with pytest.raises(GenerationError):
            await service.stream_evaluation(sample_challenge, "Answer", options, AsyncMock())

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, service, mock_ai_client, state_store, sample_challenge, options):
        """Test cancellation is not wrapped and leaves state untouched."""
        mock_ai_client.send_structured_request.side_effect = asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await service.evaluate_response(sample_challenge, "Answer", options)

        state = await state_store.find_or_create("user-1", "evaluation_thread-1")
        assert state.last_response_id is None

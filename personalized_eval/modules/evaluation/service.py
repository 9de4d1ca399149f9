"""Evaluation Service.

Orchestrates one evaluation: validates input, gathers user context, builds the
evaluation prompt, calls the AI backend with the thread's continuation token,
normalizes the result and advances the conversation state.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import Field, field_validator

from personalized_eval.modules.context.interface import UserContext
from personalized_eval.modules.context.service import UserContextService, get_user_context_service
from personalized_eval.modules.conversation.interface import IConversationStateStore
from personalized_eval.modules.conversation.state_store import get_state_store
from personalized_eval.modules.evaluation.models import ChallengeContext, Evaluation
from personalized_eval.modules.evaluation.normalizer import normalize
from personalized_eval.modules.llm.interface import AIRequestOptions, ChunkHandler, IAIClient
from personalized_eval.modules.prompts.builders.evaluation import (
    category_weights_for,
    resolve_challenge_type,
    resolve_focus_area,
)
from personalized_eval.modules.prompts.interface import PromptKind, PromptResult
from personalized_eval.modules.prompts.registry import PromptBuilderRegistry, get_prompt_registry
from personalized_eval.modules.prompts.schemas import (
    EvaluationHistory,
    EvaluationOptions,
    EvaluationPromptParams,
    PromptSchema,
    UserInfo,
    validate_params,
)
from personalized_eval.shared.config import get_settings
from personalized_eval.shared.constants import EVALUATION_PURPOSE_PREFIX
from personalized_eval.shared.datetime_utils import utc_now
from personalized_eval.shared.exceptions import GenerationError, ValidationError

logger = logging.getLogger(__name__)


class EvaluationRequestOptions(PromptSchema):
    """Caller options for an evaluation request."""

    thread_id: str | None = None
    user_id: str | None = None
    user: dict[str, Any] | None = None
    personality_profile: dict[str, Any] | None = None
    evaluation_history: dict[str, Any] | None = None
    previous_response_id: str | None = None
    model: str | None = None
    temperature: float | None = Field(default=None, ge=0, le=1)
    gather_context: bool = True
    session_context: dict[str, Any] = Field(default_factory=dict)

    @field_validator("thread_id", "user_id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        return str(value) if value is not None else None


@dataclass
class _PreparedRequest:
    challenge: dict[str, Any]
    challenge_id: str
    user_response: str
    user_id: str
    thread_id: str
    options: EvaluationRequestOptions
    params: EvaluationPromptParams

    @property
    def purpose(self) -> str:
        return f"{EVALUATION_PURPOSE_PREFIX}_{self.thread_id}"


def _challenge_dict(challenge: Any) -> dict[str, Any]:
    if isinstance(challenge, Mapping):
        return dict(challenge)
    if hasattr(challenge, "model_dump"):
        return challenge.model_dump(by_alias=True, exclude_none=True)
    raise ValidationError("challenge", "Challenge must be a mapping")


class EvaluationService:
    """Service for personalized response evaluation."""

    def __init__(
        self,
        ai_client: IAIClient,
        state_store: IConversationStateStore,
        registry: PromptBuilderRegistry | None = None,
        context_service: UserContextService | None = None,
    ) -> None:
        self.ai_client = ai_client
        self.state_store = state_store
        self.registry = registry or get_prompt_registry()
        self.context_service = context_service
        self.settings = get_settings()

    # ===================
    # Preparation
    # ===================

    def _prepare(
        self,
        challenge: Any,
        user_response: Any,
        options: EvaluationRequestOptions | Mapping[str, Any] | None,
    ) -> _PreparedRequest:
        """Validate everything that must hold before any external call."""
        if not challenge:
            raise ValidationError("challenge", "Challenge is required")
        challenge_data = _challenge_dict(challenge)

        challenge_id = challenge_data.get("id")
        if challenge_id is None or not str(challenge_id).strip():
            raise ValidationError("challenge.id", "Challenge id is required")

        if isinstance(user_response, (dict, list)):
            user_response = json.dumps(user_response)
        if not isinstance(user_response, str) or not user_response.strip():
            raise ValidationError("user_response", "User response is required")

        opts = validate_params(EvaluationRequestOptions, options or {})
        if not opts.thread_id or not opts.thread_id.strip():
            raise ValidationError("thread_id", "Thread id is required for evaluation continuity")

        user = opts.user or {}
        user_id = opts.user_id or user.get("id") or user.get("email")
        if not user_id:
            raise ValidationError("user_id", "A user id is required to evaluate a response")

        # Caller supplied shapes are checked here so bad input never reaches a repository
        params = validate_params(
            EvaluationPromptParams,
            {
                "challenge": challenge_data,
                "userResponse": user_response,
                "user": {"id": str(user_id), **user},
                "personalityProfile": opts.personality_profile or {},
                "evaluationHistory": opts.evaluation_history or {},
            },
        )

        return _PreparedRequest(
            challenge=challenge_data,
            challenge_id=str(challenge_id),
            user_response=user_response,
            user_id=str(user_id),
            thread_id=opts.thread_id.strip(),
            options=opts,
            params=params,
        )

    async def _user_context(self, request: _PreparedRequest) -> UserContext | None:
        opts = request.options
        if not opts.gather_context or self.context_service is None:
            return None
        if opts.user is not None and opts.evaluation_history is not None:
            return None
        return await self.context_service.gather_user_context(
            request.user_id,
            {"session_context": opts.session_context},
        )

    def _prompt_params(
        self,
        request: _PreparedRequest,
        user_context: UserContext | None,
        streaming: bool,
    ) -> EvaluationPromptParams:
        """Merge gathered context into the validated caller params."""
        opts = request.options
        updates: dict[str, Any] = {"options": EvaluationOptions(streaming=streaming)}
        if user_context is not None:
            if opts.evaluation_history is None:
                updates["evaluation_history"] = EvaluationHistory.from_user_context(user_context)
            if opts.user is None:
                try:
                    updates["user"] = validate_params(UserInfo, user_context.profile_params())
                except ValidationError as e:
                    logger.warning(
                        f"Ignoring unusable profile from user context: {e.message}",
                        extra={"user_id": request.user_id},
                    )
        return request.params.model_copy(update=updates)

    @staticmethod
    def _challenge_context(params: EvaluationPromptParams) -> ChallengeContext:
        challenge = params.challenge
        return ChallengeContext(
            id=challenge.id,
            title=challenge.title,
            type=resolve_challenge_type(params),
            format=challenge.format_type,
            focus_area=resolve_focus_area(params),
            difficulty=challenge.difficulty,
            category_weights=category_weights_for(params),
        )

    def _request_options(self, request: _PreparedRequest, previous_response_id: str | None) -> AIRequestOptions:
        opts = request.options
        return AIRequestOptions(
            model=opts.model or self.settings.default_model,
            temperature=(
                opts.temperature if opts.temperature is not None else self.settings.evaluation_temperature
            ),
            response_format="json",
            previous_response_id=previous_response_id,
        )

    async def _open_thread(self, request: _PreparedRequest) -> tuple[str, str | None]:
        """Find or create the thread state and resolve the continuation token."""
        state = await self.state_store.find_or_create(
            request.user_id,
            request.purpose,
            {"challenge_id": request.challenge_id, "thread_id": request.thread_id},
        )
        previous_response_id = (
            request.options.previous_response_id
            or await self.state_store.get_last_response_id(state.id)
        )
        return state.id, previous_response_id

    async def _advance_thread(self, state_id: str, response_id: str | None, issued_at: Any) -> None:
        """Store the new continuation token; failures only degrade continuity."""
        if not response_id:
            logger.warning(
                "AI response carried no response id, conversation state not advanced",
                extra={"state_id": state_id},
            )
            return
        try:
            updated = await self.state_store.update_last_response_id(state_id, response_id, issued_at)
        except Exception as e:
            logger.error(
                f"Failed to update conversation state: {e}",
                extra={"state_id": state_id, "response_id": response_id},
                exc_info=True,
            )
            return
        if not updated:
            logger.warning(
                "Conversation state update was skipped",
                extra={"state_id": state_id, "response_id": response_id},
            )

    async def _build_prompt(self, params: EvaluationPromptParams) -> PromptResult:
        return await self.registry.build(PromptKind.EVALUATION, params.model_dump(by_alias=True))

    # ===================
    # Public API
    # ===================

    async def evaluate_response(
        self,
        challenge: Any,
        user_response: Any,
        options: EvaluationRequestOptions | Mapping[str, Any] | None = None,
    ) -> Evaluation:
        """Evaluate a user's response to a challenge.

        Args:
            challenge: Challenge mapping (id, title, challengeType, focusArea, content, ...)
            user_response: The user's answer
            options: Must include ``threadId`` and a user id (``userId`` or ``user.id``);
                may include user, personalityProfile, evaluationHistory,
                previousResponseId, model and temperature

        Returns:
            Immutable Evaluation

        Raises:
            ValidationError: If required input is missing (no external call is made)
            PromptConstructionError: If the prompt cannot be built
            GenerationError: If the AI call fails or returns an unusable payload
        """
        request = self._prepare(challenge, user_response, options)
        user_context = await self._user_context(request)
        params = self._prompt_params(request, user_context, streaming=False)
        challenge_context = self._challenge_context(params)

        state_id, previous_response_id = await self._open_thread(request)
        prompt = await self._build_prompt(params)

        issued_at = utc_now()
        try:
            response = await self.ai_client.send_structured_request(
                prompt,
                self._request_options(request, previous_response_id),
            )
        except GenerationError:
            raise
        except Exception as e:
            logger.error(
                f"AI evaluation request failed: {e}",
                extra={"challenge_id": request.challenge_id, "user_id": request.user_id},
            )
            raise GenerationError(
                f"AI evaluation request failed: {e}",
                challenge_id=request.challenge_id,
                user_id=request.user_id,
            ) from e

        evaluation = normalize(
            response.data,
            params.evaluation_history,
            challenge_context,
            user_id=request.user_id,
            challenge_id=request.challenge_id,
            response_id=response.response_id,
            thread_id=request.thread_id,
            user_context=user_context,
            metadata={
                "model": response.model,
                "state_id": state_id,
                "previous_response_id": previous_response_id,
            },
        )

        await self._advance_thread(state_id, response.response_id, issued_at)

        logger.info(
            "Evaluation completed",
            extra={
                "challenge_id": request.challenge_id,
                "user_id": request.user_id,
                "score": evaluation.score,
                "score_source": evaluation.metadata["score_source"],
            },
        )
        return evaluation

    async def stream_evaluation(
        self,
        challenge: Any,
        user_response: Any,
        options: EvaluationRequestOptions | Mapping[str, Any] | None,
        on_chunk: ChunkHandler,
    ) -> None:
        """Stream an evaluation, delivering text chunks to ``on_chunk``.

        Validation and prompt construction match ``evaluate_response``; the
        prompt carries the streaming note. The final response id advances the
        conversation state.
        """
        if not callable(on_chunk):
            raise ValidationError("on_chunk", "A chunk callback is required for streaming")

        request = self._prepare(challenge, user_response, options)
        user_context = await self._user_context(request)
        params = self._prompt_params(request, user_context, streaming=True)

        state_id, previous_response_id = await self._open_thread(request)
        prompt = await self._build_prompt(params)

        issued_at = utc_now()
        try:
            response_id = await self.ai_client.stream_request(
                prompt,
                self._request_options(request, previous_response_id),
                on_chunk,
            )
        except GenerationError:
            raise
        except Exception as e:
            logger.error(
                f"AI evaluation stream failed: {e}",
                extra={"challenge_id": request.challenge_id, "user_id": request.user_id},
            )
            raise GenerationError(
                f"AI evaluation stream failed: {e}",
                challenge_id=request.challenge_id,
                user_id=request.user_id,
            ) from e

        await self._advance_thread(state_id, response_id, issued_at)


# Singleton instance
_evaluation_service: EvaluationService | None = None


def get_evaluation_service() -> EvaluationService:
    """Get the evaluation service wired with the configured defaults."""
    global _evaluation_service
    if _evaluation_service is None:
        from personalized_eval.modules.llm.service import get_ai_client

        _evaluation_service = EvaluationService(
            ai_client=get_ai_client(),
            state_store=get_state_store(),
            registry=get_prompt_registry(),
            context_service=get_user_context_service(),
        )
    return _evaluation_service

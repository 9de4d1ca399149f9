"""Test configuration and fixtures."""

import sys
from pathlib import Path

# Load environment variables before any imports that need them
from dotenv import load_dotenv
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")

# Ensure the package is importable without installation
sys.path.insert(0, str(project_root))

import pytest
from unittest.mock import AsyncMock, MagicMock

from personalized_eval.modules.conversation.state_store import InMemoryConversationStateStore
from personalized_eval.modules.llm.interface import AIResponse
from personalized_eval.modules.prompts.registry import PromptBuilderRegistry


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset module-level singletons so tests never share state."""
    yield
    from personalized_eval.modules.context import service as context_service
    from personalized_eval.modules.conversation import state_store
    from personalized_eval.modules.evaluation import service as evaluation_service
    from personalized_eval.modules.llm import service as llm_service
    from personalized_eval.modules.prompts import registry

    registry._registry = None
    state_store._state_store = None
    context_service._user_context_service = None
    evaluation_service._evaluation_service = None
    llm_service._ai_client = None


@pytest.fixture
def registry() -> PromptBuilderRegistry:
    """Fresh registry with the built-in builders."""
    return PromptBuilderRegistry()


@pytest.fixture
def state_store() -> InMemoryConversationStateStore:
    """Fresh in-memory conversation state store."""
    return InMemoryConversationStateStore()


@pytest.fixture
def mock_ai_client():
    """Mock AI client returning a fixed structured evaluation."""
    client = MagicMock()
    client.send_structured_request = AsyncMock(return_value=AIResponse(
        response_id="resp_1",
        data={
            "categoryScores": {"accuracy": 30, "clarity": 20, "reasoning": 20, "creativity": 10},
            "overallScore": 80,
            "overallFeedback": "Solid answer.",
            "strengths": ["Clear structure"],
            "areasForImprovement": ["Cite sources"],
        },
        model="claude-sonnet-4-20250514",
    ))
    client.stream_request = AsyncMock(return_value="resp_stream")
    return client


@pytest.fixture
def sample_challenge() -> dict:
    """Sample challenge as callers send it."""
    return {
        "id": "ch-1",
        "title": "Bias in Hiring Models",
        "challengeType": "analysis",
        "focusArea": "AI Ethics",
        "difficulty": "intermediate",
        "content": {
            "context": "A company screens resumes with a model.",
            "scenario": "Rejection rates differ across groups.",
            "instructions": "Explain what could cause this and how to address it.",
        },
    }


@pytest.fixture
def sample_user() -> dict:
    """Sample user profile."""
    return {
        "id": "user-1",
        "fullName": "Ada Lovelace",
        "email": "ada@example.com",
        "skillLevel": "advanced",
        "professionalTitle": "Data Scientist",
        "focusAreas": ["AI Ethics"],
        "learningGoals": ["Responsible deployment"],
    }

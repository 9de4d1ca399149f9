"""Conversation Module - per-thread continuity with the AI backend."""

from personalized_eval.modules.conversation.interface import (
    ConversationState,
    IConversationStateStore,
)
from personalized_eval.modules.conversation.state_store import (
    InMemoryConversationStateStore,
    RedisConversationStateStore,
    get_state_store,
)

__all__ = [
    "ConversationState",
    "IConversationStateStore",
    "InMemoryConversationStateStore",
    "RedisConversationStateStore",
    "get_state_store",
]

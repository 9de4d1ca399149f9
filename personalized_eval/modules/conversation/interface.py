"""Conversation Module - continuity state for multi-turn AI calls."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from personalized_eval.shared.datetime_utils import utc_now


@dataclass
class ConversationState:
    """Continuity pointer for one (owner, purpose) thread.

    ``last_response_id`` is the opaque continuation token returned by the AI
    backend for the most recent request in the thread. ``last_issued_at`` is
    the issue time of that request and orders competing updates.
    """

    id: str
    owner_id: str
    purpose: str
    last_response_id: str | None = None
    last_issued_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        return (self.owner_id, self.purpose)


class IConversationStateStore(Protocol):
    """Interface for conversation state storage.

    Implementations guarantee at most one logical state per
    (owner_id, purpose) even under concurrent ``find_or_create`` calls, and
    never let an older response id overwrite a newer one.
    """

    async def find_or_create(
        self,
        owner_id: str,
        purpose: str,
        initial_metadata: dict[str, Any] | None = None,
    ) -> ConversationState:
        """Return the state for (owner_id, purpose), creating it on first use.

        Args:
            owner_id: User owning the thread
            purpose: Symbolic thread name (e.g. "evaluation_<thread id>")
            initial_metadata: Metadata stored only when the state is created

        Returns:
            The single ConversationState for the key
        """
        ...

    async def get(self, state_id: str) -> ConversationState | None:
        """Get a state by id, or None if unknown."""
        ...

    async def get_last_response_id(self, state_id: str) -> str | None:
        """Get the continuation token for a state, or None."""
        ...

    async def update_last_response_id(
        self,
        state_id: str,
        response_id: str | None,
        issued_at: datetime | None = None,
    ) -> bool:
        """Advance the continuation token.

        Args:
            state_id: State to update
            response_id: New continuation token; empty values are a no-op
            issued_at: Issue time of the request that produced response_id

        Returns:
            True if the token was stored, False if the update was skipped
        """
        ...

    async def delete(self, state_id: str) -> bool:
        """Delete a state. Returns False if it did not exist."""
        ...

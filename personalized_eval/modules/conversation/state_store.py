"""Conversation State Store.

Keeps, per (owner, purpose) pair, the id of the last AI response so that the
next request in the same thread can continue from it. Two backends share one
contract:

- ``InMemoryConversationStateStore`` for single-process deployments and tests,
  guarded by a per-key asyncio lock.
- ``RedisConversationStateStore`` for horizontally scaled deployments, using
  ``SET NX`` for atomic creation and a distributed lock for updates.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, AsyncGenerator
from uuid import uuid4

from personalized_eval.modules.conversation.interface import (
    ConversationState,
    IConversationStateStore,
)
from personalized_eval.shared.config import get_settings
from personalized_eval.shared.constants import (
    CONVERSATION_STATE_TTL_SECONDS,
    DISTRIBUTED_LOCK_MAX_RETRIES,
    DISTRIBUTED_LOCK_RETRY_DELAY_SECONDS,
    DISTRIBUTED_LOCK_TTL_SECONDS,
)
from personalized_eval.shared.datetime_utils import ensure_utc, from_iso, to_iso, utc_now
from personalized_eval.shared.exceptions import (
    ConversationStateNotFoundError,
    StateStoreError,
    ValidationError,
)
from personalized_eval.shared.redis import get_redis

logger = logging.getLogger(__name__)


def _validate_key(owner_id: str, purpose: str) -> None:
    if not owner_id:
        raise ValidationError("owner_id", "Owner id is required for conversation state")
    if not purpose:
        raise ValidationError("purpose", "Purpose is required for conversation state")


def _is_stale(state: ConversationState, issued_at: datetime | None) -> bool:
    """True when ``issued_at`` is older than the request behind the stored token."""
    if issued_at is None or state.last_issued_at is None:
        return False
    return ensure_utc(issued_at) < ensure_utc(state.last_issued_at)


def _new_state(
    owner_id: str,
    purpose: str,
    initial_metadata: dict[str, Any] | None,
) -> ConversationState:
    now = utc_now()
    return ConversationState(
        id=str(uuid4()),
        owner_id=owner_id,
        purpose=purpose,
        created_at=now,
        updated_at=now,
        metadata=dict(initial_metadata or {}),
    )


class InMemoryConversationStateStore:
    """Process-local conversation state storage.

    Creation and updates for one key are serialized by a per-key lock, so
    concurrent ``find_or_create`` calls for the same key always resolve to
    the same state.
    """

    def __init__(self) -> None:
        self._states: dict[str, ConversationState] = {}
        self._ids_by_key: dict[tuple[str, str], str] = {}
        self._key_locks: dict[tuple[str, str], asyncio.Lock] = {}

    def _lock_for(self, key: tuple[str, str]) -> asyncio.Lock:
        return self._key_locks.setdefault(key, asyncio.Lock())

    @staticmethod
    def _snapshot(state: ConversationState) -> ConversationState:
        # Callers get copies; the stored record changes only through the store
        return replace(state, metadata=dict(state.metadata))

    async def find_or_create(
        self,
        owner_id: str,
        purpose: str,
        initial_metadata: dict[str, Any] | None = None,
    ) -> ConversationState:
        _validate_key(owner_id, purpose)
        key = (owner_id, purpose)

        async with self._lock_for(key):
            state_id = self._ids_by_key.get(key)
            if state_id is not None:
                logger.debug(
                    "Found existing conversation state",
                    extra={"state_id": state_id, "owner_id": owner_id, "purpose": purpose},
                )
                return self._snapshot(self._states[state_id])

            state = _new_state(owner_id, purpose, initial_metadata)
            self._states[state.id] = state
            self._ids_by_key[key] = state.id

        logger.info(
            "Created new conversation state",
            extra={"state_id": state.id, "owner_id": owner_id, "purpose": purpose},
        )
        return self._snapshot(state)

    async def get(self, state_id: str) -> ConversationState | None:
        state = self._states.get(state_id)
        return self._snapshot(state) if state else None

    async def get_last_response_id(self, state_id: str) -> str | None:
        if not state_id:
            logger.warning("get_last_response_id called without state_id")
            return None
        state = self._states.get(state_id)
        return state.last_response_id if state else None

    async def update_last_response_id(
        self,
        state_id: str,
        response_id: str | None,
        issued_at: datetime | None = None,
    ) -> bool:
        if not response_id:
            logger.warning(
                "Skipping conversation state update without response id",
                extra={"state_id": state_id},
            )
            return False

        state = self._states.get(state_id)
        if state is None:
            raise ConversationStateNotFoundError(state_id)

        async with self._lock_for(state.key):
            if _is_stale(state, issued_at):
                logger.warning(
                    "Rejected out-of-order response id",
                    extra={
                        "state_id": state_id,
                        "response_id": response_id,
                        "issued_at": to_iso(issued_at),
                        "current_issued_at": to_iso(state.last_issued_at),
                    },
                )
                return False

            state.last_response_id = response_id
            if issued_at is not None:
                state.last_issued_at = ensure_utc(issued_at)
            state.updated_at = utc_now()

        logger.debug(
            "Updated conversation state with new response id",
            extra={"state_id": state_id, "response_id": response_id},
        )
        return True

    async def delete(self, state_id: str) -> bool:
        state = self._states.pop(state_id, None)
        if state is None:
            return False
        self._ids_by_key.pop(state.key, None)
        self._key_locks.pop(state.key, None)
        return True


class RedisConversationStateStore:
    """Redis-backed conversation state storage.

    The state itself lives under a key derived from (owner, purpose); a second
    key maps the state id back to it so states can be addressed by id alone.
    Both expire after the configured TTL and are refreshed together on every
    read through find_or_create and every update.
    """

    # Key prefix for conversation states
    KEY_PREFIX = "conversation:state:"

    # Key prefix for the id -> state key index
    ID_PREFIX = "conversation:state-id:"

    # Key prefix for locks
    LOCK_PREFIX = "conversation:lock:"

    DEFAULT_TTL = CONVERSATION_STATE_TTL_SECONDS

    # Lock settings from constants
    LOCK_TTL = DISTRIBUTED_LOCK_TTL_SECONDS
    LOCK_RETRY_DELAY = DISTRIBUTED_LOCK_RETRY_DELAY_SECONDS
    LOCK_MAX_RETRIES = DISTRIBUTED_LOCK_MAX_RETRIES

    def __init__(self, ttl_seconds: int = DEFAULT_TTL, redis_client: Any = None) -> None:
        """Initialize state store.

        Args:
            ttl_seconds: Time-to-live for state entries
            redis_client: Optional client; the shared pool is used otherwise
        """
        self._ttl = ttl_seconds
        self._redis = redis_client

    async def _client(self) -> Any:
        if self._redis is not None:
            return self._redis
        return await get_redis()

    def _state_key(self, owner_id: str, purpose: str) -> str:
        return f"{self.KEY_PREFIX}{owner_id}:{purpose}"

    def _id_key(self, state_id: str) -> str:
        return f"{self.ID_PREFIX}{state_id}"

    async def _touch(self, redis: Any, key: str, state_id: str) -> None:
        """Extend the TTL of a state and its id pointer together."""
        async with redis.pipeline(transaction=True) as pipe:
            pipe.expire(key, self._ttl)
            pipe.set(self._id_key(state_id), key, ex=self._ttl)
            await pipe.execute()

    @asynccontextmanager
    async def acquire_lock(self, state_id: str) -> AsyncGenerator[bool, None]:
        """Acquire a distributed lock for one conversation state.

        Uses Redis SET NX so only one writer advances a state at a time.

        Args:
            state_id: State to lock

        Yields:
            True if lock was acquired, False otherwise
        """
        redis = await self._client()
        lock_key = f"{self.LOCK_PREFIX}{state_id}"
        lock_acquired = False

        try:
            for _ in range(self.LOCK_MAX_RETRIES):
                lock_acquired = await redis.set(
                    lock_key,
                    "1",
                    nx=True,
                    ex=self.LOCK_TTL,
                )
                if lock_acquired:
                    break
                await asyncio.sleep(self.LOCK_RETRY_DELAY)

            if not lock_acquired:
                logger.warning(
                    f"Failed to acquire lock for state {state_id} after {self.LOCK_MAX_RETRIES} retries"
                )

            yield bool(lock_acquired)
        finally:
            if lock_acquired:
                try:
                    await redis.delete(lock_key)
                except Exception as e:
                    logger.warning(f"Error releasing lock for state {state_id}: {e}")

    async def find_or_create(
        self,
        owner_id: str,
        purpose: str,
        initial_metadata: dict[str, Any] | None = None,
    ) -> ConversationState:
        _validate_key(owner_id, purpose)
        redis = await self._client()
        key = self._state_key(owner_id, purpose)

        data = await redis.get(key)
        if data is not None:
            state = self._deserialize(data)
            await self._touch(redis, key, state.id)
            return state

        state = _new_state(owner_id, purpose, initial_metadata)
        created = await redis.set(key, self._serialize(state), nx=True, ex=self._ttl)
        if not created:
            # Another request created the state between our GET and SET
            data = await redis.get(key)
            if data is None:
                raise StateStoreError(
                    "Conversation state vanished during creation",
                    {"owner_id": owner_id, "purpose": purpose},
                )
            return self._deserialize(data)

        await redis.set(self._id_key(state.id), key, ex=self._ttl)
        logger.info(
            "Created new conversation state",
            extra={"state_id": state.id, "owner_id": owner_id, "purpose": purpose},
        )
        return state

    async def get(self, state_id: str) -> ConversationState | None:
        if not state_id:
            return None
        redis = await self._client()

        key = await redis.get(self._id_key(state_id))
        if key is None:
            return None
        data = await redis.get(key)
        if data is None:
            return None

        state = self._deserialize(data)
        # The key may have been recreated for a new state after expiry
        return state if state.id == state_id else None

    async def get_last_response_id(self, state_id: str) -> str | None:
        if not state_id:
            logger.warning("get_last_response_id called without state_id")
            return None
        state = await self.get(state_id)
        return state.last_response_id if state else None

    async def update_last_response_id(
        self,
        state_id: str,
        response_id: str | None,
        issued_at: datetime | None = None,
    ) -> bool:
        if not response_id:
            logger.warning(
                "Skipping conversation state update without response id",
                extra={"state_id": state_id},
            )
            return False

        async with self.acquire_lock(state_id) as lock_acquired:
            if not lock_acquired:
                raise StateStoreError(
                    "Could not lock conversation state for update",
                    {"state_id": state_id},
                )

            state = await self.get(state_id)
            if state is None:
                raise ConversationStateNotFoundError(state_id)

            if _is_stale(state, issued_at):
                logger.warning(
                    "Rejected out-of-order response id",
                    extra={"state_id": state_id, "response_id": response_id},
                )
                return False

            state.last_response_id = response_id
            if issued_at is not None:
                state.last_issued_at = ensure_utc(issued_at)
            state.updated_at = utc_now()

            redis = await self._client()
            key = self._state_key(state.owner_id, state.purpose)
            async with redis.pipeline(transaction=True) as pipe:
                pipe.setex(key, self._ttl, self._serialize(state))
                pipe.setex(self._id_key(state_id), self._ttl, key)
                await pipe.execute()

        logger.debug(
            "Updated conversation state with new response id",
            extra={"state_id": state_id, "response_id": response_id},
        )
        return True

    async def delete(self, state_id: str) -> bool:
        redis = await self._client()
        key = await redis.get(self._id_key(state_id))
        if key is None:
            return False
        await redis.delete(self._id_key(state_id))
        return await redis.delete(key) > 0

    def _serialize(self, state: ConversationState) -> str:
        """Serialize ConversationState to JSON."""
        return json.dumps({
            "id": state.id,
            "owner_id": state.owner_id,
            "purpose": state.purpose,
            "last_response_id": state.last_response_id,
            "last_issued_at": to_iso(state.last_issued_at),
            "created_at": to_iso(state.created_at),
            "updated_at": to_iso(state.updated_at),
            "metadata": state.metadata,
        }, default=str)

    def _deserialize(self, data: str) -> ConversationState:
        """Deserialize JSON to ConversationState."""
        parsed = json.loads(data)
        return ConversationState(
            id=parsed["id"],
            owner_id=parsed["owner_id"],
            purpose=parsed["purpose"],
            last_response_id=parsed.get("last_response_id"),
            last_issued_at=from_iso(parsed.get("last_issued_at")),
            created_at=from_iso(parsed.get("created_at")) or utc_now(),
            updated_at=from_iso(parsed.get("updated_at")) or utc_now(),
            metadata=parsed.get("metadata") or {},
        )


# Factory function
_state_store: IConversationStateStore | None = None


def get_state_store() -> IConversationStateStore:
    """Get the configured conversation state store.

    Returns:
        Redis-backed store when CONVERSATION_STATE_BACKEND=redis,
        in-memory store otherwise
    """
    global _state_store
    if _state_store is None:
        settings = get_settings()
        if settings.conversation_state_backend == "redis":
            _state_store = RedisConversationStateStore(
                ttl_seconds=settings.conversation_state_ttl_seconds,
            )
        else:
            _state_store = InMemoryConversationStateStore()
    return _state_store

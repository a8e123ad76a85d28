"""At-most-once reward issuance guard.

Every message maps to one canonical identity. Before a reward is issued the
identity is reserved; a second evaluation of the same message (redelivered
event, retried handler, concurrent invocation) sees the reservation and is
suppressed as a duplicate.

Reservation is serialized per identity with an asyncio lock, then delegated
to the store's atomic ``reserve`` primitive. Locks exist only while someone
holds or waits for them, so unrelated identities never contend.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Final
from uuid import UUID, uuid5

from chat_rewards.config.logging_config import get_logger
from chat_rewards.domain.models import ProcessedRewardRecord
from chat_rewards.domain.protocols import ProcessedRecordStoreProtocol

logger = get_logger(__name__)

REWARD_IDENTITY_NAMESPACE: Final[UUID] = UUID("5b0f6c1e-2f7a-4c55-9d0e-7a3c1f0b8e41")
"""UUID5 namespace for reward identities. Changing it re-keys every record."""


def identity_of(message_id: str, agent_id: str, author_id: str) -> str:
    """Derive the canonical reward identity of a message.

    Only stable fields take part, so every fetch of the same logical message
    yields the same key regardless of edits, reactions or replies.

    Example:
        >>> identity_of("111", "agent-1", "222") == identity_of("111", "agent-1", "222")
        True
    """
    canonical = f"{message_id}-{agent_id}-{author_id}-reward"
    return str(uuid5(REWARD_IDENTITY_NAMESPACE, canonical))


@dataclass(frozen=True)
class Reservation:
    """Result of a reservation attempt."""

    key: str
    already_processed: bool

    @property
    def acquired(self) -> bool:
        return not self.already_processed


class RewardGuard:
    """Idempotency layer in front of the processed-record store."""

    def __init__(self, store: ProcessedRecordStoreProtocol) -> None:
        self._store = store
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _key_lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    @property
    def active_keys(self) -> int:
        """Number of identities with a live lock (zero when idle)."""
        return len(self._locks)

    async def is_processed(self, key: str) -> bool:
        """Return True if the identity is reserved or already rewarded."""
        return await asyncio.to_thread(self._store.exists, key)

    async def check_and_reserve(self, key: str) -> Reservation:
        """Atomically check an identity and reserve it if new.

        Of any number of concurrent calls for the same key, exactly one
        observes ``already_processed=False``.

        A caller cancelled while the store call is in flight does not leave a
        reservation behind: the store call runs to completion and whatever it
        reserved is released before the cancellation propagates.

        Raises:
            RepositoryError: On storage failures
        """
        async with self._key_lock(key):
            pending = asyncio.ensure_future(asyncio.to_thread(self._store.reserve, key))
            try:
                acquired = await asyncio.shield(pending)
            except asyncio.CancelledError:
                if await pending:
                    await asyncio.to_thread(self._store.release, key)
                    logger.info("reward_reservation_abandoned", identity=key)
                raise

        if not acquired:
            logger.info("reward_reservation_exists", identity=key)
        else:
            logger.debug("reward_reserved", identity=key)
        return Reservation(key=key, already_processed=not acquired)

    async def finalize(self, key: str, record: ProcessedRewardRecord) -> None:
        """Persist the processed record for a reserved identity.

        Raises:
            RepositoryError: On storage failures or if already finalized
        """
        async with self._key_lock(key):
            await asyncio.to_thread(self._store.set, key, record)
        logger.debug("reward_finalized", identity=key)

    async def release(self, key: str) -> bool:
        """Drop a pending reservation so a later evaluation may retry.

        Finalized records are never released.

        Returns:
            True if a pending reservation was removed
        """
        async with self._key_lock(key):
            released = await asyncio.to_thread(self._store.release, key)
        logger.info("reward_reservation_released", identity=key, released=released)
        return released

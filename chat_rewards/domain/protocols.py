"""Protocol definitions for dependency inversion.

These abstract interfaces define contracts that adapters must implement.
"""

from typing import Any, Protocol, runtime_checkable

from chat_rewards.domain.models import (
    ApiOutcome,
    MessageLocator,
    MessageSnapshot,
    ProcessedRewardRecord,
    ScoreResult,
)


@runtime_checkable
class ProcessedRecordStoreProtocol(Protocol):
    """Key-value store holding processed reward records.

    ``reserve`` must be atomic with respect to other callers using the same
    key: exactly one of several concurrent calls may return True.
    """

    def exists(self, key: str) -> bool:
        """Return True if the key is reserved or finalized."""
        ...

    def get(self, key: str) -> ProcessedRewardRecord | None:
        """Return the finalized record for a key, if any."""
        ...

    def set(self, key: str, record: ProcessedRewardRecord) -> None:
        """Persist the finalized record for a key.

        Raises:
            RepositoryError: On storage failures
        """
        ...

    def reserve(self, key: str) -> bool:
        """Atomically mark a key as in-flight.

        Returns:
            True if this call took the reservation, False if the key was
            already reserved or finalized
        """
        ...

    def release(self, key: str) -> bool:
        """Drop a reservation that has no finalized record.

        Returns:
            True if a pending reservation was removed
        """
        ...


class RewardIssuerProtocol(Protocol):
    """External reward issuance service."""

    async def issue(
        self, identity: str, snapshot: MessageSnapshot, score: ScoreResult
    ) -> ApiOutcome:
        """Issue a reward for a qualifying message.

        Args:
            identity: Canonical message identity
            snapshot: Message that earned the reward
            score: Score that qualified it

        Returns:
            Status and human-readable message from the service

        Raises:
            Exception: Any failure; callers treat it as an issuance error
        """
        ...


class MessageSourceProtocol(Protocol):
    """Chat platform client able to fetch one message by locator."""

    async def fetch_message(self, locator: MessageLocator) -> dict[str, Any] | None:
        """Fetch a raw message payload.

        Returns:
            Raw payload dictionary, or None if the guild, channel or message
            does not exist
        """
        ...


class KeywordMatcherProtocol(Protocol):
    """Pluggable keyword relevance signal."""

    def __call__(self, snapshot: MessageSnapshot) -> bool:
        """Return True if the message matches the configured keywords."""
        ...

"""Process reward use case.

Orchestrates one reward evaluation:

1. Skip messages written by the agent itself
2. Score the message; stop if the conditions are not met
3. Reserve the message identity; stop if it is already reserved or rewarded
4. Call the reward issuer under a timeout
5. Persist the processed record (success) or release the reservation
   (failure, timeout, cancellation)

A message identity that has been rewarded is never rewarded again, however
many times or however concurrently it is evaluated.
"""

import asyncio
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from time import perf_counter
from typing import Any, Final

from chat_rewards.config.logging_config import get_logger
from chat_rewards.domain.exceptions import IssuanceError, RepositoryError
from chat_rewards.domain.models import (
    ApiOutcome,
    MessageSnapshot,
    ProcessedRewardRecord,
    RewardOutcome,
    RewardReason,
    ScoreResult,
)
from chat_rewards.domain.protocols import MessageSourceProtocol, RewardIssuerProtocol
from chat_rewards.domain.scoring_constants import DEFAULT_REWARD_TIMEOUT_SECONDS
from chat_rewards.observability.metrics import (
    REWARD_EVALUATIONS_TOTAL,
    REWARD_ISSUANCE_FAILURES_TOTAL,
    REWARD_ISSUANCE_SECONDS,
)
from chat_rewards.observability.tracing import correlation_scope
from chat_rewards.services.reward_guard import RewardGuard, identity_of
from chat_rewards.services.scoring_engine import ScoringEngine
from chat_rewards.use_cases.resolve_message import resolve_snapshot

logger = get_logger(__name__)

REWARD_NOTICE_TEMPLATE: Final[str] = "You have been rewarded for your message: {message}"
"""Text posted back to the channel after a successful reward."""


def _utc_now() -> datetime:
    return datetime.now(UTC)


def format_reward_notice(api_response: ApiOutcome) -> str:
    """Build the channel notice for a successful reward."""
    return REWARD_NOTICE_TEMPLATE.format(message=api_response.message)


class RewardCoordinator:
    """Scores messages and issues rewards at most once per message.

    Example:
        >>> coordinator = RewardCoordinator(
        ...     engine, RewardGuard(store), StubRewardIssuer(), agent_id="agent-1"
        ... )
        >>> outcome = await coordinator.process(snapshot)
        >>> outcome.reason
        <RewardReason.REWARDED: 'rewarded'>
    """

    def __init__(
        self,
        engine: ScoringEngine,
        guard: RewardGuard,
        issuer: RewardIssuerProtocol,
        *,
        agent_id: str,
        self_user_id: str | None = None,
        timeout_seconds: float = DEFAULT_REWARD_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize coordinator.

        Args:
            engine: Scoring engine holding the default rules
            guard: Reservation guard in front of the processed-record store
            issuer: External reward service
            agent_id: Evaluating agent (part of every reward identity)
            self_user_id: Platform user id of the agent (defaults to agent_id);
                messages by this author are never scored
            timeout_seconds: Upper bound for one reward call
            clock: Source of processed_at timestamps

        Raises:
            ValueError: If agent_id is empty or timeout_seconds is not positive
        """
        if not agent_id:
            raise ValueError("agent_id must not be empty")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self._engine = engine
        self._guard = guard
        self._issuer = issuer
        self._agent_id = agent_id
        self._self_user_id = self_user_id or agent_id
        self._timeout_seconds = timeout_seconds
        self._clock = clock or _utc_now

    @property
    def agent_id(self) -> str:
        return self._agent_id

    def identity_for(self, snapshot: MessageSnapshot) -> str:
        """Canonical reward identity of a message for this agent."""
        return identity_of(snapshot.message_id, self._agent_id, snapshot.author_id)

    async def process(
        self,
        snapshot: MessageSnapshot,
        *,
        overrides: Mapping[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> RewardOutcome:
        """Evaluate a message and reward it if it qualifies.

        Args:
            snapshot: Message to evaluate
            overrides: Partial camelCase rules merged over the engine's rules
            correlation_id: Log correlation id (generated when omitted)

        Returns:
            RewardOutcome describing what happened

        Raises:
            ConfigurationError: If the overrides produce invalid rules
            IssuanceError: If the reward call failed or timed out (the
                reservation has been released)
            RepositoryError: If the store fails
        """
        identity = self.identity_for(snapshot)

        with correlation_scope(correlation_id):
            if snapshot.author_id == self._self_user_id:
                logger.info(
                    "reward_skipped_self_message",
                    identity=identity,
                    message_id=snapshot.message_id,
                )
                REWARD_EVALUATIONS_TOTAL.labels(outcome=RewardReason.SELF_MESSAGE.value).inc()
                return RewardOutcome(
                    identity=identity, rewarded=False, reason=RewardReason.SELF_MESSAGE
                )

            engine = self._engine.with_overrides(overrides) if overrides else self._engine
            score = engine.evaluate(snapshot)

            if not score.meets_conditions:
                logger.info(
                    "reward_conditions_not_met",
                    identity=identity,
                    message_id=snapshot.message_id,
                    quality_score=score.quality_score,
                    trust_score=score.trust_score,
                )
                REWARD_EVALUATIONS_TOTAL.labels(
                    outcome=RewardReason.CONDITIONS_NOT_MET.value
                ).inc()
                return RewardOutcome(
                    identity=identity,
                    rewarded=False,
                    reason=RewardReason.CONDITIONS_NOT_MET,
                    score=score,
                )

            reservation = await self._guard.check_and_reserve(identity)
            if reservation.already_processed:
                logger.info(
                    "reward_duplicate_suppressed",
                    identity=identity,
                    message_id=snapshot.message_id,
                )
                REWARD_EVALUATIONS_TOTAL.labels(outcome=RewardReason.DUPLICATE.value).inc()
                return RewardOutcome(
                    identity=identity,
                    rewarded=False,
                    reason=RewardReason.DUPLICATE,
                    score=score,
                )

            api_response = await self._issue(identity, snapshot, score)

            record = ProcessedRewardRecord(
                identity=identity,
                processed_at=self._clock(),
                score=score,
                api_response=api_response,
            )
            try:
                await self._guard.finalize(identity, record)
            except RepositoryError as e:
                # The reward went out: keep the reservation so it is not paid twice
                logger.error(
                    "reward_finalize_failed",
                    identity=identity,
                    message_id=snapshot.message_id,
                    error=str(e),
                )
                raise

            logger.info(
                "reward_issued",
                identity=identity,
                message_id=snapshot.message_id,
                author_id=snapshot.author_id,
                quality_score=score.quality_score,
                trust_score=score.trust_score,
                api_status=api_response.status,
            )
            REWARD_EVALUATIONS_TOTAL.labels(outcome=RewardReason.REWARDED.value).inc()
            return RewardOutcome(
                identity=identity,
                rewarded=True,
                reason=RewardReason.REWARDED,
                score=score,
                api_response=api_response,
                notice=format_reward_notice(api_response),
            )

    async def _issue(
        self, identity: str, snapshot: MessageSnapshot, score: ScoreResult
    ) -> ApiOutcome:
        """Call the issuer; release the reservation on any failure."""
        started = perf_counter()
        try:
            api_response = await asyncio.wait_for(
                self._issuer.issue(identity, snapshot, score),
                timeout=self._timeout_seconds,
            )
        except asyncio.CancelledError:
            REWARD_ISSUANCE_FAILURES_TOTAL.labels(kind="cancelled").inc()
            logger.warning("reward_issuance_cancelled", identity=identity)
            await asyncio.shield(self._release(identity))
            raise
        except TimeoutError as e:
            REWARD_ISSUANCE_FAILURES_TOTAL.labels(kind="timeout").inc()
            logger.error(
                "reward_issuance_timeout",
                identity=identity,
                timeout_seconds=self._timeout_seconds,
            )
            await self._release(identity)
            raise IssuanceError(
                f"Reward call timed out after {self._timeout_seconds}s",
                identity=identity,
            ) from e
        except Exception as e:
            REWARD_ISSUANCE_FAILURES_TOTAL.labels(kind="error").inc()
            logger.error(
                "reward_issuance_failed",
                identity=identity,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._release(identity)
            raise IssuanceError(f"Reward call failed: {e}", identity=identity) from e
        finally:
            REWARD_ISSUANCE_SECONDS.observe(perf_counter() - started)

        return api_response

    async def _release(self, identity: str) -> None:
        try:
            await self._guard.release(identity)
        except RepositoryError as e:
            # Leaves the identity reserved; cleanup_stale_reservations recovers it
            logger.error("reward_release_failed", identity=identity, error=str(e))


async def process_message_url_use_case(
    url: str | None,
    source: MessageSourceProtocol,
    coordinator: RewardCoordinator,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> RewardOutcome:
    """Resolve a message permalink and run it through the coordinator.

    Raises:
        ResolutionError: If the message cannot be resolved
        IssuanceError: If the reward call failed
    """
    snapshot = await resolve_snapshot(url, source)
    return await coordinator.process(snapshot, overrides=overrides)

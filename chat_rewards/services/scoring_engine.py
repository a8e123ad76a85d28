"""Scoring engine for message reward eligibility.

Calculates two scores from configurable factors:
- Quality: message length, unique words, relevance, engagement
- Trust: account age, community standing, previous contributions, report history

Each factor is looked up in a capability table mapping the factor to its
scoring function. Factors declared in the rules but without a computation
map to a not-implemented scorer that contributes zero, so new factors can be
configured ahead of their implementation.
"""

from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Final

from chat_rewards.config.logging_config import get_logger
from chat_rewards.domain.exceptions import ConfigurationError
from chat_rewards.domain.models import (
    EngagementSignal,
    MessageSnapshot,
    QualityFactor,
    RelevanceSignal,
    RuleSet,
    ScoreResult,
    StandingSignal,
    TrustFactor,
)
from chat_rewards.domain.protocols import KeywordMatcherProtocol
from chat_rewards.domain.scoring_constants import (
    PARTIAL_CREDIT,
    REACTIONS_IDEAL,
    REACTIONS_MIN,
    REPLIES_IDEAL,
    REPLIES_MIN,
    ROLES_IDEAL,
    ROLES_MIN,
    TOPIC_SIMILARITY_THRESHOLD,
)
from chat_rewards.services.normalizer import clamp_score, normalize
from chat_rewards.services.text_normalizer import jaccard_similarity

logger = get_logger(__name__)

Clock = Callable[[], datetime]
FactorScorer = Callable[[MessageSnapshot, datetime], float]


class EngineCapability(str, Enum):
    """Optional runtime context the engine may rely on."""

    MEMBER_CONTEXT = "member_context"
    """Community membership data (roles) is available for trust scoring."""


DEFAULT_CAPABILITIES: Final[frozenset[EngineCapability]] = frozenset(
    {EngineCapability.MEMBER_CONTEXT}
)


def always_match(snapshot: MessageSnapshot) -> bool:
    """Default keyword policy: every message earns the keyword credit."""
    return True


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _not_implemented(factor: QualityFactor | TrustFactor) -> FactorScorer:
    """Scorer for a factor that is declared but has no computation yet."""

    def _score(snapshot: MessageSnapshot, now: datetime) -> float:
        logger.debug(
            "scoring_factor_not_implemented",
            factor=factor.value,
            message_id=snapshot.message_id,
        )
        return 0.0

    return _score


class ScoringEngine:
    """Turns a MessageSnapshot into a ScoreResult under a RuleSet.

    The engine is pure: it keeps no per-message state and never caches
    scores, so one instance can serve any number of concurrent evaluations.

    Example:
        >>> engine = ScoringEngine(load_scoring_rules())
        >>> result = engine.evaluate(snapshot)
        >>> result.meets_conditions
        True
    """

    def __init__(
        self,
        rules: RuleSet,
        *,
        capabilities: Iterable[EngineCapability] = DEFAULT_CAPABILITIES,
        keyword_matcher: KeywordMatcherProtocol | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            rules: Validated scoring rules
            capabilities: Runtime context available to trust scoring
            keyword_matcher: Keyword relevance signal (default awards always)
            clock: Source of "now" for account age (default: UTC wall clock)

        Raises:
            ConfigurationError: If rules is not a validated RuleSet
        """
        if not isinstance(rules, RuleSet):
            raise ConfigurationError(
                f"ScoringEngine requires a validated RuleSet, got {type(rules).__name__}"
            )
        self._rules = rules
        self._capabilities = frozenset(capabilities)
        self._keyword_matcher = keyword_matcher or always_match
        self._clock = clock or _utc_now

        implemented_quality: dict[QualityFactor, FactorScorer] = {
            QualityFactor.MESSAGE_LENGTH: self._message_length_score,
            QualityFactor.UNIQUE_WORDS: self._unique_words_score,
            QualityFactor.RELEVANCE: self._relevance_score,
            QualityFactor.ENGAGEMENT: self._engagement_score,
        }
        implemented_trust: dict[TrustFactor, FactorScorer] = {
            TrustFactor.ACCOUNT_AGE: self._account_age_score,
            TrustFactor.COMMUNITY_STANDING: self._community_standing_score,
        }
        self._quality_scorers = {
            factor: implemented_quality.get(factor, _not_implemented(factor))
            for factor in QualityFactor
        }
        self._trust_scorers = {
            factor: implemented_trust.get(factor, _not_implemented(factor))
            for factor in TrustFactor
        }

        quality = rules.scoring.quality_factors
        trust = rules.scoring.trust_factors
        self._quality_weights: dict[QualityFactor, float] = {
            QualityFactor.MESSAGE_LENGTH: quality.message_length.weight,
            QualityFactor.UNIQUE_WORDS: quality.unique_words.weight,
            QualityFactor.RELEVANCE: quality.relevance.weight,
            QualityFactor.ENGAGEMENT: quality.engagement.weight,
        }
        self._trust_weights: dict[TrustFactor, float] = {
            TrustFactor.ACCOUNT_AGE: trust.account_age.weight,
            TrustFactor.PREVIOUS_CONTRIBUTIONS: trust.previous_contributions.weight,
            TrustFactor.COMMUNITY_STANDING: trust.community_standing.weight,
            TrustFactor.REPORT_HISTORY: trust.report_history.weight,
        }

    @property
    def rules(self) -> RuleSet:
        return self._rules

    @property
    def capabilities(self) -> frozenset[EngineCapability]:
        return self._capabilities

    def with_overrides(self, overrides: Mapping[str, Any]) -> "ScoringEngine":
        """Return an engine whose rules have ``overrides`` merged over these.

        Raises:
            ConfigurationError: If the merged document is invalid
        """
        from chat_rewards.config.rules_loader import apply_overrides

        return ScoringEngine(
            apply_overrides(self._rules, overrides),
            capabilities=self._capabilities,
            keyword_matcher=self._keyword_matcher,
            clock=self._clock,
        )

    # Public API ---------------------------------------------------------

    def evaluate(
        self, snapshot: MessageSnapshot, *, now: datetime | None = None
    ) -> ScoreResult:
        """Score a message and apply the gate conditions.

        Args:
            snapshot: Message to score
            now: Evaluation time (defaults to the engine clock)

        Returns:
            Fresh ScoreResult
        """
        evaluated_at = now or self._clock()
        quality_score = self.quality_score(snapshot, now=evaluated_at)
        trust_score = self.trust_score(snapshot, now=evaluated_at)
        meets_conditions = self.meets_conditions(snapshot, quality_score, trust_score)

        logger.debug(
            "scoring_completed",
            message_id=snapshot.message_id,
            quality_score=quality_score,
            trust_score=trust_score,
            meets_conditions=meets_conditions,
        )
        return ScoreResult(
            quality_score=quality_score,
            trust_score=trust_score,
            meets_conditions=meets_conditions,
        )

    def quality_breakdown(
        self, snapshot: MessageSnapshot, *, now: datetime | None = None
    ) -> dict[QualityFactor, float]:
        """Raw per-factor quality scores, before weights are applied."""
        evaluated_at = now or self._clock()
        return {
            factor: scorer(snapshot, evaluated_at)
            for factor, scorer in self._quality_scorers.items()
        }

    def trust_breakdown(
        self, snapshot: MessageSnapshot, *, now: datetime | None = None
    ) -> dict[TrustFactor, float]:
        """Raw per-factor trust scores, before weights are applied."""
        evaluated_at = now or self._clock()
        return {
            factor: scorer(snapshot, evaluated_at)
            for factor, scorer in self._trust_scorers.items()
        }

    def quality_score(
        self, snapshot: MessageSnapshot, *, now: datetime | None = None
    ) -> float:
        breakdown = self.quality_breakdown(snapshot, now=now)
        return clamp_score(
            sum(self._quality_weights[factor] * score for factor, score in breakdown.items())
        )

    def trust_score(
        self, snapshot: MessageSnapshot, *, now: datetime | None = None
    ) -> float:
        breakdown = self.trust_breakdown(snapshot, now=now)
        return clamp_score(
            sum(self._trust_weights[factor] * score for factor, score in breakdown.items())
        )

    def meets_conditions(
        self, snapshot: MessageSnapshot, quality_score: float, trust_score: float
    ) -> bool:
        """Check all four gates. Every one must hold."""
        conditions = self._rules.conditions
        return all(
            (
                snapshot.content_length >= conditions.min_length,
                snapshot.reaction_count >= conditions.min_reactions,
                quality_score >= conditions.min_quality_score,
                trust_score >= conditions.min_trust_score,
            )
        )

    # Quality factors ----------------------------------------------------

    def _message_length_score(self, snapshot: MessageSnapshot, now: datetime) -> float:
        thresholds = self._rules.scoring.quality_factors.message_length.thresholds
        return normalize(snapshot.content_length, thresholds.min, thresholds.ideal)

    def _unique_words_score(self, snapshot: MessageSnapshot, now: datetime) -> float:
        thresholds = self._rules.scoring.quality_factors.unique_words.thresholds
        return normalize(snapshot.distinct_token_count, thresholds.min, thresholds.ideal)

    def _relevance_score(self, snapshot: MessageSnapshot, now: datetime) -> float:
        signals = self._rules.scoring.quality_factors.relevance.factors
        score = 0.0

        if RelevanceSignal.CHANNEL_TOPIC_MATCH in signals and snapshot.channel_topic:
            similarity = jaccard_similarity(
                snapshot.content.lower(), snapshot.channel_topic.lower()
            )
            if similarity > TOPIC_SIMILARITY_THRESHOLD:
                score += PARTIAL_CREDIT

        if RelevanceSignal.KEYWORD_MATCH in signals and self._keyword_matcher(snapshot):
            score += PARTIAL_CREDIT

        return score

    def _engagement_score(self, snapshot: MessageSnapshot, now: datetime) -> float:
        signals = self._rules.scoring.quality_factors.engagement.factors
        score = 0.0

        if EngagementSignal.REACTIONS in signals:
            score += (
                normalize(snapshot.reaction_count, REACTIONS_MIN, REACTIONS_IDEAL)
                * PARTIAL_CREDIT
            )

        if EngagementSignal.REPLIES in signals:
            replies = snapshot.thread_reply_count or 0
            score += normalize(replies, REPLIES_MIN, REPLIES_IDEAL) * PARTIAL_CREDIT

        return score

    # Trust factors ------------------------------------------------------

    def _account_age_score(self, snapshot: MessageSnapshot, now: datetime) -> float:
        thresholds = self._rules.scoring.trust_factors.account_age.thresholds
        age_ms = (now - snapshot.author_created_at).total_seconds() * 1000
        return normalize(age_ms, thresholds.min_ms, thresholds.ideal_ms)

    def _community_standing_score(
        self, snapshot: MessageSnapshot, now: datetime
    ) -> float:
        if EngineCapability.MEMBER_CONTEXT not in self._capabilities:
            return 0.0
        if not snapshot.has_member_context:
            return 0.0

        signals = self._rules.scoring.trust_factors.community_standing.factors
        score = 0.0

        if StandingSignal.ROLES in signals:
            roles = snapshot.member_role_count or 0
            score += normalize(roles, ROLES_MIN, ROLES_IDEAL) * PARTIAL_CREDIT

        # reputation has no data source yet and contributes nothing

        return score

"""Domain models for chat-rewards.

All models use Pydantic v2 for validation and serialization. Scoring rules
documents use camelCase keys; the models expose snake_case attributes and
accept either spelling.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from chat_rewards.domain.exceptions import ConfigurationError
from chat_rewards.services.normalizer import parse_duration
from chat_rewards.services.text_normalizer import count_distinct_tokens

Weight = Annotated[
    float, Field(ge=0.0, le=1.0, strict=True, description="Relative factor weight")
]
UnitScore = Annotated[float, Field(ge=0.0, le=1.0, strict=True)]


class QualityFactor(str, Enum):
    """Quality scoring dimensions."""

    MESSAGE_LENGTH = "messageLength"
    UNIQUE_WORDS = "uniqueWords"
    RELEVANCE = "relevance"
    ENGAGEMENT = "engagement"


class TrustFactor(str, Enum):
    """Trust scoring dimensions."""

    ACCOUNT_AGE = "accountAge"
    PREVIOUS_CONTRIBUTIONS = "previousContributions"
    COMMUNITY_STANDING = "communityStanding"
    REPORT_HISTORY = "reportHistory"


class RelevanceSignal(str, Enum):
    CHANNEL_TOPIC_MATCH = "channelTopicMatch"
    KEYWORD_MATCH = "keywordMatch"


class EngagementSignal(str, Enum):
    REACTIONS = "reactions"
    REPLIES = "replies"


class ContributionSignal(str, Enum):
    QUALITY_AVERAGE = "qualityAverage"
    QUANTITY = "quantity"


class StandingSignal(str, Enum):
    ROLES = "roles"
    REPUTATION = "reputation"


class ReportSignal(str, Enum):
    VIOLATIONS = "violations"
    WARNINGS = "warnings"


class RewardReason(str, Enum):
    """Why a reward evaluation ended the way it did."""

    REWARDED = "rewarded"
    CONDITIONS_NOT_MET = "conditions_not_met"
    DUPLICATE = "duplicate"
    SELF_MESSAGE = "self_message"


class _RuleModel(BaseModel):
    """Base for scoring rules sections: immutable, camelCase aliases.

    Unknown keys are rejected and numeric fields are strict, so a string such
    as "3" or a boolean is never coerced into a number.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class NumericThresholds(_RuleModel):
    """A (min, ideal) pair for count-like metrics."""

    min: float = Field(..., ge=0, strict=True, description="Lowest value that earns credit")
    ideal: float = Field(
        ..., ge=0, strict=True, description="Value at which credit saturates"
    )

    @model_validator(mode="after")
    def _ideal_above_min(self) -> "NumericThresholds":
        if self.ideal <= self.min:
            raise ValueError(
                f"ideal ({self.ideal}) must be greater than min ({self.min})"
            )
        return self


class DurationThresholds(_RuleModel):
    """A (min, ideal) pair of duration strings such as "7d" and "30d"."""

    min: str = Field(..., strict=True, description="Minimum account age, e.g. '7d'")
    ideal: str = Field(..., strict=True, description="Ideal account age, e.g. '30d'")

    @model_validator(mode="after")
    def _ideal_above_min(self) -> "DurationThresholds":
        try:
            min_ms = parse_duration(self.min)
            ideal_ms = parse_duration(self.ideal)
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from exc
        if ideal_ms <= min_ms:
            raise ValueError(
                f"ideal duration {self.ideal!r} must be longer than min {self.min!r}"
            )
        return self

    @property
    def min_ms(self) -> int:
        return parse_duration(self.min)

    @property
    def ideal_ms(self) -> int:
        return parse_duration(self.ideal)


class ThresholdFactorConfig(_RuleModel):
    weight: Weight
    thresholds: NumericThresholds


class DurationFactorConfig(_RuleModel):
    weight: Weight
    thresholds: DurationThresholds


class RelevanceFactorConfig(_RuleModel):
    weight: Weight
    factors: tuple[RelevanceSignal, ...] = Field(default_factory=tuple)


class EngagementFactorConfig(_RuleModel):
    weight: Weight
    factors: tuple[EngagementSignal, ...] = Field(default_factory=tuple)


class ContributionFactorConfig(_RuleModel):
    weight: Weight
    factors: tuple[ContributionSignal, ...] = Field(default_factory=tuple)


class StandingFactorConfig(_RuleModel):
    weight: Weight
    factors: tuple[StandingSignal, ...] = Field(default_factory=tuple)


class ReportFactorConfig(_RuleModel):
    weight: Weight
    factors: tuple[ReportSignal, ...] = Field(default_factory=tuple)


class QualityFactors(_RuleModel):
    message_length: ThresholdFactorConfig
    unique_words: ThresholdFactorConfig
    relevance: RelevanceFactorConfig
    engagement: EngagementFactorConfig


class TrustFactors(_RuleModel):
    account_age: DurationFactorConfig
    previous_contributions: ContributionFactorConfig
    community_standing: StandingFactorConfig
    report_history: ReportFactorConfig


class ScoringConfig(_RuleModel):
    quality_factors: QualityFactors
    trust_factors: TrustFactors


class Conditions(_RuleModel):
    """Hard gates; every one must hold for a message to qualify."""

    min_length: int = Field(..., ge=0, strict=True, description="Minimum content length")
    min_reactions: int = Field(
        ..., ge=0, strict=True, description="Minimum reaction count"
    )
    min_quality_score: UnitScore = Field(..., description="Minimum quality score")
    min_trust_score: UnitScore = Field(..., description="Minimum trust score")


class RuleSet(_RuleModel):
    """Validated, immutable scoring rules.

    Build it through ``chat_rewards.config.rules_loader`` so that validation
    failures surface as ``ConfigurationError``.
    """

    conditions: Conditions
    scoring: ScoringConfig

    def to_document(self) -> dict[str, Any]:
        """Return the camelCase document form (used for override merging)."""
        return self.model_dump(mode="json", by_alias=True)


class MessageLocator(BaseModel):
    """Stable three-part address of a platform message."""

    model_config = ConfigDict(frozen=True)

    guild_id: str
    channel_id: str
    message_id: str


class MessageSnapshot(BaseModel):
    """Read-only projection of a chat message used as scoring input."""

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(..., description="Platform message ID")
    author_id: str = Field(..., description="Platform user ID of the author")
    channel_id: str = Field(default="", description="Channel ID")
    guild_id: str | None = Field(default=None, description="Guild/server ID")
    content: str = Field(default="", description="Message text")
    reaction_count: int = Field(default=0, ge=0, description="Distinct reactions")
    author_created_at: datetime = Field(
        ..., description="Account creation time of the author (UTC)"
    )
    channel_topic: str | None = Field(default=None, description="Channel topic")
    thread_reply_count: int | None = Field(
        default=None, ge=0, description="Messages in the thread started here"
    )
    member_role_count: int | None = Field(
        default=None,
        ge=0,
        description="Roles held in the community (None = no member context)",
    )
    url: str | None = Field(default=None, description="Message permalink")
    created_at: datetime | None = Field(default=None, description="Message time")

    @field_validator("author_created_at", "created_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        """Naive timestamps are treated as UTC."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def content_length(self) -> int:
        return len(self.content)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def distinct_token_count(self) -> int:
        return count_distinct_tokens(self.content)

    @property
    def has_member_context(self) -> bool:
        return self.member_role_count is not None


class ScoreResult(BaseModel):
    """Outcome of one scoring pass."""

    model_config = ConfigDict(frozen=True)

    quality_score: UnitScore
    trust_score: UnitScore
    meets_conditions: bool


class ApiOutcome(BaseModel):
    """Response from the reward issuance service."""

    model_config = ConfigDict(frozen=True)

    status: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)


class ProcessedRewardRecord(BaseModel):
    """Persisted proof that a message has been rewarded. Never updated."""

    model_config = ConfigDict(frozen=True)

    identity: str = Field(..., description="Canonical message identity key")
    processed_at: datetime
    score: ScoreResult
    api_response: ApiOutcome

    @field_validator("identity")
    @classmethod
    def _identity_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("identity must not be empty")
        return value


class RewardOutcome(BaseModel):
    """Result returned to callers of the reward pipeline."""

    model_config = ConfigDict(frozen=True)

    identity: str
    rewarded: bool
    reason: RewardReason
    score: ScoreResult | None = None
    api_response: ApiOutcome | None = None
    notice: str | None = Field(
        default=None, description="Text to post back to the channel on reward"
    )

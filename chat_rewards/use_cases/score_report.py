"""Score report use case.

Produces a plain-text scoring summary of a message, suitable for injecting
into an agent's context or printing from the CLI. Never raises: resolution
and scoring failures turn into fixed fallback texts.
"""

from collections.abc import Mapping
from typing import Any, Final

from chat_rewards.config.logging_config import get_logger
from chat_rewards.domain.exceptions import ConfigurationError, ResolutionError
from chat_rewards.domain.models import MessageSnapshot, ScoreResult
from chat_rewards.domain.protocols import MessageSourceProtocol
from chat_rewards.services.scoring_engine import ScoringEngine
from chat_rewards.use_cases.resolve_message import resolve_snapshot

logger = get_logger(__name__)

MESSAGE_UNAVAILABLE_TEXT: Final[str] = "Unable to retrieve message"
SCORING_UNAVAILABLE_TEXT: Final[str] = "Scoring temporarily unavailable"


def format_score_report(snapshot: MessageSnapshot, score: ScoreResult) -> str:
    """Render a score as a human-readable block.

    Example:
        >>> print(format_score_report(snapshot, score))
        Message Scoring Details:
        - Quality Score: 0.62
        - Trust Score: 0.85
        - Meets Conditions: true
        - Message ID: 111
        - User ID: 222
    """
    return "\n".join(
        (
            "Message Scoring Details:",
            f"- Quality Score: {score.quality_score:.2f}",
            f"- Trust Score: {score.trust_score:.2f}",
            f"- Meets Conditions: {str(score.meets_conditions).lower()}",
            f"- Message ID: {snapshot.message_id}",
            f"- User ID: {snapshot.author_id}",
        )
    )


def score_snapshot_report(
    snapshot: MessageSnapshot,
    engine: ScoringEngine,
    overrides: Mapping[str, Any] | None = None,
) -> str:
    """Score an already resolved message and render the report."""
    try:
        scoring_engine = engine.with_overrides(overrides) if overrides else engine
        score = scoring_engine.evaluate(snapshot)
    except ConfigurationError as e:
        logger.error(
            "score_report_failed", message_id=snapshot.message_id, error=str(e)
        )
        return SCORING_UNAVAILABLE_TEXT

    logger.info(
        "score_report_generated",
        message_id=snapshot.message_id,
        user_id=snapshot.author_id,
        quality_score=score.quality_score,
        trust_score=score.trust_score,
        meets_conditions=score.meets_conditions,
    )
    return format_score_report(snapshot, score)


async def score_report_use_case(
    url: str | None,
    source: MessageSourceProtocol,
    engine: ScoringEngine,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> str:
    """Resolve a message permalink and return its score report.

    Returns:
        Report text, or a fallback text when the message cannot be resolved
        or the rules overrides are invalid
    """
    try:
        snapshot = await resolve_snapshot(url, source)
    except ResolutionError as e:
        logger.warning("score_report_message_unavailable", url=url, error=str(e))
        return MESSAGE_UNAVAILABLE_TEXT

    return score_snapshot_report(snapshot, engine, overrides)

"""Scoring constants for message quality and trust evaluation.

Factor weights and thresholds for length, unique words and account age live in
the scoring rules document. The fixed sub-signal ranges and partial credits
used inside composite factors are business rules and are defined here.
"""

from typing import Final

PARTIAL_CREDIT: Final[float] = 0.5
"""Contribution of one enabled sub-signal inside a composite factor.

Business rule: relevance, engagement and community standing are each made of
two sub-signals. Each sub-signal is worth half of the factor, so a factor
with both signals fully satisfied scores 1.0 before its weight is applied.
"""

TOPIC_SIMILARITY_THRESHOLD: Final[float] = 0.3
"""Jaccard similarity that message content must exceed to match the topic.

Example:
    - content "release notes for v2", topic "release notes" → 2/4 = 0.5 → match
    - content "hello there", topic "release notes" → 0.0 → no match
"""

REACTIONS_MIN: Final[int] = 1
"""Reaction count at which the engagement reactions signal starts counting."""

REACTIONS_IDEAL: Final[int] = 5
"""Reaction count at which the engagement reactions signal saturates."""

REPLIES_MIN: Final[int] = 1
"""Thread reply count at which the engagement replies signal starts counting."""

REPLIES_IDEAL: Final[int] = 3
"""Thread reply count at which the engagement replies signal saturates."""

ROLES_MIN: Final[int] = 1
"""Community role count at which the roles signal starts counting."""

ROLES_IDEAL: Final[int] = 5
"""Community role count at which the roles signal saturates."""

SCORE_FLOOR: Final[float] = 0.0
SCORE_CEILING: Final[float] = 1.0
"""Aggregated quality and trust scores are clamped into this range.

Weights are relative; an over-weighted rules document saturates at 1.0
instead of overflowing.
"""

MILLISECONDS_PER_UNIT: Final[dict[str, int]] = {
    "d": 24 * 60 * 60 * 1000,
    "h": 60 * 60 * 1000,
    "m": 60 * 1000,
    "s": 1000,
}
"""Duration suffixes accepted in account age thresholds ("7d", "12h", ...).

A string without one of these suffixes is read as raw milliseconds.
"""

DEFAULT_REWARD_TIMEOUT_SECONDS: Final[float] = 10.0
"""Default upper bound for one external reward call."""

"""Threshold normalization and duration parsing.

Every threshold-based factor (message length, unique words, engagement,
account age, roles) is mapped into [0, 1] by ``normalize``.
"""

import re
from typing import Final

from chat_rewards.domain.exceptions import ConfigurationError
from chat_rewards.domain.scoring_constants import (
    MILLISECONDS_PER_UNIT,
    SCORE_CEILING,
    SCORE_FLOOR,
)

_INTEGER_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[+-]?\d+")


def normalize(value: float, minimum: float, ideal: float) -> float:
    """Map a raw metric onto [0, 1] using a (min, ideal) threshold pair.

    Below ``minimum`` there is no partial credit. At or above ``ideal`` the
    score saturates at 1. In between the score grows linearly.

    The pair must satisfy ``ideal > minimum``; rules documents are checked for
    this when they are loaded.

    Args:
        value: Raw metric (length, count, age in milliseconds)
        minimum: Lowest value that earns any credit
        ideal: Value at which full credit is reached

    Returns:
        Score in [0, 1]

    Example:
        >>> normalize(55, 10, 100)
        0.5
        >>> normalize(5, 10, 100)
        0.0
    """
    if value < minimum:
        return 0.0
    if value >= ideal:
        return 1.0
    return (value - minimum) / (ideal - minimum)


def clamp_score(score: float) -> float:
    """Clamp an aggregated score into [0, 1]."""
    return min(SCORE_CEILING, max(SCORE_FLOOR, score))


def parse_duration(text: str) -> int:
    """Parse a duration string into milliseconds.

    Accepted suffixes are ``d``, ``h``, ``m`` and ``s``. Any other trailing
    character (or none) means the whole string is a raw millisecond count.
    The magnitude is read as a leading integer, so "1.5d" counts as one day.

    Args:
        text: Duration string such as "7d", "12h" or "3600000"

    Returns:
        Duration in milliseconds

    Raises:
        ConfigurationError: If no integer magnitude can be read

    Example:
        >>> parse_duration("7d")
        604800000
        >>> parse_duration("1500")
        1500
    """
    stripped = text.strip()
    unit = stripped[-1:].lower()
    multiplier = MILLISECONDS_PER_UNIT.get(unit)
    magnitude_text = stripped[:-1] if multiplier is not None else stripped

    match = _INTEGER_PATTERN.match(magnitude_text.strip())
    if match is None:
        raise ConfigurationError(f"Invalid duration string: {text!r}")

    magnitude = int(match.group(0))
    return magnitude * multiplier if multiplier is not None else magnitude

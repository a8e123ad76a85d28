"""Message URL parsing.

Turns a chat message permalink into a MessageLocator:

    https://discord.com/channels/<guild_id>/<channel_id>/<message_id>

Anything that does not match this shape exactly is not resolvable.
"""

import re
from typing import Final
from urllib.parse import urlsplit

from chat_rewards.config.logging_config import get_logger
from chat_rewards.domain.exceptions import ResolutionError
from chat_rewards.domain.models import MessageLocator

logger = get_logger(__name__)

MESSAGE_URL_HOST: Final[str] = "discord.com"
MESSAGE_URL_SCHEME: Final[str] = "https"
MESSAGE_URL_PREFIX: Final[str] = "channels"
MESSAGE_URL_SEGMENT_COUNT: Final[int] = 4

NUMERIC_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"[0-9]+")
"""Platform ids are snowflakes: purely numeric strings."""


def parse_message_url(url: str | None) -> MessageLocator | None:
    """Parse a message permalink.

    Args:
        url: Message URL

    Returns:
        MessageLocator, or None if the URL is not a well-formed message link

    Example:
        >>> parse_message_url("https://discord.com/channels/1/22/333").message_id
        '333'
        >>> parse_message_url("https://discord.com/channels/1/22") is None
        True
    """
    if not url:
        logger.warning("message_url_missing")
        return None

    try:
        parts = urlsplit(url.strip())
    except ValueError:
        logger.warning("message_url_unparseable", url=url)
        return None

    if parts.scheme != MESSAGE_URL_SCHEME or parts.hostname != MESSAGE_URL_HOST:
        logger.warning(
            "message_url_invalid_host", url=url, scheme=parts.scheme, host=parts.hostname
        )
        return None

    segments = [segment for segment in parts.path.split("/") if segment]
    if len(segments) != MESSAGE_URL_SEGMENT_COUNT or segments[0] != MESSAGE_URL_PREFIX:
        logger.warning(
            "message_url_malformed",
            url=url,
            segments=segments,
            segment_count=len(segments),
        )
        return None

    _, guild_id, channel_id, message_id = segments
    if not all(
        NUMERIC_ID_PATTERN.fullmatch(value) for value in (guild_id, channel_id, message_id)
    ):
        logger.warning(
            "message_url_invalid_ids",
            url=url,
            guild_id=guild_id,
            channel_id=channel_id,
            message_id=message_id,
        )
        return None

    return MessageLocator(guild_id=guild_id, channel_id=channel_id, message_id=message_id)


def require_message_locator(url: str | None) -> MessageLocator:
    """Parse a message permalink or raise.

    Raises:
        ResolutionError: If the URL is not a well-formed message link
    """
    locator = parse_message_url(url)
    if locator is None:
        raise ResolutionError(f"Not a resolvable message URL: {url!r}", locator=url)
    return locator


def build_message_url(locator: MessageLocator) -> str:
    """Build the canonical permalink for a locator."""
    return (
        f"https://{MESSAGE_URL_HOST}/{MESSAGE_URL_PREFIX}/"
        f"{locator.guild_id}/{locator.channel_id}/{locator.message_id}"
    )

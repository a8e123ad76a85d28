"""Convert raw chat platform message payloads into MessageSnapshot.

Payloads follow the Discord REST shape:

    {
        "id": "...", "channel_id": "...", "guild_id": "...",
        "content": "...", "timestamp": "2024-01-01T00:00:00+00:00",
        "author": {"id": "...", "created_at": "..."},
        "reactions": [{"emoji": {...}, "count": 3}, ...],
        "thread": {"message_count": 2},
        "member": {"roles": ["...", "..."]},
        "channel": {"topic": "..."}
    }

Everything except ``id`` and ``author.id`` is optional.
"""

from datetime import UTC, datetime
from typing import Any, Final

from pydantic import ValidationError

from chat_rewards.config.logging_config import get_logger
from chat_rewards.domain.exceptions import ResolutionError
from chat_rewards.domain.models import MessageLocator, MessageSnapshot
from chat_rewards.services.message_locator import build_message_url

logger = get_logger(__name__)

SNOWFLAKE_EPOCH_MS: Final[int] = 1420070400000
"""Platform epoch (2015-01-01T00:00:00Z) used by snowflake ids."""

SNOWFLAKE_TIMESTAMP_SHIFT: Final[int] = 22
"""Snowflake ids keep the millisecond timestamp above the low 22 bits."""


def snowflake_to_datetime(snowflake: str) -> datetime:
    """Extract the creation time encoded in a snowflake id.

    Example:
        >>> snowflake_to_datetime("175928847299117063").year
        2016

    Raises:
        ValueError: If the id is not numeric
    """
    timestamp_ms = (int(snowflake) >> SNOWFLAKE_TIMESTAMP_SHIFT) + SNOWFLAKE_EPOCH_MS
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)


def _parse_datetime(raw: Any) -> datetime | None:
    """Parse ISO strings and epoch milliseconds; None for anything else."""
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, int | float):
        return datetime.fromtimestamp(raw / 1000, tz=UTC)
    if isinstance(raw, str) and raw:
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _optional_count(raw: Any) -> int | None:
    if isinstance(raw, bool) or not isinstance(raw, int):
        return None
    return max(raw, 0)


def _section(
    raw_msg: dict[str, Any], field: str, message_id: str | None
) -> dict[str, Any] | None:
    """Return a nested object of the payload, None when absent."""
    value = raw_msg.get(field)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ResolutionError(
            f"Message payload field {field!r} must be an object, got {type(value).__name__}",
            locator=message_id,
        )
    return value


def _entries(raw: Any, field: str, message_id: str) -> list[Any]:
    """Return a list-valued payload field, empty when absent."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ResolutionError(
            f"Message payload field {field!r} must be a list, got {type(raw).__name__}",
            locator=message_id,
        )
    return raw


def map_message_payload(
    raw_msg: dict[str, Any], locator: MessageLocator | None = None
) -> MessageSnapshot:
    """Build a MessageSnapshot from a raw payload.

    Args:
        raw_msg: Raw message payload
        locator: Locator the payload was fetched with (fills missing ids and URL)

    Returns:
        Frozen MessageSnapshot

    Raises:
        ResolutionError: If the payload lacks a message id or author id, or
            a field has the wrong shape
    """
    if not isinstance(raw_msg, dict):
        raise ResolutionError(
            f"Message payload must be an object, got {type(raw_msg).__name__}",
            locator=locator.message_id if locator else None,
        )

    message_id = str(raw_msg.get("id") or (locator.message_id if locator else ""))
    author = _section(raw_msg, "author", message_id or None) or {}
    author_id = str(author.get("id") or "")

    if not message_id or not author_id:
        raise ResolutionError(
            "Message payload has no message id or author id",
            locator=message_id or None,
        )

    channel_id = str(raw_msg.get("channel_id") or (locator.channel_id if locator else ""))
    guild_id = raw_msg.get("guild_id") or (locator.guild_id if locator else None)

    # Account creation falls back to the time encoded in the author snowflake
    author_created_at = _parse_datetime(author.get("created_at"))
    if author_created_at is None:
        try:
            author_created_at = snowflake_to_datetime(author_id)
        except ValueError as e:
            raise ResolutionError(
                f"Cannot determine account age for author {author_id!r}",
                locator=message_id,
            ) from e

    channel = _section(raw_msg, "channel", message_id) or {}
    channel_topic = channel.get("topic") or raw_msg.get("channel_topic")

    thread = _section(raw_msg, "thread", message_id)
    thread_reply_count = (
        _optional_count(thread.get("message_count")) if thread is not None else None
    )

    member = _section(raw_msg, "member", message_id)
    member_role_count = (
        len(_entries(member.get("roles"), "member.roles", message_id))
        if member is not None
        else None
    )
    reactions = _entries(raw_msg.get("reactions"), "reactions", message_id)

    url = raw_msg.get("url")
    if not url and locator is not None:
        url = build_message_url(locator)

    try:
        snapshot = MessageSnapshot(
            message_id=message_id,
            author_id=author_id,
            channel_id=channel_id,
            guild_id=str(guild_id) if guild_id else None,
            content=raw_msg.get("content") or "",
            reaction_count=len(reactions),
            author_created_at=author_created_at,
            channel_topic=channel_topic,
            thread_reply_count=thread_reply_count,
            member_role_count=member_role_count,
            url=url,
            created_at=_parse_datetime(raw_msg.get("timestamp")),
        )
    except ValidationError as e:
        raise ResolutionError(
            f"Message payload {message_id} is malformed: {e}", locator=message_id
        ) from e

    logger.debug(
        "message_payload_mapped",
        message_id=message_id,
        author_id=author_id,
        reaction_count=snapshot.reaction_count,
        has_member_context=snapshot.has_member_context,
    )
    return snapshot

"""Resolve message use case.

Turns a message permalink into a MessageSnapshot by parsing the locator,
fetching the payload from the chat platform and mapping it.
"""

from chat_rewards.adapters.message_mapper import map_message_payload
from chat_rewards.config.logging_config import get_logger
from chat_rewards.domain.exceptions import ResolutionError
from chat_rewards.domain.models import MessageSnapshot
from chat_rewards.domain.protocols import MessageSourceProtocol
from chat_rewards.services.message_locator import require_message_locator

logger = get_logger(__name__)


async def resolve_snapshot(url: str | None, source: MessageSourceProtocol) -> MessageSnapshot:
    """Fetch and map the message a permalink points to.

    Args:
        url: Message permalink
        source: Chat platform client

    Returns:
        MessageSnapshot of the message

    Raises:
        ResolutionError: If the URL is malformed, the message does not exist,
            the platform call fails or the payload cannot be mapped
    """
    locator = require_message_locator(url)

    try:
        raw_msg = await source.fetch_message(locator)
    except ResolutionError:
        raise
    except Exception as e:
        logger.error(
            "message_fetch_failed",
            guild_id=locator.guild_id,
            channel_id=locator.channel_id,
            message_id=locator.message_id,
            error=str(e),
        )
        raise ResolutionError(
            f"Failed to fetch message {locator.message_id}: {e}", locator=url
        ) from e

    if raw_msg is None:
        logger.warning(
            "message_not_found",
            guild_id=locator.guild_id,
            channel_id=locator.channel_id,
            message_id=locator.message_id,
        )
        raise ResolutionError(f"Message {locator.message_id} not found", locator=url)

    return map_message_payload(raw_msg, locator)

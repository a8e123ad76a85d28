"""Factory for creating processed reward store instances."""

from typing import cast

from chat_rewards.adapters.memory_reward_store import InMemoryRewardStore
from chat_rewards.adapters.sqlite_reward_store import SQLiteRewardStore
from chat_rewards.config.logging_config import get_logger
from chat_rewards.config.settings import Settings
from chat_rewards.domain.exceptions import ConfigurationError
from chat_rewards.domain.protocols import ProcessedRecordStoreProtocol

logger = get_logger(__name__)


def create_reward_store(settings: Settings) -> ProcessedRecordStoreProtocol:
    """Create the appropriate store based on settings.

    Args:
        settings: Application settings

    Returns:
        Store instance (in-memory or SQLite)

    Raises:
        ConfigurationError: If store_type is not supported
        RepositoryError: If the SQLite database cannot be opened
    """
    if settings.store_type == "memory":
        logger.info("reward_store_memory_selected")
        return cast(ProcessedRecordStoreProtocol, InMemoryRewardStore())

    elif settings.store_type == "sqlite":
        logger.info("reward_store_sqlite_selected", path=settings.db_path)
        return cast(ProcessedRecordStoreProtocol, SQLiteRewardStore(settings.db_path))

    else:
        raise ConfigurationError(
            f"Unsupported store type: {settings.store_type}. "
            f"Must be 'memory' or 'sqlite'"
        )

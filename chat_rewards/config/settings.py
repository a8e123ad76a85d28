"""Application settings with Pydantic Settings validation.

Environment-specific values (environment name, agent id, paths) come from
environment variables or a .env file. Non-sensitive defaults are loaded from
config/main.yaml and validated against a JSON schema when one exists.
Scoring rules have their own loader in ``chat_rewards.config.rules_loader``.
"""

import json
from pathlib import Path
from typing import Any, Literal, cast

import yaml
from jsonschema import ValidationError as JSONSchemaValidationError
from jsonschema import validate
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_rewards.config.logging_config import get_logger
from chat_rewards.domain.exceptions import ConfigurationError
from chat_rewards.domain.scoring_constants import DEFAULT_REWARD_TIMEOUT_SECONDS

logger = cast(Any, get_logger(__name__))


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge into base (takes precedence)

    Returns:
        Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_schema(schema_name: str, config_dir: str | Path = "config") -> dict[str, Any]:
    """Load JSON Schema from <config_dir>/schemas/.

    Args:
        schema_name: Schema name without extension (e.g., "main")
        config_dir: Configuration directory

    Returns:
        JSON Schema dictionary or empty dict if not found
    """
    schema_path = Path(config_dir) / "schemas" / f"{schema_name}.schema.json"
    if not schema_path.exists():
        return {}

    try:
        with open(schema_path, encoding="utf-8") as f:
            return cast(dict[str, Any], json.load(f))
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(
            "config_schema_load_failed",
            schema=schema_name,
            error=str(e),
        )
        return {}


def validate_config_section(
    config: dict[str, Any],
    schema_name: str,
    file_path: str = "",
    config_dir: str | Path = "config",
) -> None:
    """Validate a config document against its JSON Schema.

    Args:
        config: Configuration dictionary to validate
        schema_name: Name of schema to validate against
        file_path: Optional file path for error messages
        config_dir: Configuration directory holding schemas/

    Raises:
        ConfigurationError: If validation fails
    """
    schema = load_schema(schema_name, config_dir)
    if not schema:
        return

    try:
        validate(instance=config, schema=schema)
        logger.debug("config_validation_succeeded", schema=schema_name)
    except JSONSchemaValidationError as e:
        error_msg = f"Config validation failed for {schema_name}"
        if file_path:
            error_msg += f" (file: {file_path})"
        location = "/".join(str(part) for part in e.absolute_path)
        if location:
            error_msg += f" at {location}"
        error_msg += f": {e.message}"
        raise ConfigurationError(error_msg) from e


def load_main_config(config_dir: str | Path = "config") -> dict[str, Any]:
    """Load config/main.yaml if present.

    Returns:
        Parsed configuration (empty when the file does not exist)

    Raises:
        ConfigurationError: If the file exists but is malformed or invalid
    """
    main_path = Path(config_dir) / "main.yaml"
    if not main_path.exists():
        logger.debug("config_file_missing", path=str(main_path))
        return {}

    try:
        with open(main_path, encoding="utf-8") as f:
            main_config = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        raise ConfigurationError(f"Cannot read {main_path}: {e}") from e

    if not isinstance(main_config, dict):
        raise ConfigurationError(f"{main_path} must contain a mapping")

    validate_config_section(main_config, "main", str(main_path), config_dir)
    logger.debug("config_file_loaded", path=str(main_path), schema="main")
    return main_config


class Settings(BaseSettings):
    """Application settings.

    Values from environment variables win over config/main.yaml, which wins
    over the field defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env" if Path(".env").exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(
        default="development",
        description="Selects config/scoring_rules.<environment>.yaml",
    )
    agent_id: str = Field(
        default="chat-rewards-agent",
        description="Identity of the evaluating agent (part of the reward key)",
    )
    config_dir: str = Field(
        default="config", description="Directory holding YAML configs and schemas"
    )

    # Processed-record store
    store_type: Literal["memory", "sqlite"] = Field(
        default="sqlite", description="Processed reward store backend"
    )
    db_path: str = Field(
        default="data/chat_rewards.db", description="SQLite database path"
    )

    # Reward issuance
    reward_timeout_seconds: float = Field(
        default=DEFAULT_REWARD_TIMEOUT_SECONDS,
        gt=0,
        description="Upper bound for one external reward call",
    )

    # Observability
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    def __init__(self, **data: Any):
        """Initialize settings, then fill unset fields from config/main.yaml."""
        super().__init__(**data)
        self._apply_yaml_defaults(load_main_config(self.config_dir))

    def _apply_yaml_defaults(self, config: dict[str, Any]) -> None:
        """Apply YAML-sourced defaults without overriding env-provided values."""

        fields_from_env = set(self.model_fields_set)

        def _assign(field_name: str, value: Any) -> None:
            if value is None:
                return
            if field_name in fields_from_env:
                return

            object.__setattr__(self, field_name, value)
            self.model_fields_set.add(field_name)

        _assign("environment", config.get("environment"))
        _assign("agent_id", config.get("agent_id"))

        store_config = config.get("store") or {}
        _assign("store_type", store_config.get("type"))
        _assign("db_path", store_config.get("path"))

        reward_config = config.get("reward") or {}
        _assign("reward_timeout_seconds", reward_config.get("timeout_seconds"))

        logging_config = config.get("logging") or {}
        _assign("log_level", logging_config.get("level"))
        _assign("json_logs", logging_config.get("json"))


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Forget the cached settings instance (tests, config reloads)."""
    global _settings
    _settings = None

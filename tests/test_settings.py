"""Tests for settings loading from config/main.yaml and environment."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from chat_rewards.config.settings import Settings, deep_merge, get_settings, reset_settings
from chat_rewards.domain.exceptions import ConfigurationError

WriteYaml = Callable[[Path, dict[str, Any]], Path]

ENV_VARS = (
    "ENVIRONMENT",
    "AGENT_ID",
    "STORE_TYPE",
    "DB_PATH",
    "REWARD_TIMEOUT_SECONDS",
    "LOG_LEVEL",
    "JSON_LOGS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_main_yaml(config_dir: Path) -> None:
    settings = Settings(config_dir=str(config_dir))

    assert settings.environment == "development"
    assert settings.store_type == "sqlite"
    assert settings.reward_timeout_seconds == pytest.approx(10.0)
    assert settings.json_logs is False


def test_main_yaml_values_applied(config_dir: Path, write_yaml: WriteYaml) -> None:
    write_yaml(
        config_dir / "main.yaml",
        {
            "environment": "production",
            "agent_id": "bot-7",
            "store": {"type": "memory", "path": "var/rewards.db"},
            "reward": {"timeout_seconds": 2.5},
            "logging": {"level": "DEBUG", "json": True},
        },
    )

    settings = Settings(config_dir=str(config_dir))

    assert settings.environment == "production"
    assert settings.agent_id == "bot-7"
    assert settings.store_type == "memory"
    assert settings.db_path == "var/rewards.db"
    assert settings.reward_timeout_seconds == pytest.approx(2.5)
    assert settings.log_level == "DEBUG"
    assert settings.json_logs is True


def test_environment_variables_win_over_main_yaml(
    config_dir: Path, write_yaml: WriteYaml, monkeypatch: pytest.MonkeyPatch
) -> None:
    write_yaml(config_dir / "main.yaml", {"environment": "production", "agent_id": "bot-7"})
    monkeypatch.setenv("ENVIRONMENT", "staging")

    settings = Settings(config_dir=str(config_dir))

    assert settings.environment == "staging"
    assert settings.agent_id == "bot-7"


def test_main_yaml_schema_violation_raises(config_dir: Path, write_yaml: WriteYaml) -> None:
    write_yaml(config_dir / "main.yaml", {"store": {"type": "redis"}})

    with pytest.raises(ConfigurationError, match="main"):
        Settings(config_dir=str(config_dir))


def test_main_yaml_must_be_mapping(config_dir: Path) -> None:
    (config_dir / "main.yaml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="mapping"):
        Settings(config_dir=str(config_dir))


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch, config_dir: Path) -> None:
    monkeypatch.setenv("CONFIG_DIR", str(config_dir))

    first = get_settings()
    assert get_settings() is first

    reset_settings()
    assert get_settings() is not first


def test_deep_merge_nested() -> None:
    base = {"a": {"b": 1, "c": 2}, "d": 3}
    override = {"a": {"c": 20}, "e": 5}

    merged = deep_merge(base, override)

    assert merged == {"a": {"b": 1, "c": 20}, "d": 3, "e": 5}
    assert base == {"a": {"b": 1, "c": 2}, "d": 3}

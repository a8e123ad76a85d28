"""Scoring rules loading and validation.

Rules documents are selected by environment:
1. config/scoring_rules.<environment>.yaml (or .yml / .json)
2. config/scoring_rules.yaml (or .yml / .json) when (1) is absent

The chosen document is validated against
config/schemas/scoring_rules.schema.json and then parsed into an immutable
RuleSet. A document that fails either step raises ConfigurationError; an
invalid environment document never falls back to the default one.
"""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

import yaml
from pydantic import ValidationError

from chat_rewards.config.logging_config import get_logger
from chat_rewards.config.settings import deep_merge, get_settings, validate_config_section
from chat_rewards.domain.exceptions import ConfigurationError
from chat_rewards.domain.models import RuleSet

logger = get_logger(__name__)

RULES_FILE_STEM: Final[str] = "scoring_rules"
RULES_SCHEMA_NAME: Final[str] = "scoring_rules"
RULES_FILE_SUFFIXES: Final[tuple[str, ...]] = (".yaml", ".yml", ".json")


def _first_existing(config_dir: Path, stem: str) -> Path | None:
    for suffix in RULES_FILE_SUFFIXES:
        candidate = config_dir / f"{stem}{suffix}"
        if candidate.is_file():
            return candidate
    return None


def resolve_rules_path(config_dir: str | Path, environment: str | None) -> Path:
    """Pick the rules document for an environment.

    Args:
        config_dir: Configuration directory
        environment: Environment name (e.g. "production"); None skips step 1

    Returns:
        Path of the document to load

    Raises:
        ConfigurationError: If neither the environment nor the default
            document exists
    """
    directory = Path(config_dir)
    if environment:
        env_path = _first_existing(directory, f"{RULES_FILE_STEM}.{environment}")
        if env_path is not None:
            return env_path
        logger.debug(
            "scoring_rules_environment_file_missing",
            environment=environment,
            config_dir=str(directory),
        )

    default_path = _first_existing(directory, RULES_FILE_STEM)
    if default_path is None:
        raise ConfigurationError(
            f"No scoring rules document found in {directory} "
            f"(looked for {RULES_FILE_STEM}.<environment> and {RULES_FILE_STEM})"
        )
    return default_path


def read_rules_document(path: Path) -> dict[str, Any]:
    """Read a YAML or JSON rules document.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix == ".json":
                document = json.load(f)
            else:
                document = yaml.safe_load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read scoring rules {path}: {e}") from e

    if not isinstance(document, dict):
        raise ConfigurationError(f"Scoring rules {path} must contain a mapping")
    return document


def parse_rule_set(
    document: Mapping[str, Any],
    *,
    source: str = "",
    config_dir: str | Path | None = None,
) -> RuleSet:
    """Validate a rules document and build the RuleSet.

    Args:
        document: camelCase rules document
        source: Origin used in error messages (file path or "overrides")
        config_dir: Directory holding schemas/ (None skips JSON Schema checks)

    Returns:
        Immutable RuleSet

    Raises:
        ConfigurationError: On any schema or range violation
    """
    payload = dict(document)
    if config_dir is not None:
        validate_config_section(payload, RULES_SCHEMA_NAME, source, config_dir)

    try:
        return RuleSet.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        message = "Invalid scoring rules configuration"
        if source:
            message += f" ({source})"
        raise ConfigurationError(f"{message}: {problems}") from e


def load_scoring_rules(
    environment: str | None = None,
    config_dir: str | Path | None = None,
) -> RuleSet:
    """Load the scoring rules for an environment.

    Args:
        environment: Environment name (defaults to settings.environment)
        config_dir: Configuration directory (defaults to settings.config_dir)

    Returns:
        Validated RuleSet

    Raises:
        ConfigurationError: If no document exists or it is invalid

    Example:
        >>> rules = load_scoring_rules("production")
        >>> rules.conditions.min_length
        10
    """
    if environment is None or config_dir is None:
        settings = get_settings()
        environment = environment if environment is not None else settings.environment
        config_dir = config_dir if config_dir is not None else settings.config_dir

    path = resolve_rules_path(config_dir, environment)
    try:
        rules = parse_rule_set(
            read_rules_document(path), source=str(path), config_dir=config_dir
        )
    except ConfigurationError as e:
        logger.error("scoring_rules_invalid", path=str(path), error=str(e))
        raise

    logger.info("scoring_rules_loaded", path=str(path), environment=environment)
    return rules


def apply_overrides(rules: RuleSet, overrides: Mapping[str, Any]) -> RuleSet:
    """Merge partial camelCase overrides over a RuleSet and re-validate.

    Example:
        >>> stricter = apply_overrides(rules, {"conditions": {"minReactions": 3}})
        >>> stricter.conditions.min_reactions
        3

    Raises:
        ConfigurationError: If the merged document is invalid
    """
    if not overrides:
        return rules
    merged = deep_merge(rules.to_document(), dict(overrides))
    return parse_rule_set(merged, source="overrides")

"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import copy
import shutil
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
import yaml

from chat_rewards.adapters.memory_reward_store import InMemoryRewardStore
from chat_rewards.adapters.stub_reward_issuer import StubRewardIssuer
from chat_rewards.config.rules_loader import parse_rule_set
from chat_rewards.config.settings import reset_settings
from chat_rewards.domain.models import MessageSnapshot, RuleSet
from chat_rewards.services.reward_guard import RewardGuard
from chat_rewards.services.scoring_engine import ScoringEngine
from chat_rewards.use_cases.process_reward import RewardCoordinator

REPO_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"
FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
AGENT_ID = "agent-1"

DEFAULT_RULES_DOCUMENT: dict[str, Any] = {
    "conditions": {
        "minLength": 10,
        "minReactions": 0,
        "minQualityScore": 0.5,
        "minTrustScore": 0.3,
    },
    "scoring": {
        "qualityFactors": {
            "messageLength": {"weight": 0.3, "thresholds": {"min": 10, "ideal": 100}},
            "uniqueWords": {"weight": 0.2, "thresholds": {"min": 5, "ideal": 30}},
            "relevance": {
                "weight": 0.3,
                "factors": ["channelTopicMatch", "keywordMatch"],
            },
            "engagement": {"weight": 0.2, "factors": ["reactions", "replies"]},
        },
        "trustFactors": {
            "accountAge": {"weight": 0.4, "thresholds": {"min": "1d", "ideal": "7d"}},
            "previousContributions": {
                "weight": 0.3,
                "factors": ["qualityAverage", "quantity"],
            },
            "communityStanding": {"weight": 0.2, "factors": ["roles", "reputation"]},
            "reportHistory": {"weight": 0.1, "factors": ["violations", "warnings"]},
        },
    },
}

GOOD_CONTENT = (
    "Here is a detailed walkthrough of the staking rewards contract upgrade, "
    "covering migration steps, gas costs and rollback plans for validators"
)


@pytest.fixture(autouse=True)
def _reset_settings() -> Generator[None, None, None]:
    """Never leak the cached Settings instance between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def rules_document() -> dict[str, Any]:
    """Mutable copy of the default camelCase rules document."""
    return copy.deepcopy(DEFAULT_RULES_DOCUMENT)


@pytest.fixture
def rules(rules_document: dict[str, Any]) -> RuleSet:
    return parse_rule_set(rules_document)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def engine(rules: RuleSet) -> ScoringEngine:
    """Engine with a frozen clock."""
    return ScoringEngine(rules, clock=lambda: FIXED_NOW)


@pytest.fixture
def make_snapshot() -> Callable[..., MessageSnapshot]:
    """Factory for snapshots; keyword arguments override the defaults."""

    def _make(**overrides: Any) -> MessageSnapshot:
        fields: dict[str, Any] = {
            "message_id": "1100",
            "author_id": "2200",
            "channel_id": "3300",
            "guild_id": "4400",
            "content": GOOD_CONTENT,
            "reaction_count": 3,
            "author_created_at": FIXED_NOW - timedelta(days=30),
            "channel_topic": None,
            "thread_reply_count": 2,
            "member_role_count": 3,
        }
        fields.update(overrides)
        return MessageSnapshot(**fields)

    return _make


@pytest.fixture
def store() -> InMemoryRewardStore:
    return InMemoryRewardStore()


@pytest.fixture
def guard(store: InMemoryRewardStore) -> RewardGuard:
    return RewardGuard(store)


@pytest.fixture
def issuer() -> StubRewardIssuer:
    return StubRewardIssuer()


@pytest.fixture
def coordinator(
    engine: ScoringEngine, guard: RewardGuard, issuer: StubRewardIssuer
) -> RewardCoordinator:
    return RewardCoordinator(
        engine,
        guard,
        issuer,
        agent_id=AGENT_ID,
        timeout_seconds=1.0,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Temporary configuration directory with the repository schemas."""
    directory = tmp_path / "config"
    shutil.copytree(REPO_CONFIG_DIR / "schemas", directory / "schemas")
    return directory


@pytest.fixture
def write_yaml() -> Callable[[Path, dict[str, Any]], Path]:
    def _write(path: Path, document: dict[str, Any]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
        return path

    return _write

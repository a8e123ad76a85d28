"""Score a chat message from a payload file.

Loads settings and scoring rules, maps a raw message payload (JSON) into a
snapshot and prints its score report. With --reward the message also goes
through the reward coordinator against the configured store, using the stub
reward issuer.

Usage:
    python scripts/score_message.py message.json
    python scripts/score_message.py message.json --reward --environment production
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import yaml

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chat_rewards.adapters.message_mapper import map_message_payload
from chat_rewards.adapters.store_factory import create_reward_store
from chat_rewards.adapters.stub_reward_issuer import StubRewardIssuer
from chat_rewards.config.logging_config import get_logger, setup_logging
from chat_rewards.config.rules_loader import load_scoring_rules
from chat_rewards.config.settings import Settings
from chat_rewards.domain.exceptions import ChatRewardsError
from chat_rewards.observability.metrics import ensure_metrics_exporter
from chat_rewards.services.message_locator import require_message_locator
from chat_rewards.services.reward_guard import RewardGuard
from chat_rewards.services.scoring_engine import ScoringEngine
from chat_rewards.use_cases.process_reward import RewardCoordinator
from chat_rewards.use_cases.score_report import score_snapshot_report

logger = get_logger(__name__)


def _read_document(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        if path.suffix == ".json":
            document = json.load(f)
        else:
            document = yaml.safe_load(f)
    if not isinstance(document, dict):
        raise ValueError(f"{path} must contain a JSON/YAML object")
    return document


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Score a chat message")
    parser.add_argument("payload", type=Path, help="Raw message payload (JSON)")
    parser.add_argument(
        "--url",
        default=None,
        help="Message permalink (fills ids missing from the payload)",
    )
    parser.add_argument(
        "--overrides",
        type=Path,
        default=None,
        help="YAML/JSON file with partial scoring rules overrides",
    )
    parser.add_argument(
        "--environment",
        default=None,
        help="Rules environment (default: from config)",
    )
    parser.add_argument(
        "--config-dir",
        default=None,
        help="Configuration directory (default: from config)",
    )
    parser.add_argument(
        "--reward",
        action="store_true",
        help="Run the reward coordinator with the stub issuer",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Score one message. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    settings_overrides: dict[str, Any] = {}
    if args.environment:
        settings_overrides["environment"] = args.environment
    if args.config_dir:
        settings_overrides["config_dir"] = args.config_dir

    try:
        settings = Settings(**settings_overrides)
    except ChatRewardsError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    if args.metrics_port is not None:
        ensure_metrics_exporter(args.metrics_port)

    try:
        rules = load_scoring_rules(settings.environment, settings.config_dir)
        raw_msg = _read_document(args.payload)
        overrides = _read_document(args.overrides) if args.overrides else None
    except (ChatRewardsError, OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    engine = ScoringEngine(rules)

    try:
        locator = require_message_locator(args.url) if args.url else None
        snapshot = map_message_payload(raw_msg, locator)
    except ChatRewardsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(score_snapshot_report(snapshot, engine, overrides))

    if not args.reward:
        return 0

    coordinator = RewardCoordinator(
        engine,
        RewardGuard(create_reward_store(settings)),
        StubRewardIssuer(),
        agent_id=settings.agent_id,
        timeout_seconds=settings.reward_timeout_seconds,
    )

    try:
        outcome = asyncio.run(coordinator.process(snapshot, overrides=overrides))
    except ChatRewardsError as e:
        logger.error("score_message_reward_failed", error=str(e))
        print(f"Reward failed: {e}", file=sys.stderr)
        return 1

    print(f"Outcome: {outcome.reason.value} (identity {outcome.identity})")
    if outcome.notice:
        print(outcome.notice)
    return 0


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any

import pytest
import yaml
from pytest_mock import MockerFixture

REPO_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"

PAYLOAD: dict[str, Any] = {
    "id": "333",
    "channel_id": "222",
    "guild_id": "111",
    "content": (
        "A thorough explanation of how validator rewards are distributed "
        "across epochs and why delegation matters"
    ),
    "author": {"id": "5555", "created_at": "2020-01-01T00:00:00+00:00"},
    "reactions": [{"emoji": {"name": "fire"}, "count": 4}],
}


@pytest.fixture
def cli_config_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "config"
    shutil.copytree(REPO_CONFIG_DIR, directory)
    (directory / "main.yaml").write_text(
        yaml.safe_dump({"environment": "development", "store": {"type": "memory"}}),
        encoding="utf-8",
    )
    return directory


@pytest.fixture
def payload_file(tmp_path: Path) -> Path:
    path = tmp_path / "message.json"
    path.write_text(json.dumps(PAYLOAD), encoding="utf-8")
    return path


@pytest.fixture
def module(mocker: MockerFixture, monkeypatch: pytest.MonkeyPatch) -> Any:
    for name in ("ENVIRONMENT", "STORE_TYPE", "CONFIG_DIR"):
        monkeypatch.delenv(name, raising=False)
    loaded = __import__("scripts.score_message", fromlist=["main"])
    mocker.patch.object(loaded, "setup_logging")
    return loaded


def test_score_message_prints_report(
    module: Any, cli_config_dir: Path, payload_file: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = module.main([str(payload_file), "--config-dir", str(cli_config_dir)])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Message Scoring Details:" in output
    assert "- Message ID: 333" in output
    assert "Outcome:" not in output


def test_score_message_reward_flag_runs_coordinator(
    module: Any, cli_config_dir: Path, payload_file: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = module.main(
        [str(payload_file), "--config-dir", str(cli_config_dir), "--reward"]
    )

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Outcome: rewarded" in output
    assert "You have been rewarded for your message: Reward API call successful" in output


def test_score_message_missing_payload(
    module: Any, cli_config_dir: Path, tmp_path: Path
) -> None:
    exit_code = module.main(
        [str(tmp_path / "absent.json"), "--config-dir", str(cli_config_dir)]
    )

    assert exit_code == 2


def test_score_message_invalid_rules(
    module: Any, cli_config_dir: Path, payload_file: Path
) -> None:
    (cli_config_dir / "scoring_rules.yaml").write_text(
        "conditions: {}\n", encoding="utf-8"
    )

    exit_code = module.main([str(payload_file), "--config-dir", str(cli_config_dir)])

    assert exit_code == 2


def test_score_message_malformed_url(
    module: Any, cli_config_dir: Path, payload_file: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = module.main(
        [
            str(payload_file),
            "--config-dir",
            str(cli_config_dir),
            "--url",
            "https://discord.com/channels/111",
        ]
    )

    captured = capsys.readouterr()
    assert exit_code == 2
    assert "Not a resolvable message URL" in captured.err
    assert "Message Scoring Details:" not in captured.out

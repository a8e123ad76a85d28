"""Tests for the score report use case."""

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from chat_rewards.domain.models import MessageLocator, MessageSnapshot, ScoreResult
from chat_rewards.services.scoring_engine import ScoringEngine
from chat_rewards.use_cases.score_report import (
    MESSAGE_UNAVAILABLE_TEXT,
    SCORING_UNAVAILABLE_TEXT,
    format_score_report,
    score_report_use_case,
    score_snapshot_report,
)

SnapshotFactory = Callable[..., MessageSnapshot]
MESSAGE_URL = "https://discord.com/channels/111/222/333"


class FakeMessageSource:
    def __init__(self, payload: dict[str, Any] | None = None, error: Exception | None = None):
        self.payload = payload
        self.error = error

    async def fetch_message(self, locator: MessageLocator) -> dict[str, Any] | None:
        if self.error is not None:
            raise self.error
        return self.payload


def test_format_score_report(make_snapshot: SnapshotFactory) -> None:
    snapshot = make_snapshot(message_id="111", author_id="222")
    score = ScoreResult(quality_score=0.625, trust_score=0.85, meets_conditions=True)

    report = format_score_report(snapshot, score)

    assert report.splitlines() == [
        "Message Scoring Details:",
        "- Quality Score: 0.62",
        "- Trust Score: 0.85",
        "- Meets Conditions: true",
        "- Message ID: 111",
        "- User ID: 222",
    ]


def test_report_for_resolvable_url(engine: ScoringEngine) -> None:
    source = FakeMessageSource(
        {
            "id": "333",
            "content": "short",
            "author": {"id": "444", "created_at": "2020-01-01T00:00:00+00:00"},
        }
    )

    report = asyncio.run(score_report_use_case(MESSAGE_URL, source, engine))

    assert report.startswith("Message Scoring Details:")
    assert "- Meets Conditions: false" in report
    assert "- User ID: 444" in report


def test_report_for_missing_message(engine: ScoringEngine) -> None:
    report = asyncio.run(score_report_use_case(MESSAGE_URL, FakeMessageSource(None), engine))

    assert report == MESSAGE_UNAVAILABLE_TEXT


def test_report_for_malformed_url(engine: ScoringEngine) -> None:
    report = asyncio.run(
        score_report_use_case("https://discord.com/channels/111", FakeMessageSource(), engine)
    )

    assert report == MESSAGE_UNAVAILABLE_TEXT


def test_report_when_platform_fails(engine: ScoringEngine) -> None:
    source = FakeMessageSource(error=ConnectionError("gateway down"))

    report = asyncio.run(score_report_use_case(MESSAGE_URL, source, engine))

    assert report == MESSAGE_UNAVAILABLE_TEXT


def test_report_with_invalid_overrides(
    engine: ScoringEngine, make_snapshot: SnapshotFactory
) -> None:
    report = score_snapshot_report(
        make_snapshot(), engine, {"conditions": {"minTrustScore": 5}}
    )

    assert report == SCORING_UNAVAILABLE_TEXT


@pytest.mark.parametrize(
    "payload",
    [
        {"id": "333", "author": "5555"},
        {"id": "333", "author": {"id": "5555"}, "channel": "general"},
        {"id": "333", "author": {"id": "5555"}, "member": {"roles": 3}},
    ],
)
def test_report_for_malformed_payload(engine: ScoringEngine, payload: dict[str, Any]) -> None:
    report = asyncio.run(score_report_use_case(MESSAGE_URL, FakeMessageSource(payload), engine))

    assert report == MESSAGE_UNAVAILABLE_TEXT

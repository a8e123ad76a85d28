"""Reward issuer that answers locally instead of calling a reward service.

Used until a real reward API is wired in, and by the CLI. Every call is
recorded so callers can assert on what would have been sent.
"""

import asyncio
from typing import Final

from chat_rewards.config.logging_config import get_logger
from chat_rewards.domain.models import ApiOutcome, MessageSnapshot, ScoreResult

logger = get_logger(__name__)

STUB_SUCCESS_STATUS: Final[str] = "success"
STUB_SUCCESS_MESSAGE: Final[str] = "Reward API call successful"


class StubRewardIssuer:
    """Implements RewardIssuerProtocol with a canned success response."""

    def __init__(self, delay_seconds: float = 0.0) -> None:
        """Initialize issuer.

        Args:
            delay_seconds: Simulated service latency
        """
        self.delay_seconds = delay_seconds
        self.issued: list[str] = []

    async def issue(
        self, identity: str, snapshot: MessageSnapshot, score: ScoreResult
    ) -> ApiOutcome:
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        self.issued.append(identity)
        logger.info(
            "stub_reward_issued",
            identity=identity,
            message_id=snapshot.message_id,
            author_id=snapshot.author_id,
        )
        return ApiOutcome(
            status=STUB_SUCCESS_STATUS,
            message=STUB_SUCCESS_MESSAGE,
            data={"reward": score.model_dump()},
        )

"""Prometheus metrics for reward evaluation.

Metrics are module-level singletons registered in the default registry. The
HTTP exporter is opt-in: call ``ensure_metrics_exporter`` from long-running
entry points.
"""

from __future__ import annotations

import os
import threading
from typing import Final

from prometheus_client import Counter, Histogram, start_http_server

from chat_rewards.config.logging_config import get_logger

logger = get_logger(__name__)

REWARD_EVALUATIONS_TOTAL: Final[Counter] = Counter(
    "reward_evaluations_total",
    "Total number of reward evaluations by outcome",
    labelnames=("outcome",),
)

REWARD_ISSUANCE_FAILURES_TOTAL: Final[Counter] = Counter(
    "reward_issuance_failures_total",
    "Total number of failed or timed out reward calls",
    labelnames=("kind",),
)

REWARD_ISSUANCE_SECONDS: Final[Histogram] = Histogram(
    "reward_issuance_seconds",
    "Duration of external reward calls in seconds",
)

_EXPORTER_LOCK = threading.Lock()
_EXPORTER_STARTED = False
_DEFAULT_METRICS_PORT: Final[int] = 9000
_METRICS_PORT_ENV: Final[str] = "METRICS_PORT"


def _resolve_metrics_port() -> int:
    port_raw = os.getenv(_METRICS_PORT_ENV)
    try:
        return int(port_raw) if port_raw else _DEFAULT_METRICS_PORT
    except ValueError:
        logger.warning("invalid_metrics_port", port=port_raw)
        return _DEFAULT_METRICS_PORT


def ensure_metrics_exporter(port: int | None = None) -> None:
    """Start Prometheus HTTP exporter once per process."""

    global _EXPORTER_STARTED
    with _EXPORTER_LOCK:
        if _EXPORTER_STARTED:
            return

        resolved_port = port if port is not None else _resolve_metrics_port()

        try:
            start_http_server(resolved_port)
        except OSError as exc:
            logger.error(
                "metrics_exporter_start_failed",
                port=resolved_port,
                error=str(exc),
            )
            raise

        _EXPORTER_STARTED = True
        logger.info("metrics_exporter_started", port=resolved_port)


__all__ = [
    "REWARD_EVALUATIONS_TOTAL",
    "REWARD_ISSUANCE_FAILURES_TOTAL",
    "REWARD_ISSUANCE_SECONDS",
    "ensure_metrics_exporter",
]

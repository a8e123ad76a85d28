"""In-memory processed reward store.

Process-local; suitable for development, single-process deployments and
tests. Reservations are atomic under a thread lock because the reward guard
calls stores from worker threads.
"""

from __future__ import annotations

import threading

from chat_rewards.domain.exceptions import RepositoryError
from chat_rewards.domain.models import ProcessedRewardRecord


class InMemoryRewardStore:
    """Dictionary-backed implementation of ProcessedRecordStoreProtocol."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: set[str] = set()
        self._records: dict[str, ProcessedRewardRecord] = {}

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._pending or key in self._records

    def get(self, key: str) -> ProcessedRewardRecord | None:
        with self._lock:
            return self._records.get(key)

    def set(self, key: str, record: ProcessedRewardRecord) -> None:
        with self._lock:
            if key in self._records:
                raise RepositoryError(f"Reward record already finalized: {key}")
            self._pending.discard(key)
            self._records[key] = record

    def reserve(self, key: str) -> bool:
        with self._lock:
            if key in self._pending or key in self._records:
                return False
            self._pending.add(key)
            return True

    def release(self, key: str) -> bool:
        with self._lock:
            if key not in self._pending:
                return False
            self._pending.remove(key)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

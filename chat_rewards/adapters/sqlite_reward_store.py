"""SQLite processed reward store.

Implements ProcessedRecordStoreProtocol with a single table. Reservation is
an ``INSERT OR IGNORE`` on the identity primary key, so it stays atomic even
across processes sharing the database file.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Final

from chat_rewards.config.logging_config import get_logger
from chat_rewards.domain.exceptions import RepositoryError
from chat_rewards.domain.models import ApiOutcome, ProcessedRewardRecord, ScoreResult

logger = get_logger(__name__)

TABLE_NAME: Final[str] = "processed_rewards"
STATUS_RESERVED: Final[str] = "reserved"
STATUS_PROCESSED: Final[str] = "processed"


class SQLiteRewardStore:
    """SQLite-backed processed reward records."""

    def __init__(self, db_path: str) -> None:
        """Initialize store and ensure schema.

        Args:
            db_path: Path to SQLite database file (":memory:" is not supported
                because every operation opens its own connection)
        """
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._create_schema()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, always close.

        Raises:
            RepositoryError: On any sqlite3 error
        """
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
        except sqlite3.Error as e:
            raise RepositoryError(f"Cannot open {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise RepositoryError(f"SQLite reward store error: {e}") from e
        finally:
            conn.close()

    def _create_schema(self) -> None:
        """Create table if not exists.

        Fields:
        - identity: canonical reward identity (PRIMARY KEY)
        - status: 'reserved' while the reward call is in flight, then 'processed'
        - reserved_at: when the reservation was taken
        - processed_at: when the reward was confirmed
        - score_json / api_response_json: serialized ScoreResult / ApiOutcome
        """
        with self._connection() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                    identity TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    reserved_at TEXT NOT NULL,
                    processed_at TEXT,
                    score_json TEXT,
                    api_response_json TEXT
                )
                """
            )
        logger.debug("sqlite_reward_schema_ready", db_path=self.db_path)

    def exists(self, key: str) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT 1 FROM {TABLE_NAME} WHERE identity = ?", (key,)
            ).fetchone()
        return row is not None

    def get(self, key: str) -> ProcessedRewardRecord | None:
        with self._connection() as conn:
            row = conn.execute(
                f"""
                SELECT identity, processed_at, score_json, api_response_json
                FROM {TABLE_NAME}
                WHERE identity = ? AND status = ?
                """,
                (key, STATUS_PROCESSED),
            ).fetchone()

        if row is None:
            return None

        return ProcessedRewardRecord(
            identity=row["identity"],
            processed_at=datetime.fromisoformat(row["processed_at"]),
            score=ScoreResult.model_validate_json(row["score_json"]),
            api_response=ApiOutcome.model_validate_json(row["api_response_json"]),
        )

    def set(self, key: str, record: ProcessedRewardRecord) -> None:
        """Finalize a record. A processed identity is never overwritten.

        Raises:
            RepositoryError: If the identity is already processed
        """
        now = datetime.now(UTC).isoformat()
        with self._connection() as conn:
            cursor = conn.execute(
                f"""
                INSERT INTO {TABLE_NAME} (
                    identity, status, reserved_at, processed_at,
                    score_json, api_response_json
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(identity) DO UPDATE SET
                    status = excluded.status,
                    processed_at = excluded.processed_at,
                    score_json = excluded.score_json,
                    api_response_json = excluded.api_response_json
                WHERE {TABLE_NAME}.status = '{STATUS_RESERVED}'
                """,
                (
                    key,
                    STATUS_PROCESSED,
                    now,
                    record.processed_at.isoformat(),
                    record.score.model_dump_json(),
                    record.api_response.model_dump_json(),
                ),
            )
            updated = cursor.rowcount

        if updated == 0:
            raise RepositoryError(f"Reward record already finalized: {key}")

    def reserve(self, key: str) -> bool:
        now = datetime.now(UTC).isoformat()
        with self._connection() as conn:
            cursor = conn.execute(
                f"""
                INSERT OR IGNORE INTO {TABLE_NAME} (identity, status, reserved_at)
                VALUES (?, ?, ?)
                """,
                (key, STATUS_RESERVED, now),
            )
            inserted = cursor.rowcount
        return inserted == 1

    def release(self, key: str) -> bool:
        with self._connection() as conn:
            cursor = conn.execute(
                f"DELETE FROM {TABLE_NAME} WHERE identity = ? AND status = ?",
                (key, STATUS_RESERVED),
            )
            deleted = cursor.rowcount
        return deleted == 1

    def cleanup_stale_reservations(self, older_than: timedelta) -> int:
        """Delete reservations left behind by crashed workers.

        Only 'reserved' rows older than the horizon are removed; processed
        records are kept forever.

        Returns:
            Number of reservations removed
        """
        cutoff = datetime.now(UTC) - older_than
        with self._connection() as conn:
            cursor = conn.execute(
                f"DELETE FROM {TABLE_NAME} WHERE status = ? AND reserved_at < ?",
                (STATUS_RESERVED, cutoff.isoformat()),
            )
            removed = cursor.rowcount

        if removed:
            logger.warning("stale_reward_reservations_removed", count=removed)
        return removed

"""Contract tests shared by the processed reward stores."""

import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from chat_rewards.adapters.memory_reward_store import InMemoryRewardStore
from chat_rewards.adapters.sqlite_reward_store import TABLE_NAME, SQLiteRewardStore
from chat_rewards.adapters.store_factory import create_reward_store
from chat_rewards.config.settings import Settings
from chat_rewards.domain.exceptions import RepositoryError
from chat_rewards.domain.models import ApiOutcome, ProcessedRewardRecord, ScoreResult
from chat_rewards.domain.protocols import ProcessedRecordStoreProtocol

PROCESSED_AT = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _record(identity: str) -> ProcessedRewardRecord:
    return ProcessedRewardRecord(
        identity=identity,
        processed_at=PROCESSED_AT,
        score=ScoreResult(quality_score=0.7, trust_score=0.6, meets_conditions=True),
        api_response=ApiOutcome(
            status="success",
            message="Reward API call successful",
            data={"reward": {"quality_score": 0.7}},
        ),
    )


@pytest.fixture(params=["memory", "sqlite"])
def reward_store(
    request: pytest.FixtureRequest, tmp_path: Path
) -> ProcessedRecordStoreProtocol:
    if request.param == "memory":
        return InMemoryRewardStore()
    return SQLiteRewardStore(str(tmp_path / "nested" / "rewards.db"))


def test_store_satisfies_protocol(reward_store: ProcessedRecordStoreProtocol) -> None:
    assert isinstance(reward_store, ProcessedRecordStoreProtocol)


def test_reserve_is_exclusive(reward_store: ProcessedRecordStoreProtocol) -> None:
    assert reward_store.reserve("key-1") is True
    assert reward_store.reserve("key-1") is False
    assert reward_store.exists("key-1") is True
    assert reward_store.get("key-1") is None


def test_set_finalizes_reserved_key(reward_store: ProcessedRecordStoreProtocol) -> None:
    reward_store.reserve("key-1")
    reward_store.set("key-1", _record("key-1"))

    stored = reward_store.get("key-1")

    assert stored == _record("key-1")
    assert reward_store.reserve("key-1") is False


def test_set_refuses_to_overwrite(reward_store: ProcessedRecordStoreProtocol) -> None:
    reward_store.reserve("key-1")
    reward_store.set("key-1", _record("key-1"))

    with pytest.raises(RepositoryError):
        reward_store.set("key-1", _record("key-1"))


def test_release_only_drops_pending(reward_store: ProcessedRecordStoreProtocol) -> None:
    reward_store.reserve("pending")
    reward_store.reserve("done")
    reward_store.set("done", _record("done"))

    assert reward_store.release("pending") is True
    assert reward_store.release("pending") is False
    assert reward_store.release("done") is False
    assert reward_store.exists("pending") is False
    assert reward_store.exists("done") is True


def test_unknown_key(reward_store: ProcessedRecordStoreProtocol) -> None:
    assert reward_store.exists("missing") is False
    assert reward_store.get("missing") is None
    assert reward_store.release("missing") is False


def test_sqlite_records_survive_reopen(tmp_path: Path) -> None:
    db_path = str(tmp_path / "rewards.db")
    first = SQLiteRewardStore(db_path)
    first.reserve("key-1")
    first.set("key-1", _record("key-1"))

    reopened = SQLiteRewardStore(db_path)

    assert reopened.get("key-1") == _record("key-1")
    assert reopened.reserve("key-1") is False


def test_sqlite_reservation_is_shared_between_instances(tmp_path: Path) -> None:
    db_path = str(tmp_path / "rewards.db")
    worker_a = SQLiteRewardStore(db_path)
    worker_b = SQLiteRewardStore(db_path)

    assert worker_a.reserve("key-1") is True
    assert worker_b.reserve("key-1") is False


def test_sqlite_cleanup_removes_only_stale_reservations(tmp_path: Path) -> None:
    db_path = str(tmp_path / "rewards.db")
    store = SQLiteRewardStore(db_path)
    store.reserve("stale")
    store.reserve("fresh")
    store.reserve("done")
    store.set("done", _record("done"))

    old = (datetime.now(UTC) - timedelta(hours=2)).isoformat()
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            f"UPDATE {TABLE_NAME} SET reserved_at = ? WHERE identity IN ('stale', 'done')",
            (old,),
        )

    removed = store.cleanup_stale_reservations(timedelta(hours=1))

    assert removed == 1
    assert store.exists("stale") is False
    assert store.exists("fresh") is True
    assert store.exists("done") is True


def test_sqlite_errors_are_wrapped(tmp_path: Path) -> None:
    db_path = tmp_path / "rewards.db"
    store = SQLiteRewardStore(str(db_path))
    with sqlite3.connect(db_path) as conn:
        conn.execute(f"DROP TABLE {TABLE_NAME}")

    with pytest.raises(RepositoryError):
        store.reserve("key-1")


def test_factory_selects_backend(tmp_path: Path) -> None:
    memory_settings = Settings(config_dir=str(tmp_path), store_type="memory")
    sqlite_settings = Settings(
        config_dir=str(tmp_path), store_type="sqlite", db_path=str(tmp_path / "r.db")
    )

    assert isinstance(create_reward_store(memory_settings), InMemoryRewardStore)
    assert isinstance(create_reward_store(sqlite_settings), SQLiteRewardStore)

"""
Storage layer tests against real SQLite files.

Covers checkpoint seeding and monotonic advance, idempotent transfer
inserts, and schema/migration behaviour of SqliteDatabase.
"""

import asyncio
import sqlite3
import threading

import pytest
import pytest_asyncio

from erc20_sync.shared.exceptions import CheckpointConflictError, StorageError
from erc20_sync.shared.models import BlockRange
from erc20_sync.storage import CheckpointRepository, SqliteDatabase, TransferRepository
from erc20_sync.storage.schemas.relational import SCHEMA_VERSION
from erc20_sync.transformation import TransferDecoder
from tests.fixtures import CHAIN_ID, make_logs


@pytest_asyncio.fixture
async def db(tmp_path):
    database = SqliteDatabase(tmp_path / "indexer.db")
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
def checkpoints(db):
    return CheckpointRepository(db)


@pytest.fixture
def transfers(db):
    return TransferRepository(db)


def decode(blocks, per_block=1):
    return TransferDecoder(CHAIN_ID).decode_batch(make_logs(blocks, per_block)).events


# ============================================================================
# SqliteDatabase
# ============================================================================


class TestSqliteDatabase:
    @pytest.mark.asyncio
    async def test_connect_applies_schema(self, db):
        version = await db.run(lambda c: c.execute("PRAGMA user_version").fetchone()[0])
        tables = await db.run(
            lambda c: {
                row["name"]
                for row in c.execute("SELECT name FROM sqlite_master WHERE type='table'")
            }
        )

        assert version == SCHEMA_VERSION
        assert {"sync", "transfers"} <= tables

    @pytest.mark.asyncio
    async def test_reopen_keeps_data(self, tmp_path):
        path = tmp_path / "indexer.db"
        first = SqliteDatabase(path)
        await first.connect()
        await CheckpointRepository(first).seed_if_absent_or_lower(CHAIN_ID, 41)
        await first.close()

        second = SqliteDatabase(path)
        await second.connect()
        try:
            assert await CheckpointRepository(second).get(CHAIN_ID) == 41
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_run_without_connect_raises(self, tmp_path):
        database = SqliteDatabase(tmp_path / "never.db")

        with pytest.raises(StorageError, match="not connected"):
            await database.run(lambda c: None)

    @pytest.mark.asyncio
    async def test_sqlite_errors_are_wrapped(self, db):
        with pytest.raises(StorageError) as exc:
            await db.run(lambda c: c.execute("SELECT * FROM missing_table"))
        assert isinstance(exc.value.cause, sqlite3.Error)

    @pytest.mark.asyncio
    async def test_unbindable_integer_is_wrapped(self, db):
        with pytest.raises(StorageError) as exc:
            await db.run(lambda c: c.execute("SELECT ?", (2**64,)))
        assert isinstance(exc.value.cause, OverflowError)

    @pytest.mark.asyncio
    async def test_cancelled_caller_keeps_lock_until_thread_returns(self, db):
        started = threading.Event()
        release = threading.Event()

        def slow(conn):
            started.set()
            release.wait(5)
            return conn.execute("SELECT 1").fetchone()[0]

        task = asyncio.create_task(db.run(slow))
        await asyncio.to_thread(started.wait, 5)
        task.cancel()
        await asyncio.sleep(0.05)

        assert not task.done()
        assert db._lock.locked()

        release.set()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert not db._lock.locked()
        assert await db.run(lambda c: c.execute("SELECT 2").fetchone()[0]) == 2

    @pytest.mark.asyncio
    async def test_failed_transaction_rolls_back(self, db, checkpoints):
        def write_then_fail(conn):
            conn.execute("INSERT INTO sync (chain_id, block_number) VALUES (?, ?)", (9, 1))
            raise sqlite3.IntegrityError("boom")

        with pytest.raises(StorageError):
            await db.transaction(write_then_fail)

        assert await checkpoints.get(9) is None

    @pytest.mark.asyncio
    async def test_in_memory_database(self):
        database = SqliteDatabase(":memory:")
        await database.connect()
        try:
            repo = CheckpointRepository(database)
            await repo.seed_if_absent_or_lower(CHAIN_ID, 5)
            assert await repo.get(CHAIN_ID) == 5
        finally:
            await database.close()


# ============================================================================
# CheckpointRepository
# ============================================================================


class TestCheckpointRepository:
    @pytest.mark.asyncio
    async def test_get_unseeded_returns_none(self, checkpoints):
        assert await checkpoints.get(CHAIN_ID) is None
        assert await checkpoints.load(CHAIN_ID) is None

    @pytest.mark.asyncio
    async def test_seed_when_absent(self, checkpoints):
        changed = await checkpoints.seed_if_absent_or_lower(CHAIN_ID, -1)

        assert changed is True
        assert await checkpoints.get(CHAIN_ID) == -1

    @pytest.mark.asyncio
    async def test_seed_never_lowers(self, checkpoints):
        assert await checkpoints.seed_if_absent_or_lower(CHAIN_ID, 500) is True
        assert await checkpoints.seed_if_absent_or_lower(CHAIN_ID, 100) is False

        assert await checkpoints.get(CHAIN_ID) == 500

    @pytest.mark.asyncio
    async def test_seed_raises_lower_value(self, checkpoints):
        await checkpoints.seed_if_absent_or_lower(CHAIN_ID, 100)

        assert await checkpoints.seed_if_absent_or_lower(CHAIN_ID, 500) is True
        assert await checkpoints.get(CHAIN_ID) == 500

    @pytest.mark.asyncio
    async def test_seed_equal_value_is_noop(self, checkpoints):
        await checkpoints.seed_if_absent_or_lower(CHAIN_ID, 100)

        assert await checkpoints.seed_if_absent_or_lower(CHAIN_ID, 100) is False

    @pytest.mark.asyncio
    async def test_chains_are_independent(self, checkpoints):
        await checkpoints.seed_if_absent_or_lower(1, 10)
        await checkpoints.seed_if_absent_or_lower(137, 20)

        assert await checkpoints.get(1) == 10
        assert await checkpoints.get(137) == 20

    @pytest.mark.asyncio
    async def test_advance_moves_forward(self, checkpoints):
        await checkpoints.seed_if_absent_or_lower(CHAIN_ID, 99)

        assert await checkpoints.advance(CHAIN_ID, 199) is True
        checkpoint = await checkpoints.load(CHAIN_ID)
        assert checkpoint.block_number == 199

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [199, 150, -1])
    async def test_advance_not_above_current_is_rejected(self, checkpoints, value):
        await checkpoints.seed_if_absent_or_lower(CHAIN_ID, 199)

        assert await checkpoints.advance(CHAIN_ID, value) is False
        assert await checkpoints.get(CHAIN_ID) == 199

    @pytest.mark.asyncio
    async def test_advance_inserts_missing_row(self, checkpoints):
        assert await checkpoints.advance(CHAIN_ID, 10) is True
        assert await checkpoints.get(CHAIN_ID) == 10

    @pytest.mark.asyncio
    async def test_compare_and_set(self, checkpoints):
        await checkpoints.seed_if_absent_or_lower(CHAIN_ID, 99)

        assert await checkpoints.advance(CHAIN_ID, 199, expected=99) is True
        assert await checkpoints.get(CHAIN_ID) == 199

    @pytest.mark.asyncio
    async def test_compare_and_set_conflict(self, checkpoints):
        await checkpoints.seed_if_absent_or_lower(CHAIN_ID, 199)

        with pytest.raises(CheckpointConflictError) as exc:
            await checkpoints.advance(CHAIN_ID, 300, expected=99)

        assert exc.value.fatal is True
        assert exc.value.actual == 199
        assert await checkpoints.get(CHAIN_ID) == 199


# ============================================================================
# TransferRepository
# ============================================================================


class TestTransferRepository:
    @pytest.mark.asyncio
    async def test_store_batch_returns_new_rows(self, transfers):
        events = decode(range(100, 110), per_block=2)

        assert await transfers.store_batch(events) == 20
        assert await transfers.count(CHAIN_ID) == 20

    @pytest.mark.asyncio
    async def test_store_batch_is_idempotent(self, transfers):
        events = decode(range(100, 200))

        assert await transfers.store_batch(events) == 100
        assert await transfers.store_batch(events) == 0

        stored = await transfers.find_by_block_range(CHAIN_ID, BlockRange(100, 199))
        assert stored == events

    @pytest.mark.asyncio
    async def test_partial_overlap_counts_only_new(self, transfers):
        await transfers.store_batch(decode(range(100, 150)))

        assert await transfers.store_batch(decode(range(100, 200))) == 50
        assert await transfers.count(CHAIN_ID) == 100

    @pytest.mark.asyncio
    async def test_empty_batch(self, transfers):
        assert await transfers.store_batch([]) == 0

    @pytest.mark.asyncio
    async def test_find_by_block_range_is_inclusive_and_ordered(self, transfers):
        await transfers.store_batch(list(reversed(decode(range(100, 110), per_block=2))))

        stored = await transfers.find_by_block_range(CHAIN_ID, BlockRange(102, 104))

        assert [(e.block_number, e.log_index) for e in stored] == [
            (102, 0),
            (102, 1),
            (103, 0),
            (103, 1),
            (104, 0),
            (104, 1),
        ]

    @pytest.mark.asyncio
    async def test_large_values_round_trip(self, transfers):
        event = decode([100])[0].model_copy(update={"value": 2**256 - 1})

        await transfers.store_batch([event])

        stored = await transfers.find_by_block_range(CHAIN_ID, BlockRange(100, 100))
        assert stored[0].value == 2**256 - 1

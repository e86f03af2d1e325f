"""Transfer event repository backed by the SQLite ``transfers`` table.

Inserts are idempotent on the natural key (chain_id, tx_hash, log_index):
replaying a block range stores nothing new.
"""

import sqlite3
from collections.abc import Sequence

from erc20_sync.infrastructure.observability import get_storage_logger
from erc20_sync.shared.models import BlockRange, TransferEvent
from erc20_sync.storage.adapters.sqlite import SqliteDatabase
from erc20_sync.storage.schemas.relational import TRANSFER_COLUMNS

_INSERT_SQL = (
    f"INSERT OR IGNORE INTO transfers ({', '.join(TRANSFER_COLUMNS)}) "
    f"VALUES ({', '.join(':' + c for c in TRANSFER_COLUMNS)})"
)


class TransferRepository:
    """Deduplicating persistence for TransferEvent records."""

    def __init__(self, db: SqliteDatabase):
        self.db = db
        self.log = get_storage_logger("transfer-repository", table="transfers")

    async def store_batch(self, events: Sequence[TransferEvent]) -> int:
        """
        Store a batch as one transaction.

        Duplicate natural keys are absorbed silently.

        Returns:
            Number of newly inserted rows
        """
        if not events:
            return 0
        rows = [event.to_row() for event in events]

        def _insert(conn: sqlite3.Connection) -> int:
            before = conn.total_changes
            conn.executemany(_INSERT_SQL, rows)
            return conn.total_changes - before

        inserted = await self.db.transaction(_insert)
        self.log.debug(
            "batch_inserted",
            records=len(rows),
            inserted=inserted,
            duplicates=len(rows) - inserted,
        )
        return inserted

    async def count(self, chain_id: int) -> int:
        def _count(conn: sqlite3.Connection) -> int:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM transfers WHERE chain_id = ?", (chain_id,)
            ).fetchone()
            return int(row["n"])

        return await self.db.run(_count)

    async def find_by_block_range(
        self, chain_id: int, block_range: BlockRange
    ) -> list[TransferEvent]:
        """Stored transfers in ``block_range``, ordered by block and log index."""

        def _find(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute(
                f"""
                SELECT {', '.join(TRANSFER_COLUMNS)} FROM transfers
                WHERE chain_id = ? AND block_number BETWEEN ? AND ?
                ORDER BY block_number, log_index
                """,
                (chain_id, block_range.start, block_range.end),
            ).fetchall()

        rows = await self.db.run(_find)
        return [TransferEvent.from_row(row) for row in rows]

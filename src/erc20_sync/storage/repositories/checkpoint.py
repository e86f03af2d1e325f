"""Checkpoint repository backed by the SQLite ``sync`` table.

One row per chain holding the last block whose events are durably stored.
All writes are single transactions (BEGIN IMMEDIATE), so read-compare-write
is atomic even if a second process opens the same file.
"""

import sqlite3

from erc20_sync.infrastructure.observability import get_storage_logger
from erc20_sync.shared.exceptions import CheckpointConflictError
from erc20_sync.shared.models import Checkpoint
from erc20_sync.storage.adapters.sqlite import SqliteDatabase


def _current(conn: sqlite3.Connection, chain_id: int) -> int | None:
    row = conn.execute(
        "SELECT block_number FROM sync WHERE chain_id = ?", (chain_id,)
    ).fetchone()
    return None if row is None else int(row["block_number"])


def _write(conn: sqlite3.Connection, chain_id: int, value: int) -> None:
    conn.execute(
        """
        INSERT INTO sync (chain_id, block_number) VALUES (?, ?)
        ON CONFLICT(chain_id) DO UPDATE SET block_number = excluded.block_number
        """,
        (chain_id, value),
    )


class CheckpointRepository:
    """Durable per-chain sync progress with monotonic writes."""

    def __init__(self, db: SqliteDatabase):
        self.db = db
        self.log = get_storage_logger("checkpoint-repository", table="sync")

    async def get(self, chain_id: int) -> int | None:
        """Last persisted block number, or None if the chain was never seeded."""
        return await self.db.run(lambda conn: _current(conn, chain_id))

    async def load(self, chain_id: int) -> Checkpoint | None:
        """Same as get(), as a Checkpoint record."""
        value = await self.get(chain_id)
        return None if value is None else Checkpoint(chain_id=chain_id, block_number=value)

    async def seed_if_absent_or_lower(self, chain_id: int, value: int) -> bool:
        """
        Set the checkpoint to ``value`` only if absent or currently lower.

        Never moves progress from a prior run backward.

        Returns:
            True if the stored checkpoint changed
        """

        def _seed(conn: sqlite3.Connection) -> bool:
            before = conn.total_changes
            conn.execute(
                """
                INSERT INTO sync (chain_id, block_number) VALUES (?, ?)
                ON CONFLICT(chain_id) DO UPDATE SET block_number = excluded.block_number
                WHERE sync.block_number < excluded.block_number
                """,
                (chain_id, value),
            )
            return conn.total_changes > before

        changed = await self.db.transaction(_seed)
        self.log.info("checkpoint_seeded", chain_id=chain_id, value=value, changed=changed)
        return changed

    async def advance(
        self, chain_id: int, new_value: int, expected: int | None = None
    ) -> bool:
        """
        Move the checkpoint forward to ``new_value``.

        Callers advance only after the covered events are durably stored.

        Args:
            chain_id: Chain to advance
            new_value: New last-persisted block
            expected: If given, compare-and-set against this stored value

        Returns:
            True if advanced; False if ``new_value`` <= current (rejected no-op)

        Raises:
            CheckpointConflictError: If ``expected`` differs from the stored value
        """

        def _advance(conn: sqlite3.Connection) -> bool:
            current = _current(conn, chain_id)
            if expected is not None and current != expected:
                raise CheckpointConflictError(
                    chain_id, expected, current, stage="advancing"
                )
            if current is not None and new_value <= current:
                return False
            _write(conn, chain_id, new_value)
            return True

        advanced = await self.db.transaction(_advance)
        if not advanced:
            self.log.warning(
                "checkpoint_advance_rejected", chain_id=chain_id, new_value=new_value
            )
        return advanced

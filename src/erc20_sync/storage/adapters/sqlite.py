"""SQLite adapter for the storage layer.

One connection per process, shared by the repositories. Every call runs in
a worker thread (asyncio.to_thread) behind an asyncio.Lock, so the event loop
never blocks on disk I/O and statements never interleave.
"""

import asyncio
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from erc20_sync.infrastructure.observability import get_database_logger
from erc20_sync.shared.exceptions import StorageError
from erc20_sync.storage.schemas.relational import MIGRATIONS

T = TypeVar("T")


class SqliteDatabase:
    """Async facade over a single sqlite3 connection."""

    def __init__(self, path: str | Path):
        """
        Args:
            path: Database file, or ":memory:" for an in-memory database
        """
        self.path = str(path)
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()
        self.log = get_database_logger(db_path=self.path)

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self) -> None:
        """Open the database and apply pending migrations."""
        if self._conn is not None:
            return

        def _open() -> sqlite3.Connection:
            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            # Autocommit mode: transactions are opened explicitly
            conn = sqlite3.connect(self.path, check_same_thread=False, isolation_level=None)
            conn.row_factory = sqlite3.Row
            if self.path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            return conn

        try:
            self._conn = await asyncio.to_thread(_open)
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to open database {self.path}", stage="storage", cause=e
            ) from e

        await self.run(self._apply_migrations)

    def _apply_migrations(self, conn: sqlite3.Connection) -> None:
        current = conn.execute("PRAGMA user_version").fetchone()[0]
        pending = [m for m in MIGRATIONS if m[0] > current]
        if not pending:
            return

        self.log.info("applying_pending_migrations", current_version=current, pending=len(pending))
        for version, name, statements in pending:
            with self._transaction(conn):
                for statement in statements:
                    conn.execute(statement)
                conn.execute(f"PRAGMA user_version = {int(version)}")
            self.log.info("migration_applied", version=version, name=name)

    @staticmethod
    @contextmanager
    def _transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
        """BEGIN IMMEDIATE ... COMMIT, rolling back on any exception."""
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

    async def run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``fn(conn)`` on a worker thread, serialized with other calls.

        If the caller is cancelled, the lock is held until the worker thread
        returns, since the thread keeps using the connection.

        Raises:
            StorageError: On any sqlite3 error, a value SQLite cannot bind, or
                if not connected
        """
        if self._conn is None:
            raise StorageError("Database not connected", stage="storage")
        conn = self._conn

        async with self._lock:
            work = asyncio.ensure_future(asyncio.to_thread(fn, conn))
            try:
                return await asyncio.shield(work)
            except asyncio.CancelledError:
                await self._wait_abandoned(work)
                raise
            except (sqlite3.Error, OverflowError, ValueError) as e:
                raise StorageError(
                    f"SQLite operation failed on {self.path}", stage="storage", cause=e
                ) from e

    async def _wait_abandoned(self, work: "asyncio.Future[T]") -> None:
        await asyncio.wait({work})
        if not work.cancelled() and work.exception() is not None:
            self.log.warning("cancelled_operation_failed", error=str(work.exception()))

    async def transaction(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``fn(conn)`` inside a single write transaction."""

        def _in_transaction(conn: sqlite3.Connection) -> T:
            with self._transaction(conn):
                return fn(conn)

        return await self.run(_in_transaction)

    async def close(self) -> None:
        """Close the connection."""
        if self._conn is None:
            return
        conn = self._conn
        async with self._lock:
            self._conn = None
            await asyncio.to_thread(conn.close)

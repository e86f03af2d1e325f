"""Storage adapters.

- SQLite: checkpoint and transfer tables (via sqlite3 on worker threads)
"""

from .sqlite import SqliteDatabase

__all__ = ["SqliteDatabase"]

"""Storage layer for erc20-sync.

    ┌─────────────────────────────────────┐
    │ Orchestration (SyncEngine)          │
    └──────────────┬──────────────────────┘
                   │
    ┌──────────────▼──────────────────────┐
    │ Storage Layer (THIS MODULE)         │
    │                                     │
    │  Repositories:                      │
    │  - CheckpointRepository  (sync)     │
    │  - TransferRepository    (transfers)│
    │                                     │
    │  Schemas: relational.py migrations  │
    └──────────────┬──────────────────────┘
                   │
    ┌──────────────▼──────────────────────┐
    │ SqliteDatabase adapter (sqlite3)    │
    └─────────────────────────────────────┘

Ordering contract: transfers are stored first, the checkpoint advances second.
Inserts are idempotent, so a crash in between only causes a re-fetch.
"""

from .adapters import SqliteDatabase
from .repositories import CheckpointRepository, TransferRepository

__all__ = ["CheckpointRepository", "SqliteDatabase", "TransferRepository"]

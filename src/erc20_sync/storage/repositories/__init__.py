"""Repository layer for storage operations.

Each repository handles one table:
- CheckpointRepository: per-chain sync progress (``sync``)
- TransferRepository: decoded Transfer events (``transfers``)
"""

from .checkpoint import CheckpointRepository
from .transfers import TransferRepository

__all__ = [
    "CheckpointRepository",
    "TransferRepository",
]

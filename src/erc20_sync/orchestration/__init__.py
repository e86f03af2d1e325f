"""Orchestration layer: range scheduling and the sync engine pipeline."""

from .engine import SyncEngine
from .ports import (
    DecodedRange,
    FetchedRange,
    ICheckpointStore,
    IEventDecoder,
    IEventStore,
    SyncState,
)
from .reporter import SyncReporter, SyncStats
from .resequencer import RangeResequencer
from .scheduler import RangeScheduler, next_range

__all__ = [
    "DecodedRange",
    "FetchedRange",
    "ICheckpointStore",
    "IEventDecoder",
    "IEventStore",
    "RangeResequencer",
    "RangeScheduler",
    "SyncEngine",
    "SyncReporter",
    "SyncState",
    "SyncStats",
    "next_range",
]

"""
Orchestration Layer Protocol Definitions
=========================================

Sync states, the work items passed between pipeline stages, and the
protocols the engine depends on for decoding and persistence. Concrete
implementations live in transformation/ and storage/.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from erc20_sync.shared.models import BlockRange, Checkpoint, RawLog, TransferEvent
from erc20_sync.transformation.decoders import DecodeResult


class SyncState(str, Enum):
    """Sync engine state."""

    STARTING = "starting"
    POLLING = "polling"
    FETCHING = "fetching"
    DECODING = "decoding"
    PERSISTING = "persisting"
    ADVANCING = "advancing"
    IDLE = "idle"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"
    FAILED = "failed"  # terminal, fatal errors only


@dataclass(frozen=True)
class FetchedRange:
    """Raw logs for one block range, fetch stage -> decode stage."""

    block_range: BlockRange
    logs: list[RawLog]
    tip: int


@dataclass(frozen=True)
class DecodedRange:
    """Decoded batch for one block range, decode stage -> persist stage."""

    block_range: BlockRange
    events: list[TransferEvent]
    fetched: int
    malformed: int
    tip: int


@runtime_checkable
class IEventDecoder(Protocol):
    """Turns raw logs into transfer events, skipping malformed ones."""

    def decode_batch(self, raws: Iterable[RawLog]) -> DecodeResult:
        ...


@runtime_checkable
class ICheckpointStore(Protocol):
    """Durable per-chain progress."""

    async def get(self, chain_id: int) -> int | None:
        ...

    async def load(self, chain_id: int) -> Checkpoint | None:
        ...

    async def seed_if_absent_or_lower(self, chain_id: int, value: int) -> bool:
        ...

    async def advance(
        self, chain_id: int, new_value: int, expected: int | None = None
    ) -> bool:
        ...


@runtime_checkable
class IEventStore(Protocol):
    """Idempotent transfer persistence."""

    async def store_batch(self, events: Sequence[TransferEvent]) -> int:
        ...

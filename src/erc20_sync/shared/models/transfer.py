"""Domain models for ERC-20 transfer synchronization."""

from dataclasses import dataclass
from typing import Any

from eth_utils import is_checksum_address
from pydantic import BaseModel, ConfigDict, Field, field_validator

TX_HASH_HEX_LENGTH = 66  # "0x" + 32 bytes

# Largest value a SQLite INTEGER column holds; block numbers, log indexes and
# chain ids are stored there
MAX_SQL_INTEGER = 2**63 - 1


@dataclass(frozen=True)
class BlockRange:
    """Inclusive block window ``[start, end]``."""

    start: int
    end: int

    def __post_init__(self):
        if self.start < 0:
            raise ValueError(f"Block range start must be >= 0, got {self.start}")
        if self.start > self.end:
            raise ValueError(f"Invalid block range: {self.start} > {self.end}")

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def __str__(self) -> str:
        return f"[{self.start}, {self.end}]"


@dataclass(frozen=True)
class Checkpoint:
    """Last block whose events are fully and durably persisted.

    ``block_number`` is signed: -1 means nothing persisted yet and the sync
    starts at block 0.
    """

    chain_id: int
    block_number: int


@dataclass(frozen=True)
class RawLog:
    """Untrusted log envelope exactly as returned by ``eth_getLogs``.

    Nothing is validated here; TransferDecoder owns all checks.
    """

    address: Any
    topics: tuple[Any, ...]
    data: Any
    block_number: Any
    transaction_hash: Any
    log_index: Any
    removed: bool = False

    @classmethod
    def from_rpc(cls, payload: Any) -> "RawLog":
        """Build from a JSON-RPC log object. Never raises."""
        if not isinstance(payload, dict):
            return cls(
                address=None,
                topics=(),
                data=None,
                block_number=None,
                transaction_hash=None,
                log_index=None,
            )
        topics = payload.get("topics")
        return cls(
            address=payload.get("address"),
            topics=tuple(topics) if isinstance(topics, list) else (),
            data=payload.get("data"),
            block_number=payload.get("blockNumber"),
            transaction_hash=payload.get("transactionHash"),
            log_index=payload.get("logIndex"),
            removed=bool(payload.get("removed", False)),
        )


class TransferEvent(BaseModel):
    """Decoded ERC-20 Transfer event.

    Natural key: (chain_id, tx_hash, log_index). Immutable.
    """

    model_config = ConfigDict(frozen=True)

    chain_id: int = Field(ge=0, le=MAX_SQL_INTEGER)
    block_number: int = Field(ge=0, le=MAX_SQL_INTEGER)
    tx_hash: str
    token_address: str
    from_addr: str
    to_addr: str
    value: int = Field(ge=0)
    log_index: int = Field(ge=0, le=MAX_SQL_INTEGER)

    @field_validator("tx_hash")
    @classmethod
    def validate_tx_hash(cls, v: str) -> str:
        v = v.lower()
        if len(v) != TX_HASH_HEX_LENGTH or not v.startswith("0x"):
            raise ValueError(f"tx_hash must be a 32-byte 0x-hex string: {v}")
        int(v, 16)
        return v

    @field_validator("token_address", "from_addr", "to_addr")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not is_checksum_address(v):
            raise ValueError(f"Expected EIP-55 checksum address, got {v}")
        return v

    @property
    def natural_key(self) -> tuple[int, str, int]:
        return (self.chain_id, self.tx_hash, self.log_index)

    def to_row(self) -> dict[str, Any]:
        """Storage row; value as decimal string to keep full precision."""
        return {
            "chain_id": self.chain_id,
            "block_number": self.block_number,
            "tx_hash": self.tx_hash,
            "token_address": self.token_address,
            "from_addr": self.from_addr,
            "to_addr": self.to_addr,
            "value": str(self.value),
            "log_index": self.log_index,
        }

    @classmethod
    def from_row(cls, row: Any) -> "TransferEvent":
        return cls(
            chain_id=row["chain_id"],
            block_number=row["block_number"],
            tx_hash=row["tx_hash"],
            token_address=row["token_address"],
            from_addr=row["from_addr"],
            to_addr=row["to_addr"],
            value=int(row["value"]),
            log_index=row["log_index"],
        )

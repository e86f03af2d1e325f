"""
Transfer log decoder.

Pure conversion of an untrusted RawLog envelope into a validated
TransferEvent. Every structural problem raises MalformedLogError; a batch
decode skips and counts those instead of failing.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from eth_utils import big_endian_to_int, decode_hex, is_address, to_checksum_address
from pydantic import ValidationError

from erc20_sync.infrastructure.observability import get_processing_logger
from erc20_sync.ingestion.adapters.evm_rpc.constants import (
    ADDRESS_SIZE_BYTES,
    TRANSFER_TOPIC,
    WORD_SIZE_BYTES,
)
from erc20_sync.shared.exceptions import MalformedLogError
from erc20_sync.shared.models import MAX_SQL_INTEGER, RawLog, TransferEvent

TRANSFER_TOPIC_COUNT = 3


@dataclass
class DecodeResult:
    """Outcome of decoding one fetched batch."""

    events: list[TransferEvent] = field(default_factory=list)
    malformed: list[MalformedLogError] = field(default_factory=list)

    @property
    def malformed_count(self) -> int:
        return len(self.malformed)


def _decode_word(value: Any, what: str, raw: RawLog) -> bytes:
    """Decode a 0x-hex string that must be exactly one 32-byte word."""
    if not isinstance(value, str) or not value.startswith("0x"):
        raise MalformedLogError(
            f"{what} is not 0x-hex", raw.transaction_hash, raw.log_index
        )
    try:
        word = decode_hex(value)
    except (ValueError, TypeError) as e:
        raise MalformedLogError(
            f"{what} is not valid hex", raw.transaction_hash, raw.log_index, cause=e
        ) from e
    if len(word) != WORD_SIZE_BYTES:
        raise MalformedLogError(
            f"{what} is {len(word)} bytes, expected {WORD_SIZE_BYTES}",
            raw.transaction_hash,
            raw.log_index,
        )
    return word


def _decode_quantity(value: Any, what: str, raw: RawLog) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        number = value
    elif isinstance(value, str) and value.startswith("0x"):
        try:
            number = int(value, 16)
        except ValueError as e:
            raise MalformedLogError(
                f"{what} is not a hex quantity", raw.transaction_hash, raw.log_index, cause=e
            ) from e
    else:
        raise MalformedLogError(f"{what} is missing", raw.transaction_hash, raw.log_index)
    if number < 0:
        raise MalformedLogError(f"{what} is negative", raw.transaction_hash, raw.log_index)
    if number > MAX_SQL_INTEGER:
        raise MalformedLogError(
            f"{what} {number} exceeds {MAX_SQL_INTEGER}", raw.transaction_hash, raw.log_index
        )
    return number


def _address_from_topic(topic: bytes, what: str, raw: RawLog) -> str:
    padding = topic[: WORD_SIZE_BYTES - ADDRESS_SIZE_BYTES]
    if any(padding):
        raise MalformedLogError(
            f"{what} topic has non-zero address padding",
            raw.transaction_hash,
            raw.log_index,
        )
    return to_checksum_address("0x" + topic[WORD_SIZE_BYTES - ADDRESS_SIZE_BYTES :].hex())


class TransferDecoder:
    """Decodes ERC-20 Transfer logs for one chain."""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id
        self.log = get_processing_logger("transfer-decoder", chain_id=chain_id)

    def decode(self, raw: RawLog) -> TransferEvent:
        """
        Decode a single raw log.

        Args:
            raw: Log envelope from eth_getLogs

        Returns:
            Validated TransferEvent

        Raises:
            MalformedLogError: If topics, data or envelope do not match a Transfer
        """
        if raw.removed:
            raise MalformedLogError(
                "log was removed by a reorg", raw.transaction_hash, raw.log_index
            )

        if len(raw.topics) != TRANSFER_TOPIC_COUNT:
            raise MalformedLogError(
                f"expected {TRANSFER_TOPIC_COUNT} topics, got {len(raw.topics)}",
                raw.transaction_hash,
                raw.log_index,
            )

        signature = _decode_word(raw.topics[0], "topic0", raw)
        if "0x" + signature.hex() != TRANSFER_TOPIC:
            raise MalformedLogError(
                "topic0 is not the Transfer signature", raw.transaction_hash, raw.log_index
            )

        from_addr = _address_from_topic(_decode_word(raw.topics[1], "from", raw), "from", raw)
        to_addr = _address_from_topic(_decode_word(raw.topics[2], "to", raw), "to", raw)
        value = big_endian_to_int(_decode_word(raw.data, "data", raw))

        tx_hash = _decode_word(raw.transaction_hash, "transactionHash", raw)

        if not isinstance(raw.address, str) or not is_address(raw.address):
            raise MalformedLogError(
                f"invalid token address {raw.address!r}", raw.transaction_hash, raw.log_index
            )

        block_number = _decode_quantity(raw.block_number, "blockNumber", raw)
        log_index = _decode_quantity(raw.log_index, "logIndex", raw)

        try:
            return TransferEvent(
                chain_id=self.chain_id,
                block_number=block_number,
                tx_hash="0x" + tx_hash.hex(),
                token_address=to_checksum_address(raw.address),
                from_addr=from_addr,
                to_addr=to_addr,
                value=value,
                log_index=log_index,
            )
        except ValidationError as e:
            raise MalformedLogError(
                f"decoded fields rejected: {e.error_count()} error(s)",
                raw.transaction_hash,
                raw.log_index,
                cause=e,
            ) from e

    def decode_batch(self, raws: Iterable[RawLog]) -> DecodeResult:
        """Decode a batch; malformed logs are logged, counted and skipped."""
        result = DecodeResult()
        for raw in raws:
            try:
                result.events.append(self.decode(raw))
            except MalformedLogError as e:
                self.log.warning(
                    "malformed_log_skipped",
                    reason=e.reason,
                    tx_hash=e.tx_hash,
                    log_index=e.log_index,
                )
                result.malformed.append(e)
        return result

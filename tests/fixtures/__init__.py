"""
Test fixtures package for sync tests.

Provides eth_getLogs payload builders, an in-memory chain client and
helpers for driving the sync engine in tests.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from eth_utils import to_checksum_address

from erc20_sync.config.value_objects import EngineConfig, RetryConfig
from erc20_sync.ingestion.adapters.evm_rpc.constants import TRANSFER_TOPIC
from erc20_sync.shared.exceptions import InvalidRangeError, TransportError
from erc20_sync.shared.models import RawLog

CHAIN_ID = 1
TOKEN = to_checksum_address("0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48")
ALICE = to_checksum_address("0x" + "11" * 20)
BOB = to_checksum_address("0x" + "22" * 20)


def address_topic(address: str) -> str:
    """Left-pad a 20-byte address into a 32-byte topic."""
    return "0x" + "00" * 12 + address[2:].lower()


def uint256_word(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


def tx_hash_for(block: int, log_index: int) -> str:
    return uint256_word(block * 1_000 + log_index)


def make_rpc_log(
    block: int,
    log_index: int = 0,
    *,
    tx_hash: str | None = None,
    from_addr: str = ALICE,
    to_addr: str = BOB,
    value: int = 1_000,
    token: str = TOKEN,
    topics: list[str] | None = None,
    data: str | None = None,
    removed: bool = False,
) -> dict[str, Any]:
    """
    Build one eth_getLogs result entry for a Transfer.

    Example:
        >>> make_rpc_log(120, 1, value=5)["topics"][0] == TRANSFER_TOPIC
        True
    """
    if topics is None:
        topics = [TRANSFER_TOPIC, address_topic(from_addr), address_topic(to_addr)]
    return {
        "address": token.lower(),
        "topics": topics,
        "data": data if data is not None else uint256_word(value),
        "blockNumber": hex(block),
        "transactionHash": tx_hash or tx_hash_for(block, log_index),
        "logIndex": hex(log_index),
        "removed": removed,
    }


def make_raw_log(block: int, log_index: int = 0, **kwargs: Any) -> RawLog:
    return RawLog.from_rpc(make_rpc_log(block, log_index, **kwargs))


def make_logs(blocks: Iterable[int], per_block: int = 1) -> list[RawLog]:
    """Well-formed logs, ``per_block`` in each of ``blocks``."""
    return [make_raw_log(b, i, value=b + i) for b in blocks for i in range(per_block)]


def engine_config(**overrides: Any) -> EngineConfig:
    """EngineConfig with near-zero delays for tests."""
    values: dict[str, Any] = {
        "chain_id": CHAIN_ID,
        "start_block": 100,
        "max_window": 100,
        "confirmations": 0,
        "poll_interval": 0.01,
        "queue_capacity": 4,
        "decode_workers": 1,
        "max_shrink_attempts": 8,
        "transport_retry": RetryConfig(base_delay=0.001, max_delay=0.005, jitter=False),
        "storage_retry": RetryConfig(
            max_attempts=2, base_delay=0.001, max_delay=0.005, jitter=False
        ),
    }
    values.update(overrides)
    return EngineConfig(**values)


class FakeChainClient:
    """
    In-memory IChainClient.

    Args:
        chain_id: Reported chain id
        tip: Reported latest block
        logs: Logs served by fetch_logs, filtered by block range
        max_range: Windows larger than this raise InvalidRangeError
    """

    def __init__(
        self,
        chain_id: int = CHAIN_ID,
        tip: int = 0,
        logs: Iterable[RawLog] = (),
        max_range: int | None = None,
    ):
        self._chain_id = chain_id
        self.tip = tip
        self.logs = list(logs)
        self.max_range = max_range
        self.fetch_calls: list[tuple[int, int]] = []
        self.tip_failures: list[Exception] = []
        self.fetch_failures: list[Exception] = []
        self.closed = False

    async def chain_id(self) -> int:
        return self._chain_id

    async def latest_block(self) -> int:
        if self.tip_failures:
            raise self.tip_failures.pop(0)
        return self.tip

    async def fetch_logs(self, start: int, end: int) -> list[RawLog]:
        self.fetch_calls.append((start, end))
        if self.fetch_failures:
            raise self.fetch_failures.pop(0)
        if self.max_range is not None and end - start + 1 > self.max_range:
            raise InvalidRangeError(
                f"query exceeds max block range {self.max_range}", method="eth_getLogs"
            )
        return [
            log for log in self.logs if start <= int(log.block_number, 16) <= end
        ]

    async def close(self) -> None:
        self.closed = True


def transport_error(message: str = "connection reset") -> TransportError:
    return TransportError(message, method="eth_blockNumber")


async def run_engine_until(
    engine: Any,
    condition: Callable[[], Awaitable[bool]],
    timeout: float = 5.0,
) -> None:
    """
    Run ``engine`` until ``condition()`` holds, then stop it and wait.

    Raises whatever the engine raised if it failed first.
    """
    task = asyncio.create_task(engine.run())
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    try:
        while not task.done() and not await condition():
            if loop.time() > deadline:
                raise AssertionError("condition not reached before timeout")
            await asyncio.sleep(0.005)
    finally:
        engine.stop()
    await asyncio.wait_for(task, timeout)

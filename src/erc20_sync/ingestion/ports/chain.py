"""Chain access port.

One capability set (chain id, tip, Transfer logs) with one production
adapter; tests substitute in-memory fakes.
"""

from typing import Protocol, runtime_checkable

from erc20_sync.shared.models import RawLog


@runtime_checkable
class IChainClient(Protocol):
    """Port defining the contract for an EVM JSON-RPC logs client.

    Every call is independent, owns no state and may fail transiently with
    TransportError.
    """

    async def chain_id(self) -> int:
        """Return the chain id reported by the endpoint."""
        ...

    async def latest_block(self) -> int:
        """Return the latest block number."""
        ...

    async def fetch_logs(self, start: int, end: int) -> list[RawLog]:
        """Return Transfer logs of the configured token for [start, end] inclusive.

        Raises:
            TransportError: On transport or RPC failure
            InvalidRangeError: If the endpoint rejects the window as too large
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...

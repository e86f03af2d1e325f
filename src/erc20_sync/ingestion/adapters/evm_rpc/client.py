"""
JSON-RPC chain client.

Implements IChainClient over an IHttpClient. One attempt per call: retry and
window-shrinking policy belong to the sync engine.
"""

import itertools
from typing import Any

from erc20_sync.config.value_objects import RpcClientConfig
from erc20_sync.infrastructure.observability import get_ingestion_logger
from erc20_sync.ingestion.adapters.evm_rpc.constants import TRANSFER_TOPIC
from erc20_sync.ingestion.adapters.evm_rpc.error_mapper import JsonRpcErrorMapper
from erc20_sync.ingestion.connectors.aiohttp_client import AiohttpClient
from erc20_sync.ingestion.ports.http import IHttpClient
from erc20_sync.shared.exceptions import TransportError
from erc20_sync.shared.models import BlockRange, RawLog


def parse_quantity(value: Any, method: str) -> int:
    """Parse a JSON-RPC hex quantity ("0x1b4") into an int."""
    if not isinstance(value, str) or not value.startswith("0x"):
        raise TransportError(f"Invalid quantity {value!r} from {method}", method=method)
    try:
        return int(value, 16)
    except ValueError as e:
        raise TransportError(
            f"Invalid quantity {value!r} from {method}", method=method, cause=e
        ) from e


class JsonRpcChainClient:
    """EVM JSON-RPC adapter for chain id, tip and Transfer logs."""

    def __init__(
        self,
        config: RpcClientConfig,
        http_client: IHttpClient | None = None,
        error_mapper: JsonRpcErrorMapper | None = None,
    ):
        """
        Args:
            config: Endpoint URL, token contract and HTTP settings
            http_client: Transport (defaults to AiohttpClient)
            error_mapper: Maps HTTP/RPC failures to sync exceptions
        """
        self.config = config
        self.http_client = http_client or AiohttpClient(config.http_config)
        self.error_mapper = error_mapper or JsonRpcErrorMapper()
        self._ids = itertools.count(1)
        self.log = get_ingestion_logger("json-rpc-client", endpoint=config.url)

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        response = await self.http_client.post(
            self.config.url,
            data=payload,
            headers={"content-type": "application/json"},
        )

        if not response.ok:
            raise self.error_mapper.map_http_error(
                response.status_code, response.body, method
            )

        body = response.body
        if not isinstance(body, dict):
            raise TransportError(
                f"Malformed JSON-RPC response for {method}: {str(body)[:200]}",
                method=method,
            )
        if body.get("error") is not None:
            raise self.error_mapper.map_rpc_error(body["error"], method)
        if "result" not in body:
            raise TransportError(f"JSON-RPC response for {method} has no result", method=method)
        return body["result"]

    async def chain_id(self) -> int:
        result = await self._call("eth_chainId", [])
        return parse_quantity(result, "eth_chainId")

    async def latest_block(self) -> int:
        result = await self._call("eth_blockNumber", [])
        return parse_quantity(result, "eth_blockNumber")

    async def fetch_logs(self, start: int, end: int) -> list[RawLog]:
        """Fetch Transfer logs of the configured token for [start, end] inclusive."""
        block_range = BlockRange(start, end)
        log_filter = {
            "fromBlock": hex(start),
            "toBlock": hex(end),
            "address": self.config.token_address,
            "topics": [TRANSFER_TOPIC],
        }
        try:
            result = await self._call("eth_getLogs", [log_filter])
        except TransportError as e:
            e.block_range = block_range
            raise

        if not isinstance(result, list):
            raise TransportError(
                "eth_getLogs result is not a list",
                method="eth_getLogs",
                block_range=block_range,
            )

        logs = [RawLog.from_rpc(item) for item in result]
        self.log.debug("logs_fetched", start=start, end=end, count=len(logs))
        return logs

    async def close(self) -> None:
        await self.http_client.close()

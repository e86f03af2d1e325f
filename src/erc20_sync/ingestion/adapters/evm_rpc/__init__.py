"""EVM JSON-RPC adapter plugin."""

from .client import JsonRpcChainClient, parse_quantity
from .constants import TRANSFER_TOPIC
from .error_mapper import JsonRpcErrorMapper

__all__ = [
    "JsonRpcChainClient",
    "JsonRpcErrorMapper",
    "TRANSFER_TOPIC",
    "parse_quantity",
]

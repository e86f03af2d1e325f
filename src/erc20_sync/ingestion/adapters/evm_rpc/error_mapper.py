"""
JSON-RPC Error Mapper

Maps HTTP statuses and JSON-RPC error objects to the sync exception types,
with context-rich messages for debugging.
"""

from typing import Any

from erc20_sync.ingestion.adapters.evm_rpc.constants import (
    RANGE_LIMIT_PATTERNS,
    RATE_LIMIT_PATTERNS,
)
from erc20_sync.shared.exceptions import InvalidRangeError, TransportError


class JsonRpcErrorMapper:
    """Maps JSON-RPC transport outcomes to TransportError / InvalidRangeError."""

    @staticmethod
    def extract_error_message(response_body: Any) -> str:
        """Extract error message from response body."""
        if isinstance(response_body, str):
            return response_body
        elif isinstance(response_body, dict):
            error = response_body.get("error")
            if isinstance(error, dict):
                return str(error.get("message") or error)
            return str(error or response_body.get("message") or response_body)
        else:
            return str(response_body)

    @staticmethod
    def is_range_limit(message: str) -> bool:
        """
        Whether an RPC error message means "window too large".

        The error code is not consulted: providers share -32005 between
        oversized queries and request-rate limiting.
        """
        lowered = message.lower()
        if any(pattern in lowered for pattern in RATE_LIMIT_PATTERNS):
            return False
        return any(pattern in lowered for pattern in RANGE_LIMIT_PATTERNS)

    @staticmethod
    def map_http_error(status_code: int, response_body: Any, method: str) -> TransportError:
        """
        Map non-200 HTTP status to a specific exception with context.

        Args:
            status_code: HTTP status code
            response_body: Response body (dict, str, or other)
            method: JSON-RPC method that was called

        Returns:
            InvalidRangeError for 413 (payload too large), TransportError otherwise
        """
        error_msg = JsonRpcErrorMapper.extract_error_message(response_body)

        if status_code == 413:
            return InvalidRangeError(
                f"Response too large for {method}: {error_msg}",
                status_code=status_code,
                method=method,
            )
        elif status_code == 429:
            return TransportError(
                f"Rate limit exceeded for {method}: {error_msg}",
                status_code=status_code,
                method=method,
            )
        elif status_code >= 500:
            return TransportError(
                f"Server error {status_code} for {method}: {error_msg}",
                status_code=status_code,
                method=method,
            )
        else:
            return TransportError(
                f"Unexpected HTTP {status_code} for {method}: {error_msg}",
                status_code=status_code,
                method=method,
            )

    @staticmethod
    def map_rpc_error(error: Any, method: str) -> TransportError:
        """
        Map a JSON-RPC ``error`` member to an exception.

        Args:
            error: The ``error`` object from the JSON-RPC response
            method: JSON-RPC method that was called

        Returns:
            InvalidRangeError when the provider rejects the block window,
            TransportError for every other RPC error
        """
        if isinstance(error, dict):
            code = error.get("code")
            message = str(error.get("message", ""))
            data = error.get("data")
            if data:
                message = f"{message} ({data})"
        else:
            code = None
            message = str(error)

        if method == "eth_getLogs" and JsonRpcErrorMapper.is_range_limit(message):
            return InvalidRangeError(
                f"Block range rejected by endpoint: {message}",
                method=method,
            )
        return TransportError(
            f"RPC error {code} for {method}: {message}",
            method=method,
        )

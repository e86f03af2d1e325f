"""
Sync Exception Hierarchy

Provides specific exception types for each failure class of the transfer
sync, so the engine can decide between retrying, skipping and aborting.

    SyncError
    ├── ConfigurationError          fatal, startup only
    ├── TransportError              transient, retried with backoff
    │   └── InvalidRangeError       window too large, handled by shrinking
    ├── MalformedLogError           single log, skipped and counted
    ├── StorageError                retried a bounded number of times
    │   └── CheckpointConflictError fatal, concurrent writer detected
    └── RangeShrinkExhaustedError   fatal, endpoint rejects every window
"""

from typing import Any


class SyncError(Exception):
    """Base exception for all sync errors.

    Carries the pipeline stage, block range and underlying cause so that a
    fatal error can be diagnosed from the log line alone.
    """

    fatal: bool = False

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        block_range: Any | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.block_range = block_range
        self.cause = cause

    def context(self) -> dict[str, Any]:
        """Structured context for log events."""
        ctx: dict[str, Any] = {"error_type": type(self).__name__}
        if self.stage:
            ctx["stage"] = self.stage
        if self.block_range is not None:
            ctx["block_range"] = str(self.block_range)
        if self.cause is not None:
            ctx["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return ctx

    def __str__(self) -> str:
        parts = [self.message]
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.block_range is not None:
            parts.append(f"range={self.block_range}")
        if self.cause is not None:
            parts.append(f"cause={type(self.cause).__name__}: {self.cause}")
        return " | ".join(parts)


class ConfigurationError(SyncError):
    """Invalid configuration or wrong network (chain id mismatch)."""

    fatal = True


class TransportError(SyncError):
    """Network or JSON-RPC failure talking to the chain endpoint."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        method: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.method = method


class InvalidRangeError(TransportError):
    """Endpoint rejected the requested block window as too large."""

    pass


class MalformedLogError(SyncError):
    """A single raw log could not be decoded as an ERC-20 Transfer."""

    def __init__(
        self,
        reason: str,
        tx_hash: str | None = None,
        log_index: Any | None = None,
        **kwargs: Any,
    ):
        super().__init__(f"Malformed transfer log: {reason}", **kwargs)
        self.reason = reason
        self.tx_hash = tx_hash
        self.log_index = log_index


class StorageError(SyncError):
    """Durable store unavailable or rejected a write."""

    pass


class CheckpointConflictError(StorageError):
    """Stored checkpoint differs from the value this writer last saw."""

    fatal = True

    def __init__(self, chain_id: int, expected: int, actual: int | None, **kwargs: Any):
        super().__init__(
            f"Checkpoint for chain {chain_id} is {actual}, expected {expected}",
            **kwargs,
        )
        self.chain_id = chain_id
        self.expected = expected
        self.actual = actual


class RangeShrinkExhaustedError(SyncError):
    """Endpoint rejected every window size down to the shrink limit."""

    fatal = True

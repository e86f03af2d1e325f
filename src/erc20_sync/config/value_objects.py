"""Configuration value objects for dependency injection.

Instead of injecting the global settings object, inject specific configuration
dataclasses into each component. Enables:
- Easy testing with different configurations
- Clear constructor contracts
- Validation at composition root
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class HttpClientConfig:
    """Configuration for HTTP client."""

    timeout: float = 30.0
    connect_timeout: float = 10.0


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    ``max_attempts=None`` retries until shutdown.
    """

    max_attempts: int | None = None
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: bool = True


@dataclass(frozen=True)
class RpcClientConfig:
    """Configuration for the JSON-RPC chain client."""

    url: str
    token_address: str
    http_config: HttpClientConfig = field(default_factory=HttpClientConfig)


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for the sync engine pipeline."""

    chain_id: int
    start_block: int = 0
    max_window: int = 100
    confirmations: int = 6
    poll_interval: float = 5.0
    queue_capacity: int = 100
    decode_workers: int = 2
    max_shrink_attempts: int = 8
    transport_retry: RetryConfig = field(default_factory=RetryConfig)
    storage_retry: RetryConfig = field(
        default_factory=lambda: RetryConfig(max_attempts=3, max_delay=10.0)
    )

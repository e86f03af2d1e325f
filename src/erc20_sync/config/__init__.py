"""Configuration loading and per-component value objects."""

from .state import (
    ChainConfig,
    ConfigLoader,
    LoggingConfig,
    RpcConfig,
    StorageConfig,
    SyncConfig,
    SyncSettings,
    get_config,
)
from .value_objects import EngineConfig, HttpClientConfig, RetryConfig, RpcClientConfig

__all__ = [
    "ChainConfig",
    "ConfigLoader",
    "EngineConfig",
    "HttpClientConfig",
    "LoggingConfig",
    "RetryConfig",
    "RpcClientConfig",
    "RpcConfig",
    "StorageConfig",
    "SyncConfig",
    "SyncSettings",
    "get_config",
]

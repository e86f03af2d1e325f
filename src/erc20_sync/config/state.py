"""
Unified configuration state for the transfer sync.

Single source of truth for process configuration, combining optional YAML
files with environment overrides, type validation and sensible defaults.
Read once at startup; immutable for the process lifetime.
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from erc20_sync.config.value_objects import (
    EngineConfig,
    HttpClientConfig,
    RetryConfig,
    RpcClientConfig,
)
from erc20_sync.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "https://eth.llamarpc.com"
DEFAULT_DB_PATH = "indexer.db"


# =============================================================================
# PYDANTIC MODELS - Type-Safe Configuration
# =============================================================================


class RpcConfig(BaseModel):
    """JSON-RPC endpoint configuration."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(default=DEFAULT_RPC_URL)
    timeout: float = Field(default=30.0, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if v.startswith("http://") or v.startswith("https://"):
            return v
        raise ValueError("RPC URL must start with http:// or https://")


class ChainConfig(BaseModel):
    """Network identity and the token contract being synced."""

    model_config = ConfigDict(frozen=True)

    chain_id: int = Field(ge=0)
    token_address: str

    @field_validator("token_address")
    @classmethod
    def validate_token_address(cls, v: str) -> str:
        if not is_address(v):
            raise ValueError(f"Invalid token contract address: {v}")
        return to_checksum_address(v)


class StorageConfig(BaseModel):
    """Durable store location."""

    model_config = ConfigDict(frozen=True)

    db_path: str = Field(default=DEFAULT_DB_PATH, min_length=1)


class SyncConfig(BaseModel):
    """Sync loop tuning."""

    model_config = ConfigDict(frozen=True)

    start_block: int = Field(default=0, ge=0)
    max_window: int = Field(default=100, ge=1)
    confirmations: int = Field(default=6, ge=0)
    poll_interval: float = Field(default=5.0, gt=0)
    queue_capacity: int = Field(default=100, ge=1)
    decode_workers: int = Field(default=2, ge=1, le=64)
    max_shrink_attempts: int = Field(default=8, ge=1)
    storage_max_retries: int = Field(default=3, ge=0)
    backoff_base: float = Field(default=1.0, gt=0)
    backoff_max: float = Field(default=30.0, gt=0)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)


class SyncSettings(BaseModel):
    """
    Root configuration state - single source of truth for all app config.
    """

    model_config = ConfigDict(frozen=True)

    rpc: RpcConfig = Field(default_factory=RpcConfig)
    chain: ChainConfig
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    env: str = Field(default="dev")

    def rpc_client_config(self) -> RpcClientConfig:
        return RpcClientConfig(
            url=self.rpc.url,
            token_address=self.chain.token_address,
            http_config=HttpClientConfig(
                timeout=self.rpc.timeout,
                connect_timeout=self.rpc.connect_timeout,
            ),
        )

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            chain_id=self.chain.chain_id,
            start_block=self.sync.start_block,
            max_window=self.sync.max_window,
            confirmations=self.sync.confirmations,
            poll_interval=self.sync.poll_interval,
            queue_capacity=self.sync.queue_capacity,
            decode_workers=self.sync.decode_workers,
            max_shrink_attempts=self.sync.max_shrink_attempts,
            transport_retry=RetryConfig(
                max_attempts=None,
                base_delay=self.sync.backoff_base,
                max_delay=self.sync.backoff_max,
            ),
            storage_retry=RetryConfig(
                max_attempts=self.sync.storage_max_retries,
                base_delay=self.sync.backoff_base,
                max_delay=self.sync.backoff_max,
            ),
        )


# =============================================================================
# CONFIG LOADER - Clean, Validated Loading
# =============================================================================

# Environment variable -> (section, field)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "RPC_URL": ("rpc", "url"),
    "RPC_TIMEOUT": ("rpc", "timeout"),
    "CHAIN_ID": ("chain", "chain_id"),
    "TOKEN_ADDRESS": ("chain", "token_address"),
    "START_BLOCK": ("sync", "start_block"),
    "DB_PATH": ("storage", "db_path"),
    "RANGE_SIZE": ("sync", "max_window"),
    "CONFIRMATIONS": ("sync", "confirmations"),
    "POLL_INTERVAL": ("sync", "poll_interval"),
    "QUEUE_CAPACITY": ("sync", "queue_capacity"),
    "DECODE_WORKERS": ("sync", "decode_workers"),
    "MAX_SHRINK_ATTEMPTS": ("sync", "max_shrink_attempts"),
    "STORAGE_MAX_RETRIES": ("sync", "storage_max_retries"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_JSON": ("logging", "json_logs"),
}


class ConfigLoader:
    """
    Load and validate configuration.

    Merges:
      1. Global defaults (model defaults)
      2. sync.yaml from config_dir (optional)
      3. env/{env}.yaml from config_dir (optional)
      4. Environment variable overrides
    """

    def __init__(
        self,
        config_dir: str | Path = "./config",
        environ: Mapping[str, str] | None = None,
    ):
        self.config_dir = Path(config_dir)
        self.environ = environ if environ is not None else os.environ
        self.env = self.environ.get("ERC20_SYNC_ENV", "dev")

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        """Load YAML file; missing files contribute nothing."""
        if not path.exists():
            logger.debug(f"Config file not found (using defaults): {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load {path}", stage="config", cause=e
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return data

    def _apply_env_overrides(self, config: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variable overrides to config."""
        for var, (section, key) in ENV_OVERRIDES.items():
            value = self.environ.get(var)
            if value is None or value == "":
                continue
            config.setdefault(section, {})[key] = value
        return config

    def _merge_dicts(self, base: dict, override: dict) -> dict:
        """Deep merge override into base dict."""
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    def load(self) -> SyncSettings:
        """
        Load complete configuration state.

        Returns:
            SyncSettings: Validated configuration object

        Raises:
            ConfigurationError: If configuration is missing or invalid
        """
        logger.info(f"Loading configuration from {self.config_dir} (env: {self.env})")

        config: dict[str, Any] = {}
        config = self._merge_dicts(config, self._load_yaml(self.config_dir / "sync.yaml"))
        config = self._merge_dicts(
            config, self._load_yaml(self.config_dir / "env" / f"{self.env}.yaml")
        )
        config = self._apply_env_overrides(config)

        if "chain" not in config or "chain_id" not in config["chain"]:
            raise ConfigurationError("CHAIN_ID is required", stage="config")
        if "token_address" not in config["chain"]:
            raise ConfigurationError("TOKEN_ADDRESS is required", stage="config")

        try:
            state = SyncSettings(env=self.env, **config)
        except ValidationError as e:
            raise ConfigurationError(
                "Configuration validation failed", stage="config", cause=e
            ) from e

        logger.info(
            f"Configuration loaded: chain_id={state.chain.chain_id}, "
            f"token={state.chain.token_address}, window={state.sync.max_window}, "
            f"confirmations={state.sync.confirmations}"
        )
        return state


def get_config(
    config_dir: str | None = None, environ: Mapping[str, str] | None = None
) -> SyncSettings:
    """
    Load and return the configuration state.

    Args:
        config_dir: Override config directory. Defaults to $ERC20_SYNC_CONFIG_DIR or ./config

    Returns:
        SyncSettings: Validated configuration object
    """
    env = environ if environ is not None else os.environ
    if config_dir is None:
        config_dir = env.get("ERC20_SYNC_CONFIG_DIR", "./config")
    return ConfigLoader(config_dir=config_dir, environ=env).load()

"""
Structured logging for erc20-sync.

Every sync stage logs through structlog with the same base keys, so a
single chain's progress can be followed across decoders, repositories
and the engine:

    {"app": "erc20-sync", "layer": "storage", "component": "transfer-repository",
     "module": "storage", "chain_id": 1, "event": "batch_inserted", ...}

Layers:
    - infrastructure: config loading, logging setup
    - ingestion: JSON-RPC client and HTTP transport
    - processing: Transfer log decoding
    - storage: SQLite database, checkpoint and transfer repositories
    - orchestration: sync engine, range scheduling, run reports
"""

import logging
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict

APP_NAME = "erc20-sync"

Layer = Literal["infrastructure", "ingestion", "processing", "storage", "orchestration"]

# stdlib level name -> severity field understood by hosted log collectors
_SEVERITIES = {
    "debug": "DEBUG",
    "info": "INFO",
    "warning": "WARNING",
    "error": "ERROR",
    "critical": "CRITICAL",
}


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp every entry with the application name."""
    event_dict["app"] = APP_NAME
    return event_dict


def add_severity_level(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    level = event_dict.get("level")
    if level:
        event_dict["severity"] = _SEVERITIES.get(level, "INFO")
    return event_dict


def _renderer(json_logs: bool) -> Any:
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.plain_traceback,
    )


def setup_logging(
    level: str = "INFO",
    json_logs: bool = True,
    include_timestamp: bool = True,
) -> None:
    """
    Configure stdlib logging and structlog for the process.

    Safe to call more than once: the entry point configures a bootstrap
    logger before the config is read and reconfigures afterwards, and the
    second call replaces the root handler and level.

    Args:
        level: Level name; unknown names fall back to INFO
        json_logs: JSON lines when True, colored console output otherwise
        include_timestamp: Prepend an ISO timestamp to each entry
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )

    processors: list[Any] = []
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_log_level,
        add_severity_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _renderer(json_logs),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(
    name: str | None = None,
    layer: Layer | None = None,
    component: str | None = None,
    **initial_context: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Return a structlog logger bound to its layer and component.

    Keys left as None are not bound. Extra keyword arguments are bound as-is.

    Usage:
        >>> log = get_logger(__name__, layer="ingestion", component="json-rpc-client", chain_id=1)
        >>> log.info("logs_fetched", count=42)
    """
    context = {
        key: value
        for key, value in (("layer", layer), ("component", component), ("module", name))
        if value
    }
    context.update(initial_context)

    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger


# ----------------------------------------------------------------------------
# Per-layer shortcuts
# ----------------------------------------------------------------------------


def get_infrastructure_logger(component: str, **context: Any) -> structlog.stdlib.BoundLogger:
    return get_logger("infrastructure", layer="infrastructure", component=component, **context)


def get_ingestion_logger(
    component: str,
    chain_id: int | None = None,
    **context: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Logger for chain access. ``chain_id`` is bound only when given, since the
    client logs before it has asked the endpoint which chain it serves.
    """
    if chain_id is not None:
        context["chain_id"] = chain_id
    return get_logger("ingestion", layer="ingestion", component=component, **context)


def get_processing_logger(component: str, **context: Any) -> structlog.stdlib.BoundLogger:
    return get_logger("processing", layer="processing", component=component, **context)


def get_storage_logger(component: str, **context: Any) -> structlog.stdlib.BoundLogger:
    """
    Usage:
        >>> log = get_storage_logger("transfer-repository", table="transfers")
        >>> log.info("batch_inserted", records=1000, inserted=998)
    """
    return get_logger("storage", layer="storage", component=component, **context)


def get_orchestration_logger(
    component: str = "sync-engine",
    **context: Any,
) -> structlog.stdlib.BoundLogger:
    return get_logger("orchestration", layer="orchestration", component=component, **context)


def get_database_logger(**context: Any) -> structlog.stdlib.BoundLogger:
    """Storage-layer logger for the SQLite connection itself."""
    return get_storage_logger("sqlite-database", **context)

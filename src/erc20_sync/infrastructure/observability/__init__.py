"""
Observability for the sync: structured logs for every stage of the
fetch, decode, persist and advance pipeline, so a stalled or failing sync can
be diagnosed from its logs without reproducing it.
"""

from .logging import (
    # Convenience aliases
    get_database_logger,
    # Layer-specific logger factories
    get_infrastructure_logger,
    get_ingestion_logger,
    # Base logger factory
    get_logger,
    get_orchestration_logger,
    get_processing_logger,
    get_storage_logger,
    # Setup
    setup_logging,
)

__all__ = [
    # Setup
    "setup_logging",
    # Base
    "get_logger",
    # Layer-specific
    "get_infrastructure_logger",
    "get_ingestion_logger",
    "get_processing_logger",
    "get_storage_logger",
    "get_orchestration_logger",
    # Aliases
    "get_database_logger",
]

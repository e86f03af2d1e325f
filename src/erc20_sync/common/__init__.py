"""
Common Layer - Shared Utilities
===============================

Helpers used across layers (ingestion, storage, orchestration).
"""

from .retry_handler import RetryHandler

__all__ = ["RetryHandler"]

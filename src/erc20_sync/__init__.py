"""Incremental ERC-20 Transfer log sync into a durable SQLite store."""

__version__ = "0.1.0"

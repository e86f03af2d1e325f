"""Ingestion layer: chain access over JSON-RPC."""

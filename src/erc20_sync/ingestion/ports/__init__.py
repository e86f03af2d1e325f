"""Ports for chain access."""

from .chain import IChainClient  # noqa: F401
from .http import HttpResponse, IHttpClient  # noqa: F401

__all__ = [
    "IChainClient",
    "IHttpClient",
    "HttpResponse",
]

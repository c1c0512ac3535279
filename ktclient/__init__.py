"""
kt-client: TSV-RPC Key-Value Client

A blocking client for Kyoto Tycoon style key-value servers, speaking the
tab-separated RPC protocol over HTTP with automatic endpoint failover.
"""

from .client import KyotoClient
from .errors import (
    ConfigurationError,
    KyotoError,
    NoHealthyEndpoint,
    RemoteError,
    TransportError,
)
from .protocol.messages import ColumnEncoding, Endpoint
from .registry import ClientRegistry

__version__ = "0.5.0"

__all__ = [
    "KyotoClient",
    "ClientRegistry",
    "ColumnEncoding",
    "Endpoint",
    "KyotoError",
    "NoHealthyEndpoint",
    "RemoteError",
    "ConfigurationError",
    "TransportError",
]

"""Protocol module for kt-client."""

from .codec import WireCodec, bulk_key, split_bulk
from .messages import ColumnEncoding, Endpoint, RpcResponse

__all__ = [
    "ColumnEncoding",
    "Endpoint",
    "RpcResponse",
    "WireCodec",
    "bulk_key",
    "split_bulk",
]

"""
Protocol Message Definitions

This module defines the data structures exchanged with a TSV-RPC server:
endpoints, column encodings and raw responses.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from ..config.settings import settings
from ..errors import ConfigurationError

# Status codes that are valid outcomes of a call
STATUS_OK = 200
STATUS_LOGICAL_MISS = 450  # e.g. cas mismatch, missing key

# Reserved field names
DB_FIELD = "DB"
NUM_FIELD = "num"


class ColumnEncoding(Enum):
    """Escaping applied to each field of a TSV-RPC request."""
    URL = "U"
    BASE64 = "B"

    @classmethod
    def parse(cls, value: Union["ColumnEncoding", str]) -> "ColumnEncoding":
        """
        Resolve an encoding from an enum member, a wire tag or a name.

        Examples:
            >>> ColumnEncoding.parse("b")
            <ColumnEncoding.BASE64: 'B'>
            >>> ColumnEncoding.parse("url")
            <ColumnEncoding.URL: 'U'>
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            tag = value.strip().upper()
            for member in cls:
                if tag in (member.value, member.name):
                    return member
        raise ConfigurationError(f"Unknown colenc '{value}'")


@dataclass(frozen=True)
class Endpoint:
    """
    A candidate server address.

    Attributes:
        host: Server host name or address
        port: Server port number
    """
    host: str
    port: int = settings.PORT

    @classmethod
    def parse(cls, address: Union["Endpoint", tuple, str]) -> "Endpoint":
        """
        Build an Endpoint from "host:port", "host", (host, port) or an Endpoint.

        Raises:
            ConfigurationError: If the address is malformed
        """
        if isinstance(address, cls):
            return address
        if isinstance(address, tuple):
            if len(address) != 2:
                raise ConfigurationError(f"Invalid server address: {address!r}")
            host, port = address
        elif isinstance(address, str):
            host, sep, port = address.strip().rpartition(":")
            if not sep:
                host, port = port, settings.PORT
        else:
            raise ConfigurationError(f"Invalid server address: {address!r}")

        try:
            port = int(port)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid port in server address: {address!r}")
        if not host or not 0 < port < 65536:
            raise ConfigurationError(f"Invalid server address: {address!r}")
        return cls(host=host, port=port)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class RpcResponse:
    """
    A response that the dispatcher accepted as a valid outcome.

    Attributes:
        status: 200 (success) or 450 (logical miss)
        body: Raw response body, URL-escaped TSV
    """
    status: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def logical_miss(self) -> bool:
        return self.status == STATUS_LOGICAL_MISS

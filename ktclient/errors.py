"""
Error types raised by kt-client.

All errors derive from KyotoError so callers can catch everything the
client raises with a single except clause.
"""

from typing import Union


class KyotoError(Exception):
    """Base class for every kt-client error."""


class ConfigurationError(KyotoError):
    """Invalid client configuration (encoding, serializer, address...)."""


class NoHealthyEndpoint(KyotoError):
    """No endpoint in the pool answered a health check."""


class TransportError(KyotoError):
    """The connection to the active endpoint failed during a request."""


class RemoteError(KyotoError):
    """
    The server answered with a status other than 200 or 450.

    Attributes:
        status: HTTP status code returned by the server
        body: Raw response body (the server's error detail)
    """

    def __init__(self, status: int, body: Union[bytes, str]):
        self.status = status
        self.body = body
        if isinstance(body, bytes):
            detail = body.decode("utf-8", errors="replace")
        else:
            detail = body
        super().__init__(detail.strip())


class RegistryError(KyotoError):
    """Base class for ClientRegistry errors."""


class DuplicateClientError(RegistryError):
    """A configuration with this name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"'{name}' is registered")


class UnknownClientError(RegistryError):
    """No configuration is registered under this name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"undefined configure: '{name}'")

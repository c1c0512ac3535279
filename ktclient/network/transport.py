"""
Transport Module

A transport performs one request/response exchange with a single endpoint.
The dispatcher never talks to sockets directly; it goes through the
Transport contract so that tests (and alternative stacks) can plug in.

Contract:
    open()                         -> establish the connection
    send(path, body, encoding)     -> (status_code, body_bytes)
    close()                        -> release the connection

Connection failures must raise (TransportError), never return a sentinel.
"""

import logging
from typing import Optional, Tuple

import httpx

from ..config.settings import settings
from ..errors import TransportError
from ..protocol.messages import ColumnEncoding, Endpoint

logger = logging.getLogger(__name__)

CONTENT_TYPE = "text/tab-separated-values"


class Transport:
    """Base class for transports bound to one endpoint."""

    def __init__(self, endpoint: Endpoint, timeout: float = None):
        self.endpoint = endpoint
        self.timeout = timeout if timeout is not None else settings.TIMEOUT

    def open(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def send(self, path: str, body: str, encoding: ColumnEncoding) -> Tuple[int, bytes]:
        raise NotImplementedError

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class HttpTransport(Transport):
    """
    TSV-RPC over HTTP/1.1 using a keep-alive httpx client.

    Every call is a POST of the encoded body to the RPC path, with the
    column encoding announced in the Content-Type header.
    """

    def __init__(
            self,
            endpoint: Endpoint,
            timeout: float = None,
            http_transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(endpoint, timeout)
        self._http_transport = http_transport
        self._client: Optional[httpx.Client] = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def open(self) -> None:
        if self._client is None:
            logger.debug(f"Opening connection to {self.endpoint}")
            self._client = httpx.Client(
                base_url=self.endpoint.base_url,
                timeout=self.timeout,
                transport=self._http_transport,
                trust_env=False,  # servers are addressed directly, never via proxy
            )

    def close(self) -> None:
        if self._client is not None:
            logger.debug(f"Closing connection to {self.endpoint}")
            self._client.close()
            self._client = None

    def send(self, path: str, body: str, encoding: ColumnEncoding) -> Tuple[int, bytes]:
        """
        POST one TSV-RPC request.

        Args:
            path: RPC path, e.g. "/rpc/get"
            body: Encoded TSV body
            encoding: Column encoding used to build the body

        Returns:
            (status_code, raw response body)

        Raises:
            TransportError: On connection failure or timeout
        """
        self.open()
        headers = {"Content-Type": f"{CONTENT_TYPE}; colenc={encoding.value}"}
        try:
            response = self._client.post(path, content=body.encode("utf-8"), headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"{self.endpoint}{path}: {e}") from e
        return response.status_code, response.content

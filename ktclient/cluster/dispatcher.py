"""
Request Dispatcher Module

Performs one logical TSV-RPC call: select the endpoint, reuse or open the
cached connection, encode and send the request, validate the status.

Status handling:
    200  success        -> RpcResponse
    450  logical miss   -> RpcResponse (callers branch on .status)
    else remote error   -> RemoteError(status, body)
"""

import logging
from typing import Mapping, Optional, Union

from ..errors import NoHealthyEndpoint, RemoteError
from ..network.transport import Transport
from ..protocol.codec import FieldValue, WireCodec
from ..protocol.messages import (
    DB_FIELD,
    STATUS_LOGICAL_MISS,
    STATUS_OK,
    ColumnEncoding,
    Endpoint,
    RpcResponse,
)
from .selector import EndpointSelector, TransportFactory

logger = logging.getLogger(__name__)

ACCEPTED_STATUSES = (STATUS_OK, STATUS_LOGICAL_MISS)


class RequestDispatcher:
    """
    Sends TSV-RPC requests through the currently active endpoint.

    The dispatcher owns the cached connection. It subscribes to the
    selector so the connection is closed and dropped the moment the active
    endpoint changes; the next call then opens a fresh one.

    Attributes:
        selector: EndpointSelector deciding where requests go
        db: Logical database injected as the DB field, if set
        timeout: Timeout for ordinary requests, in seconds
    """

    def __init__(
            self,
            selector: EndpointSelector,
            transport_factory: TransportFactory,
            encoding: Union[ColumnEncoding, str] = ColumnEncoding.BASE64,
            timeout: float = None,
            db: Optional[str] = None,
            codec: WireCodec = None,
            log: logging.Logger = None,
    ):
        self.selector = selector
        self.transport_factory = transport_factory
        self.encoding = encoding
        self.timeout = timeout
        self.db = db
        self.codec = codec if codec is not None else WireCodec()
        self.log = log if log is not None else logger

        self._connection: Optional[Transport] = None
        self.selector.on_change(self._on_endpoint_change)

    @property
    def encoding(self) -> ColumnEncoding:
        return self._encoding

    @encoding.setter
    def encoding(self, value: Union[ColumnEncoding, str]) -> None:
        # Validated on assignment
        self._encoding = ColumnEncoding.parse(value)

    @property
    def connection(self) -> Optional[Transport]:
        """The cached connection, or None when not yet opened."""
        return self._connection

    def connect(self) -> Transport:
        """Select the active endpoint and return its (possibly new) connection."""
        try:
            endpoint = self.selector.select_active()
        except NoHealthyEndpoint:
            # The pool is empty; nothing can reuse the old connection
            self.close()
            raise
        if self._connection is None:
            connection = self.transport_factory(endpoint, self.timeout)
            connection.open()
            self._connection = connection
        return self._connection

    def invoke(
            self,
            path: str,
            params: Optional[Mapping[str, FieldValue]] = None,
    ) -> RpcResponse:
        """
        Perform one RPC call.

        Args:
            path: RPC path, e.g. "/rpc/set"
            params: Request fields; None values are not sent

        Returns:
            RpcResponse for status 200 or 450

        Raises:
            NoHealthyEndpoint: If no endpoint could be selected
            RemoteError: If the server answered with any other status
            TransportError: If the connection failed
        """
        if self.db is not None:
            params = dict(params or {})
            params[DB_FIELD] = self.db

        body = self.codec.encode(params, self.encoding)
        connection = self.connect()
        status, raw = connection.send(path, body, self.encoding)

        if status not in ACCEPTED_STATUSES:
            raise RemoteError(status, raw)

        response = RpcResponse(status=status, body=raw)
        self.log.info(f"{path}: {status} with query parameters {params!r}")
        return response

    def close(self) -> None:
        """Close and discard the cached connection."""
        connection, self._connection = self._connection, None
        if connection is not None:
            connection.close()

    def _on_endpoint_change(self, previous: Optional[Endpoint], current: Endpoint) -> None:
        if self._connection is not None:
            self.log.debug(f"dropping connection to {previous}")
        self.close()

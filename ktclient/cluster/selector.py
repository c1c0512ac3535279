"""
Endpoint Selection Module

Keeps the pool of candidate endpoints and decides which single endpoint
serves the next request.

Selection policy:
- One candidate: used as-is, never probed (assumed managed externally)
- Several candidates: probed in order; the first healthy one wins and the
  pool collapses to that endpoint alone
- No healthy candidate: the pool ends empty and NoHealthyEndpoint is raised

Listeners registered with on_change() are notified whenever the selected
endpoint differs from the previously selected one.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Iterable, List, Optional

from ..config.settings import settings
from ..errors import NoHealthyEndpoint
from ..network.transport import HttpTransport, Transport
from ..protocol.codec import WireCodec
from ..protocol.messages import ColumnEncoding, Endpoint

logger = logging.getLogger(__name__)

TransportFactory = Callable[[Endpoint, float], Transport]

PING_PATH = "/rpc/echo"
PING_PARAMS = {"0": "0"}


def _echo(transport: Transport) -> int:
    body = WireCodec().encode(PING_PARAMS, ColumnEncoding.URL)
    with transport:
        status, _ = transport.send(PING_PATH, body, ColumnEncoding.URL)
    return status


def probe(
        endpoint: Endpoint,
        timeout: float,
        transport_factory: TransportFactory = HttpTransport,
        log: logging.Logger = logger,
) -> bool:
    """
    Health-check one endpoint with an echo round trip.

    Any failure (timeout, refused connection, unexpected exception) is a
    negative result. Any completed exchange is a positive one, whatever
    the status or payload.

    The exchange runs on a worker thread so that `timeout` bounds the
    whole check, name resolution and a slowly trickled response included.
    The transport's own timeout only bounds each connect, read or write.

    Args:
        endpoint: Candidate to check
        timeout: Bound for the whole exchange, in seconds
        transport_factory: Builds a fresh transport for the probe
        log: Logger receiving the probe trace

    Returns:
        True if the endpoint answered in time
    """
    transport = None
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kt-connect-check")
    try:
        transport = transport_factory(endpoint, timeout)
        log.debug(f"connect check {endpoint}")
        status = executor.submit(_echo, transport).result(timeout=timeout)
        log.debug(f"connect check {endpoint}: {status}")
        return True
    except FutureTimeoutError:
        log.warning(f"connect failed at {endpoint}: no answer within {timeout}s")
        return False
    except Exception as e:
        log.warning(f"connect failed at {endpoint}: {e}")
        return False
    finally:
        # Closing the transport aborts an exchange still running on the worker
        if transport is not None:
            try:
                transport.close()
            except Exception as e:
                log.debug(f"error closing probe connection to {endpoint}: {e}")
        executor.shutdown(wait=False)


class EndpointPool:
    """
    Ordered candidate endpoints; the first one is the current endpoint.

    Attributes:
        endpoints: Remaining candidates, in priority order
    """

    def __init__(self, endpoints: Iterable[Endpoint] = ()):
        self.endpoints: List[Endpoint] = list(endpoints)

    @property
    def current(self) -> Optional[Endpoint]:
        return self.endpoints[0] if self.endpoints else None

    def collapse(self, endpoint: Endpoint) -> None:
        """Keep only the given endpoint."""
        self.endpoints = [endpoint]

    def clear(self) -> None:
        self.endpoints = []

    def __len__(self) -> int:
        return len(self.endpoints)

    def __iter__(self):
        return iter(list(self.endpoints))

    def __repr__(self) -> str:
        return f"EndpointPool({[str(e) for e in self.endpoints]})"


class EndpointSelector:
    """
    Chooses the active endpoint, failing over between candidates.

    Usage:
        selector = EndpointSelector([Endpoint("kt1", 1978), Endpoint("kt2", 1978)])
        selector.on_change(lambda old, new: print(f"{old} -> {new}"))
        endpoint = selector.select_active()
    """

    def __init__(
            self,
            endpoints: Iterable[Endpoint],
            connect_timeout: float = None,
            transport_factory: TransportFactory = HttpTransport,
            log: logging.Logger = None,
    ):
        """
        Initialize the selector.

        Args:
            endpoints: Candidate endpoints in priority order
            connect_timeout: Probe timeout (default from settings)
            transport_factory: Builds transports for probes
            log: Logger (default: this module's logger)
        """
        self.pool = EndpointPool(endpoints)
        self.connect_timeout = (
            connect_timeout if connect_timeout is not None else settings.CONNECT_TIMEOUT
        )
        self.transport_factory = transport_factory
        self.log = log if log is not None else logger

        self._active: Optional[Endpoint] = self.pool.current
        self._listeners: List[Callable[[Optional[Endpoint], Endpoint], None]] = []

    @property
    def endpoints(self) -> List[Endpoint]:
        return list(self.pool.endpoints)

    @property
    def active(self) -> Optional[Endpoint]:
        """The endpoint returned by the last successful selection."""
        return self._active

    def replace(self, endpoints: Iterable[Endpoint]) -> None:
        """Install a new candidate list; the next selection re-runs the policy."""
        self.pool = EndpointPool(endpoints)

    def on_change(self, listener: Callable[[Optional[Endpoint], Endpoint], None]) -> None:
        """Register a callback(old, new) fired when the selection changes."""
        self._listeners.append(listener)

    def select_active(self) -> Endpoint:
        """
        Determine the endpoint for the next operation.

        Returns:
            The active endpoint

        Raises:
            NoHealthyEndpoint: If the pool is (or ends up) empty
        """
        if len(self.pool) > 1:
            for candidate in self.pool:
                if probe(candidate, self.connect_timeout, self.transport_factory, self.log):
                    self.pool.collapse(candidate)
                    break
            else:
                self.pool.clear()

        if not self.pool:
            msg = "alive server does not exist"
            self.log.critical(msg)
            raise NoHealthyEndpoint(msg)

        selected = self.pool.current
        if selected != self._active:
            previous, self._active = self._active, selected
            self.log.info(f"active endpoint changed: {previous} -> {selected}")
            for listener in self._listeners:
                listener(previous, selected)
        return selected

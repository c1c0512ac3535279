"""
Key-Value Client Module

KyotoClient is the public face of kt-client. Each verb maps to one
TSV-RPC path; the RequestDispatcher does the transport work and the
serializer converts application values.

Usage:
    with KyotoClient("127.0.0.1", 1978) as kt:
        kt.set("user:1", "alice")
        kt["user:1"]                 # 'alice'
        kt.increment("hits")         # 1
        kt.cas("user:1", "alice", "bob")

Failover:
    kt = KyotoClient(servers=["kt1:1978", "kt2:1978"])
    # the first server answering a health check serves the requests
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .cluster.dispatcher import RequestDispatcher
from .cluster.selector import EndpointSelector, TransportFactory
from .config.settings import settings
from .network.transport import HttpTransport
from .protocol.codec import WireCodec, bulk_key, split_bulk
from .protocol.messages import NUM_FIELD, ColumnEncoding, Endpoint, RpcResponse
from .serializer import Serializer, get_serializer

_default_logger = logging.getLogger(__name__)

Address = Union[Endpoint, tuple, str]


def _flatten(keys: Iterable[Any]) -> List[Any]:
    flat = []
    for key in keys:
        if isinstance(key, (list, tuple, set)):
            flat.extend(_flatten(key))
        else:
            flat.append(key)
    return flat


class KyotoClient:
    """
    Blocking TSV-RPC client with endpoint failover.

    One instance is meant for one thread of use; share nothing between
    threads and create one client per worker instead.

    Attributes:
        codec: WireCodec used to read response bodies
        dispatcher: RequestDispatcher performing the calls
        selector: EndpointSelector holding the candidate servers
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            *,
            servers: Optional[Iterable[Address]] = None,
            db: Optional[str] = None,
            colenc: Union[ColumnEncoding, str] = None,
            connect_timeout: float = None,
            timeout: float = None,
            serializer: Union[str, Serializer] = None,
            logger: logging.Logger = None,
            transport_factory: TransportFactory = HttpTransport,
    ):
        """
        Initialize the client.

        Args:
            host: Server host (default from settings), ignored if servers given
            port: Server port (default from settings), ignored if servers given
            servers: Candidate endpoints for failover, in priority order
            db: Logical database name sent with every request
            colenc: Request column encoding, "B" (default) or "U"
            connect_timeout: Health-check probe timeout in seconds
            timeout: Timeout for ordinary requests in seconds
            serializer: Value serializer name or instance
            logger: Logger for call records and failover events
            transport_factory: Callable(endpoint, timeout) -> Transport
        """
        if servers is None:
            servers = [(
                host if host is not None else settings.HOST,
                port if port is not None else settings.PORT,
            )]

        self._logger = logger if logger is not None else _default_logger
        self.codec = WireCodec()
        self.selector = EndpointSelector(
            [Endpoint.parse(s) for s in servers],
            connect_timeout=connect_timeout,
            transport_factory=transport_factory,
            log=self._logger,
        )
        self.dispatcher = RequestDispatcher(
            self.selector,
            transport_factory,
            encoding=colenc if colenc is not None else settings.COLENC,
            timeout=timeout,
            db=db,
            codec=self.codec,
            log=self._logger,
        )
        self.serializer = serializer if serializer is not None else settings.SERIALIZER

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def servers(self) -> List[Endpoint]:
        return self.selector.endpoints

    @servers.setter
    def servers(self, servers: Iterable[Address]) -> None:
        self.selector.replace([Endpoint.parse(s) for s in servers])

    @property
    def db(self) -> Optional[str]:
        return self.dispatcher.db

    @db.setter
    def db(self, db: Optional[str]) -> None:
        self.dispatcher.db = db

    @property
    def colenc(self) -> ColumnEncoding:
        return self.dispatcher.encoding

    @colenc.setter
    def colenc(self, colenc: Union[ColumnEncoding, str]) -> None:
        self.dispatcher.encoding = colenc

    @property
    def connect_timeout(self) -> float:
        return self.selector.connect_timeout

    @connect_timeout.setter
    def connect_timeout(self, seconds: float) -> None:
        self.selector.connect_timeout = seconds

    @property
    def serializer(self) -> Serializer:
        return self._serializer

    @serializer.setter
    def serializer(self, serializer: Union[str, Serializer]) -> None:
        self._serializer = get_serializer(serializer)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @logger.setter
    def logger(self, log: logging.Logger) -> None:
        self._logger = log
        self.selector.log = log
        self.dispatcher.log = log

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def request(self, path: str, params: Optional[Mapping[str, Any]] = None) -> RpcResponse:
        """Low-level call; see RequestDispatcher.invoke."""
        return self.dispatcher.invoke(path, params)

    def _record(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Optional[str]]:
        return self.codec.decode(self.request(path, params).body)

    def start(self) -> None:
        """Select the active server and open the connection eagerly."""
        self.dispatcher.connect()

    def finish(self) -> None:
        """Close the cached connection."""
        self.dispatcher.close()

    close = finish

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()

    # ------------------------------------------------------------------
    # Single record operations
    # ------------------------------------------------------------------

    def get(self, key: str) -> Any:
        """Return the value of a key, or None if it does not exist."""
        record = self._record("/rpc/get", {"key": key})
        return self.serializer.decode(record.get("value"))

    def set(self, key: str, value: Any, xt: Optional[int] = None) -> Dict[str, Optional[str]]:
        """Store a value, overwriting any existing one. xt is the expiration in seconds."""
        return self._record(
            "/rpc/set", {"key": key, "value": self.serializer.encode(value), "xt": xt}
        )

    def add(self, key: str, value: Any, xt: Optional[int] = None) -> bool:
        """Store a value only if the key is absent. False if it already exists."""
        res = self.request(
            "/rpc/add", {"key": key, "value": self.serializer.encode(value), "xt": xt}
        )
        return res.ok

    def replace(self, key: str, value: Any, xt: Optional[int] = None) -> bool:
        """Store a value only if the key exists. False if it is missing."""
        res = self.request(
            "/rpc/replace", {"key": key, "value": self.serializer.encode(value), "xt": xt}
        )
        return res.ok

    def append(self, key: str, value: Any, xt: Optional[int] = None) -> None:
        self.request(
            "/rpc/append", {"key": key, "value": self.serializer.encode(value), "xt": xt}
        )

    def cas(self, key: str, oldval: Any, newval: Any, xt: Optional[int] = None) -> bool:
        """
        Compare and swap.

        None for oldval means "the key must not exist"; None for newval
        removes the record.

        Returns:
            True if swapped, False on mismatch (status 450)
        """
        oval = self.serializer.encode(oldval) if oldval is not None else None
        nval = self.serializer.encode(newval) if newval is not None else None
        res = self.request("/rpc/cas", {"key": key, "oval": oval, "nval": nval, "xt": xt})
        return res.ok

    def increment(self, key: str, num: int = 1, xt: Optional[int] = None) -> int:
        record = self._record("/rpc/increment", {"key": key, "num": num, "xt": xt})
        return int(record[NUM_FIELD])

    incr = increment

    def decrement(self, key: str, num: int = 1, xt: Optional[int] = None) -> int:
        return self.increment(key, -num, xt)

    decr = decrement

    def increment_double(self, key: str, num: float, xt: Optional[int] = None) -> float:
        record = self._record("/rpc/increment_double", {"key": key, "num": num, "xt": xt})
        return float(record[NUM_FIELD])

    def __getitem__(self, key: str) -> Any:
        return self.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        self.remove(key)

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def set_bulk(self, records: Mapping[str, Any], xt: Optional[int] = None) -> int:
        """Store several records at once. Returns the number stored."""
        params: Dict[str, Any] = {"xt": xt}
        for key, value in records.items():
            params[bulk_key(key)] = self.serializer.encode(value)
        record = self._record("/rpc/set_bulk", params)
        return int(record.get(NUM_FIELD) or 0)

    def get_bulk(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Fetch several records. Missing keys are absent from the result."""
        params = {bulk_key(k): "" for k in keys}
        data, _ = split_bulk(self._record("/rpc/get_bulk", params))
        return {key: self.serializer.decode(value) for key, value in data.items()}

    def remove_bulk(self, keys: Iterable[str]) -> int:
        """Remove several records. Returns the number removed."""
        params = {bulk_key(k): "" for k in keys}
        record = self._record("/rpc/remove_bulk", params)
        return int(record.get(NUM_FIELD) or 0)

    def remove(self, *keys: Union[str, Iterable[str]]) -> int:
        return self.remove_bulk(_flatten(keys))

    delete = remove

    # ------------------------------------------------------------------
    # Database operations
    # ------------------------------------------------------------------

    def clear(self) -> None:
        self.request("/rpc/clear")

    def vacuum(self) -> None:
        self.request("/rpc/vacuum")

    def sync(self, params: Optional[Mapping[str, Any]] = None) -> None:
        self.request("/rpc/synchronize", params)

    synchronize = sync

    def echo(self, params: Mapping[str, Any]) -> Dict[str, Optional[str]]:
        return self._record("/rpc/echo", params)

    def report(self) -> Dict[str, Optional[str]]:
        return self._record("/rpc/report")

    def status(self) -> Dict[str, Optional[str]]:
        return self._record("/rpc/status")

    # ------------------------------------------------------------------
    # Key listing
    # ------------------------------------------------------------------

    def _matched_keys(self, path: str, params: Mapping[str, Any]) -> List[str]:
        # Matched keys come back as "_<key>" fields next to a "num" count
        return [name[1:] for name in self._record(path, params) if name != NUM_FIELD]

    def match_prefix(self, prefix: str) -> List[str]:
        return self._matched_keys("/rpc/match_prefix", {"prefix": prefix})

    def match_regex(self, regex: Union[str, "re.Pattern"]) -> List[str]:
        if isinstance(regex, re.Pattern):
            regex = regex.pattern
        return self._matched_keys("/rpc/match_regex", {"regex": regex})

    def keys(self) -> List[str]:
        return self.match_prefix("")

    def __repr__(self) -> str:
        servers = ", ".join(str(s) for s in self.servers)
        return f"KyotoClient(servers=[{servers}], db={self.db!r}, colenc={self.colenc.value})"

"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import base64
import re
import socket
from contextlib import closing
from typing import AsyncGenerator, Dict, List, Optional, Tuple
from urllib.parse import quote_plus, unquote_to_bytes

import pytest
import pytest_asyncio

from ktclient.client import KyotoClient
from ktclient.errors import TransportError
from ktclient.network.transport import Transport
from ktclient.protocol.codec import WireCodec
from ktclient.protocol.messages import ColumnEncoding, Endpoint


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# In-memory transport
# ============================================================================

class FakeNetwork:
    """
    In-memory stand-in for a set of TSV-RPC servers.

    Endpoints listed in `down` refuse connections. Responses are canned per
    path with respond(); unknown paths answer 200 with an empty body.

    Attributes:
        transports: Every transport created, in order
        sent: Every request as (endpoint, path, body, encoding)
    """

    def __init__(self):
        self.down = set()
        self.responses: Dict[str, Tuple[int, bytes]] = {}
        self.transports: List["FakeTransport"] = []
        self.sent: List[Tuple[Endpoint, str, str, ColumnEncoding]] = []

    def factory(self, endpoint: Endpoint, timeout: float = None) -> "FakeTransport":
        transport = FakeTransport(self, endpoint, timeout)
        self.transports.append(transport)
        return transport

    def respond(self, path: str, status: int = 200, body: bytes = b"") -> None:
        self.responses[path] = (status, body)

    def requests_to(self, path: str) -> List[Tuple[Endpoint, str, str, ColumnEncoding]]:
        return [r for r in self.sent if r[1] == path]

    def last_params(self) -> Dict[str, Optional[str]]:
        """Decode the last request body (requires URL column encoding)."""
        _, _, body, encoding = self.sent[-1]
        assert encoding is ColumnEncoding.URL
        return WireCodec().decode(body)


class FakeTransport(Transport):
    """Transport routed through a FakeNetwork."""

    def __init__(self, network: FakeNetwork, endpoint: Endpoint, timeout: float = None):
        super().__init__(endpoint, timeout)
        self.network = network
        self.opened = False
        self.closed = False

    def open(self) -> None:
        if self.endpoint in self.network.down:
            raise TransportError(f"connection refused: {self.endpoint}")
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def send(self, path: str, body: str, encoding: ColumnEncoding) -> Tuple[int, bytes]:
        if self.endpoint in self.network.down:
            raise TransportError(f"connection reset: {self.endpoint}")
        self.network.sent.append((self.endpoint, path, body, encoding))
        return self.network.responses.get(path, (200, b""))


# ============================================================================
# Unit test fixtures
# ============================================================================

@pytest.fixture
def codec() -> WireCodec:
    """Create a WireCodec instance."""
    return WireCodec()


@pytest.fixture
def network() -> FakeNetwork:
    """Create an empty in-memory network."""
    return FakeNetwork()


@pytest.fixture
def endpoints() -> List[Endpoint]:
    """Three candidate endpoints."""
    return [Endpoint("kt1", 1978), Endpoint("kt2", 1978), Endpoint("kt3", 1978)]


@pytest.fixture
def client(network: FakeNetwork) -> KyotoClient:
    """
    Client on a single fake endpoint using URL column encoding, so sent
    bodies can be read back with network.last_params().
    """
    return KyotoClient("kt1", 1978, colenc="U", transport_factory=network.factory)


# ============================================================================
# TSV-RPC server
# ============================================================================

REASONS = {200: "OK", 400: "Bad Request", 450: "Logical Inconsistency", 501: "Not Implemented"}


def _unescape(field: str, colenc: str) -> str:
    if colenc == "B":
        raw = base64.b64decode(field)
    else:
        raw = unquote_to_bytes(field.replace("+", " "))
    return raw.decode("utf-8", errors="surrogateescape")


def parse_request_body(body: bytes, colenc: str) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for line in body.decode("ascii").split("\n"):
        line = line.rstrip("\r")
        if not line:
            continue
        name, _, value = line.partition("\t")
        params[_unescape(name, colenc)] = _unescape(value, colenc)
    return params


def encode_response_body(fields: Dict[str, str]) -> bytes:
    lines = []
    for name, value in fields.items():
        name = quote_plus(name.encode("utf-8", errors="surrogateescape"))
        value = quote_plus(str(value).encode("utf-8", errors="surrogateescape"))
        lines.append(f"{name}\t{value}\n")
    return "".join(lines).encode("ascii")


class TsvRpcServer:
    """
    Minimal TSV-RPC server over HTTP/1.1 keep-alive, for integration tests.

    Requests are decoded with the colenc announced in Content-Type;
    responses are always URL-escaped.

    Attributes:
        databases: db name -> records ("" is the default database)
        requests: Every request as (path, colenc, params)
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.databases: Dict[str, Dict[str, str]] = {}
        self.requests: List[Tuple[str, str, Dict[str, str]]] = []
        self._server: Optional[asyncio.AbstractServer] = None
        self._writers = set()

    async def start(self) -> None:
        self._server = await asyncio.start_server(self.handle_client, self.host, self.port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for writer in list(self._writers):
            writer.close()
        await self._server.wait_closed()

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.add(writer)
        try:
            while True:
                request_line = await reader.readline()
                if not request_line:
                    break
                _, path, _ = request_line.decode("ascii").split(" ", 2)

                headers = {}
                while True:
                    line = await reader.readline()
                    if line in (b"\r\n", b"\n", b""):
                        break
                    name, _, value = line.decode("latin-1").partition(":")
                    headers[name.strip().lower()] = value.strip()

                length = int(headers.get("content-length", "0"))
                body = await reader.readexactly(length) if length else b""
                match = re.search(r"colenc=(\w)", headers.get("content-type", ""))
                colenc = match.group(1).upper() if match else "U"

                params = parse_request_body(body, colenc)
                self.requests.append((path, colenc, params))
                status, fields = self.dispatch(path, dict(params))

                payload = encode_response_body(fields)
                head = (
                    f"HTTP/1.1 {status} {REASONS.get(status, 'Unknown')}\r\n"
                    f"Content-Type: text/tab-separated-values; colenc=U\r\n"
                    f"Content-Length: {len(payload)}\r\n"
                    f"\r\n"
                )
                writer.write(head.encode("ascii") + payload)
                await writer.drain()
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            self._writers.discard(writer)
            writer.close()

    def dispatch(self, path: str, params: Dict[str, str]) -> Tuple[int, Dict[str, str]]:
        records = self.databases.setdefault(params.pop("DB", ""), {})
        name = path.rsplit("/", 1)[-1]
        key = params.get("key")
        value = params.get("value")

        if name == "echo":
            return 200, params
        if name in ("clear",):
            records.clear()
            return 200, {}
        if name in ("vacuum", "synchronize"):
            return 200, {}
        if name == "report":
            return 200, {"count": str(sum(len(db) for db in self.databases.values()))}
        if name == "status":
            return 200, {"count": str(len(records))}

        if name in ("set_bulk", "get_bulk", "remove_bulk"):
            keys = [k[1:] for k in params if k.startswith("_")]
            if name == "set_bulk":
                for k in keys:
                    records[k] = params["_" + k]
                return 200, {"num": str(len(keys))}
            if name == "get_bulk":
                found = {"_" + k: records[k] for k in keys if k in records}
                return 200, {"num": str(len(found)), **found}
            removed = [k for k in keys if records.pop(k, None) is not None]
            return 200, {"num": str(len(removed))}

        if name in ("match_prefix", "match_regex"):
            if name == "match_prefix":
                matched = [k for k in sorted(records) if k.startswith(params.get("prefix", ""))]
            else:
                pattern = re.compile(params.get("regex", ""))
                matched = [k for k in sorted(records) if pattern.search(k)]
            fields = {"_" + k: str(i) for i, k in enumerate(matched)}
            fields["num"] = str(len(matched))
            return 200, fields

        if key is None:
            return 400, {"ERROR": "invalid parameters"}

        if name == "get":
            if key not in records:
                return 450, {"ERROR": "DB: 7: no record: no record"}
            return 200, {"value": records[key]}
        if name == "set":
            records[key] = value
            return 200, {}
        if name == "add":
            if key in records:
                return 450, {"ERROR": "DB: 6: record duplication: record duplication"}
            records[key] = value
            return 200, {}
        if name == "replace":
            if key not in records:
                return 450, {"ERROR": "DB: 7: no record: no record"}
            records[key] = value
            return 200, {}
        if name == "append":
            records[key] = records.get(key, "") + value
            return 200, {}
        if name == "cas":
            if records.get(key) != params.get("oval"):
                return 450, {"ERROR": "DB: 6: status of the record has changed"}
            if "nval" in params:
                records[key] = params["nval"]
            else:
                records.pop(key, None)
            return 200, {}
        if name == "increment":
            num = int(records.get(key, "0")) + int(params.get("num", "0"))
            records[key] = str(num)
            return 200, {"num": str(num)}
        if name == "increment_double":
            num = float(records.get(key, "0")) + float(params.get("num", "0"))
            records[key] = str(num)
            return 200, {"num": str(num)}

        return 501, {"ERROR": "not implemented"}


class TricklingServer:
    """
    HTTP server that answers every request with a valid echo response, sent
    one byte at a time with `delay` seconds between bytes.
    """

    RESPONSE = (
        b"HTTP/1.1 200 OK\r\n"
        b"Content-Type: text/tab-separated-values; colenc=U\r\n"
        b"Content-Length: 4\r\n"
        b"\r\n"
        b"0\t0\n"
    )

    def __init__(self, host: str, port: int, delay: float = 0.1):
        self.host = host
        self.port = port
        self.delay = delay
        self._server: Optional[asyncio.AbstractServer] = None
        self._tasks = set()

    async def start(self) -> None:
        self._server = await asyncio.start_server(self.handle_client, self.host, self.port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        await self._server.wait_closed()

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        self._tasks.add(task)
        try:
            head = await reader.readuntil(b"\r\n\r\n")
            match = re.search(rb"(?i)content-length:\s*(\d+)", head)
            if match:
                await reader.readexactly(int(match.group(1)))
            for i in range(len(self.RESPONSE)):
                writer.write(self.RESPONSE[i:i + 1])
                await writer.drain()
                if self.delay:
                    await asyncio.sleep(self.delay)
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            self._tasks.discard(task)
            writer.close()


@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest_asyncio.fixture
async def kt_server(server_port: int) -> AsyncGenerator[TsvRpcServer, None]:
    """
    Start a TSV-RPC server on a free port for the duration of a test.

    The blocking client is driven from a worker thread with
    asyncio.to_thread() so the event loop keeps serving requests.
    """
    srv = TsvRpcServer('127.0.0.1', server_port)
    await srv.start()

    yield srv

    await srv.stop()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )

"""
TSV-RPC Wire Codec

This module turns parameter maps into request bodies and response bodies
back into records.

Wire Format:
    Body:  <name>\t<value>\r\n<name>\t<value>...   (no trailing terminator)

Encoding contract:
    Requests  - fields escaped with the client's ColumnEncoding
                (URL percent-escaping or base64)
    Responses - fields are ALWAYS URL percent-escaped, whatever encoding
                the request used

Bulk keys:
    Record keys travel as "_<key>" so they never collide with protocol
    metadata fields such as "num".
"""

import base64
from typing import Dict, Mapping, Optional, Tuple, Union
from urllib.parse import quote_from_bytes, unquote_to_bytes

from ..errors import ConfigurationError
from .messages import ColumnEncoding

BULK_PREFIX = "_"

FieldValue = Union[str, bytes, int, float, None]


def _to_bytes(value: FieldValue) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8", errors="surrogateescape")


def _url_escape(value: FieldValue) -> str:
    # quote_plus semantics: space becomes '+', only A-Za-z0-9_.-~ kept
    return quote_from_bytes(_to_bytes(value), safe=" ").replace(" ", "+")


def _base64_escape(value: FieldValue) -> str:
    return base64.b64encode(_to_bytes(value)).decode("ascii")


def _url_unescape(field: bytes) -> str:
    raw = unquote_to_bytes(field.replace(b"+", b" "))
    return raw.decode("utf-8", errors="surrogateescape")


class WireCodec:
    """
    Encoder/decoder for TSV-RPC bodies.

    The codec is stateless; one instance can be shared by any number of
    dispatchers.
    """

    def encode(
            self,
            params: Optional[Mapping[str, FieldValue]],
            encoding: Union[ColumnEncoding, str] = ColumnEncoding.URL,
    ) -> str:
        """
        Encode a parameter map into a request body.

        Args:
            params: Ordered field map; None values are dropped, never sent
                as empty fields
            encoding: Column encoding for names and values

        Returns:
            CRLF-joined "name<TAB>value" lines, or "" for no params

        Raises:
            ConfigurationError: If the encoding is not supported

        Examples:
            >>> WireCodec().encode({"key": "a b", "xt": None}, ColumnEncoding.URL)
            'key\\ta+b'
            >>> WireCodec().encode({"k": "v"}, ColumnEncoding.BASE64)
            'aw==\\tdg=='
        """
        encoding = ColumnEncoding.parse(encoding)
        if encoding is ColumnEncoding.URL:
            escape = _url_escape
        elif encoding is ColumnEncoding.BASE64:
            escape = _base64_escape
        else:
            raise ConfigurationError(f"Unknown colenc '{encoding}'")

        if not params:
            return ""

        lines = [
            f"{escape(name)}\t{escape(value)}"
            for name, value in params.items()
            if value is not None
        ]
        return "\r\n".join(lines)

    def decode(self, body: Union[bytes, str, None]) -> Dict[str, Optional[str]]:
        """
        Decode a response body into a record.

        Both fields of every line are URL-unescaped. A line without a tab
        yields a None value. Later duplicates overwrite earlier ones.

        Examples:
            >>> WireCodec().decode(b"num\\t5\\n_x\\tOTk%3D")
            {'num': '5', '_x': 'OTk='}
        """
        if not body:
            return {}
        # Split and unescape as bytes; raw non-ASCII bytes pass through
        body = _to_bytes(body)

        record: Dict[str, Optional[str]] = {}
        for line in body.split(b"\n"):
            line = line.rstrip(b"\r")
            if not line:
                continue
            name, sep, value = line.partition(b"\t")
            record[_url_unescape(name)] = _url_unescape(value) if sep else None
        return record


def bulk_key(key: str) -> str:
    """Field name for a record key on bulk paths."""
    key = str(key)
    if key.startswith(BULK_PREFIX):
        return key
    return BULK_PREFIX + key


def split_bulk(
        record: Mapping[str, Optional[str]],
) -> Tuple[Dict[str, Optional[str]], Dict[str, Optional[str]]]:
    """
    Separate data records from protocol metadata in a bulk response.

    Returns:
        (data, metadata) where data keys have the "_" prefix stripped

    Examples:
        >>> split_bulk({"num": "1", "_a": "x"})
        ({'a': 'x'}, {'num': '1'})
    """
    data: Dict[str, Optional[str]] = {}
    metadata: Dict[str, Optional[str]] = {}
    for name, value in record.items():
        if name.startswith(BULK_PREFIX):
            data[name[len(BULK_PREFIX):]] = value
        else:
            metadata[name] = value
    return data, metadata

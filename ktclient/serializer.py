"""
Value Serializers

A serializer turns application values into field values for the wire and
decoded field values back into application values.

Contract:
    encode(value) -> str | bytes
    decode(value: str | None) -> value     (decode(None) is None)

Decoded fields arrive as text produced with the "surrogateescape" error
handler, so serializers for binary formats recover the exact bytes with
value.encode("utf-8", "surrogateescape").
"""

import json
from typing import Any, Dict, Optional, Union

import msgpack

from .errors import ConfigurationError


def _raw(value: str) -> bytes:
    return value.encode("utf-8", errors="surrogateescape")


class Serializer:
    """Base serializer: subclasses implement encode/decode."""

    name = ""

    def encode(self, value: Any) -> Union[str, bytes]:
        raise NotImplementedError

    def decode(self, value: Optional[str]) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class DefaultSerializer(Serializer):
    """Stores values as their string form; bytes are sent untouched."""

    name = "default"

    def encode(self, value: Any) -> Union[str, bytes]:
        if isinstance(value, (str, bytes)):
            return value
        return str(value)

    def decode(self, value: Optional[str]) -> Optional[str]:
        return value


class JsonSerializer(Serializer):
    name = "json"

    def encode(self, value: Any) -> str:
        return json.dumps(value, separators=(",", ":"))

    def decode(self, value: Optional[str]) -> Any:
        if value is None:
            return None
        return json.loads(value)


class MsgpackSerializer(Serializer):
    name = "msgpack"

    def encode(self, value: Any) -> bytes:
        return msgpack.packb(value, use_bin_type=True)

    def decode(self, value: Optional[str]) -> Any:
        if value is None:
            return None
        return msgpack.unpackb(_raw(value), raw=False)


_SERIALIZERS: Dict[str, Serializer] = {
    s.name: s for s in (DefaultSerializer(), JsonSerializer(), MsgpackSerializer())
}


def register_serializer(name: str, serializer: Serializer) -> None:
    """Make a custom serializer available by name."""
    _SERIALIZERS[name.lower()] = serializer


def get_serializer(name: Union[str, Serializer, None] = "default") -> Serializer:
    """
    Look up a serializer by name.

    Args:
        name: Registered name, a Serializer instance (returned as-is),
            or None for the default

    Raises:
        ConfigurationError: If no serializer is registered under the name
    """
    if isinstance(name, Serializer):
        return name
    key = (name or "default").lower()
    try:
        return _SERIALIZERS[key]
    except KeyError:
        raise ConfigurationError(f"Unknown serializer '{name}'") from None

"""Network module for kt-client."""

from .transport import HttpTransport, Transport

__all__ = ["HttpTransport", "Transport"]

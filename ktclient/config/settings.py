"""
kt-client Configuration Settings

This module contains the default configuration for kt-client.
Every value can be overridden from the environment or per client instance.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Client configuration settings."""

    # Server settings
    HOST: str = os.environ.get("KT_HOST", "0.0.0.0")
    PORT: int = int(os.environ.get("KT_PORT", "1978"))

    # Timeouts (seconds)
    CONNECT_TIMEOUT: float = float(os.environ.get("KT_CONNECT_TIMEOUT", "0.5"))  # health-check probe
    TIMEOUT: float = float(os.environ.get("KT_TIMEOUT", "10.0"))  # ordinary requests

    # Wire settings
    COLENC: str = os.environ.get("KT_COLENC", "B")
    SERIALIZER: str = os.environ.get("KT_SERIALIZER", "default")

    # Logging settings
    DEBUG: bool = os.environ.get("KT_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("KT_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()

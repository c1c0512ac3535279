"""Configuration module for kt-client."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]

"""Layered configuration for webreach."""

from webreach.settings.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]

"""webreach: human-like browser interaction core for autonomous agents."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("webreach")
except Exception:
    __version__ = "0.0.0"

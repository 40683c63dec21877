"""Tool layer: typed argument records in, JSON envelopes out."""

from __future__ import annotations

from typing import TYPE_CHECKING

from webreach.tools.browser_tools import register_browser_tools
from webreach.tools.registry import Tool, ToolRegistry
from webreach.tools.site_tools import register_site_tools

if TYPE_CHECKING:
    from webreach.session import SessionManager

__all__ = ["Tool", "ToolRegistry", "build_registry"]


def build_registry(sessions: SessionManager) -> ToolRegistry:
    """Registry with every generic browser tool and site adapter tool."""
    registry = ToolRegistry(sessions)
    register_browser_tools(registry)
    register_site_tools(registry)
    return registry

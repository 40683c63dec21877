"""Tool registry: the JSON-envelope boundary consumed by the orchestrator.

``ToolRegistry.invoke`` never raises.  Every outcome, including argument
validation errors, missing sessions and page failures, comes back as a
``ToolResult`` serialized to ``{"success": true, ...}`` or
``{"success": false, "error": "..."}``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from playwright.sync_api import Error as PlaywrightError
from pydantic import BaseModel, ValidationError

from webreach.exceptions import OperationCancelled, WebReachError
from webreach.models.tools import ToolResult

if TYPE_CHECKING:
    from webreach.session import InteractionSession, SessionManager

logger = logging.getLogger(__name__)

Handler = Callable[["InteractionSession", Any], ToolResult]


@dataclass(frozen=True)
class Tool:
    """One named operation with its typed argument record."""

    name: str
    description: str
    args_model: type[BaseModel]
    handler: Handler
    # Site adapter tools prefix their errors with the tool name
    site: bool = False

    def schema(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.args_model.model_json_schema()}


class ToolRegistry:
    """Maps tool names to handlers and runs them against the active session."""

    def __init__(self, sessions: SessionManager) -> None:
        self._sessions = sessions
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def names(self) -> list[str]:
        return sorted(self._tools)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def schemas(self) -> list[dict[str, Any]]:
        return [self._tools[name].schema() for name in self.names()]

    def invoke(self, name: str, arguments: dict[str, Any] | None = None, tab_id: str | None = None) -> str:
        """Run tool *name* and return its JSON envelope."""
        return self.invoke_result(name, arguments, tab_id).to_json()

    def invoke_result(self, name: str, arguments: dict[str, Any] | None = None, tab_id: str | None = None) -> ToolResult:
        started = time.monotonic()
        arguments = dict(arguments or {})
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Unknown tool requested: %s", name)
            return ToolResult.fail(f"Unknown tool: {name}")

        session: InteractionSession | None = None
        try:
            args = tool.args_model.model_validate(arguments)
            session = self._sessions.get(tab_id)
            # A stop request only targets the call that was in flight
            session.cancel.reset()
            result = tool.handler(session, args)
        except ValidationError as exc:
            result = ToolResult.fail(self._error(tool, f"invalid arguments: {_summarize_validation(exc)}"))
        except OperationCancelled as exc:
            result = ToolResult.fail(self._error(tool, str(exc)), cancelled=True)
            if session is not None:
                session.cancel.reset()
        except (WebReachError, ValueError) as exc:
            result = ToolResult.fail(self._error(tool, str(exc)))
        except PlaywrightError as exc:
            result = ToolResult.fail(self._error(tool, f"browser error: {exc.message}"))
        except Exception as exc:
            logger.exception("Tool %s crashed", name)
            result = ToolResult.fail(self._error(tool, f"{type(exc).__name__}: {exc}"))

        duration_ms = (time.monotonic() - started) * 1000.0
        if session is not None:
            session.record(name, arguments, result.success, result.error, duration_ms)
        if result.success:
            logger.info("Tool %s succeeded in %.0fms", name, duration_ms)
        else:
            logger.warning("Tool %s failed in %.0fms: %s", name, duration_ms, result.error)
        return result

    @staticmethod
    def _error(tool: Tool, message: str) -> str:
        return f"{tool.name}: {message}" if tool.site else message


def _summarize_validation(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)

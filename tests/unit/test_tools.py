"""Unit tests for webreach.tools: registry envelopes and generic browser tools."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

from tests.conftest import rec
from webreach.exceptions import OperationCancelled
from webreach.models.tools import ToolResult
from webreach.session import SessionManager
from webreach.tools import build_registry
from webreach.tools.registry import Tool, ToolRegistry


class _Args(BaseModel):
    value: int = 0


@pytest.fixture()
def wired(session_factory):
    """A registry over a manager whose active session talks to a fake bridge."""
    session, fake = session_factory()
    manager = MagicMock(spec=SessionManager)
    manager.get.return_value = session
    return build_registry(manager), session, fake


# ---------------------------------------------------------------------------
# Registry mechanics
# ---------------------------------------------------------------------------


class TestToolRegistry:
    def test_all_tools_registered(self, settings) -> None:
        names = build_registry(SessionManager(settings)).names()
        assert "browser_click" in names
        assert "x_like" in names
        assert "bluesky_reply" in names
        assert {"reddit_comment", "linkedin_comment"} <= set(names)
        assert len(names) == 22

    def test_schemas_are_json_schema(self, settings) -> None:
        schemas = build_registry(SessionManager(settings)).schemas()
        click = next(s for s in schemas if s["name"] == "browser_click")
        assert click["parameters"]["properties"]["index"]["minimum"] == 0
        assert "selector" in click["parameters"]["required"]

    def test_duplicate_name_rejected(self, settings) -> None:
        registry = ToolRegistry(SessionManager(settings))
        tool = Tool("t", "test", _Args, lambda s, a: ToolResult.ok())
        registry.register(tool)
        with pytest.raises(ValueError):
            registry.register(tool)

    def test_unknown_tool(self, settings) -> None:
        envelope = json.loads(ToolRegistry(SessionManager(settings)).invoke("nope", {}))
        assert envelope == {"success": False, "error": "Unknown tool: nope"}

    def test_no_session_is_an_envelope(self, settings) -> None:
        envelope = json.loads(build_registry(SessionManager(settings)).invoke("browser_wait", {"milliseconds": 1}))
        assert envelope["success"] is False
        assert "No page registered" in envelope["error"]

    def test_validation_error_summarized(self, wired) -> None:
        registry, _, _ = wired
        envelope = json.loads(registry.invoke("browser_click", {"selector": "#a", "index": -1}))
        assert envelope["success"] is False
        assert envelope["error"].startswith("invalid arguments: index:")

    def test_site_errors_prefixed_with_tool_name(self, wired) -> None:
        registry, _, _ = wired
        envelope = json.loads(registry.invoke("x_post", {"text": ""}))
        assert envelope["error"].startswith("x_post: invalid arguments")

    def test_unexpected_exception_becomes_envelope(self, wired) -> None:
        registry, session, _ = wired

        def boom(_session, _args):
            raise KeyError("missing")

        registry.register(Tool("boom", "explodes", _Args, boom))
        envelope = json.loads(registry.invoke("boom", {}))
        assert envelope == {"success": False, "error": "KeyError: 'missing'"}
        assert session.history[-1].tool == "boom"
        assert session.history[-1].success is False

    def test_cancellation_resets_token(self, wired) -> None:
        registry, session, _ = wired

        def cancelled(_session, _args):
            raise OperationCancelled("Operation cancelled")

        registry.register(Tool("slow", "cancelled", _Args, cancelled))
        session.cancel.cancel()
        envelope = json.loads(registry.invoke("slow", {}))
        assert envelope["cancelled"] is True
        assert not session.cancel.cancelled

    def test_stale_cancel_does_not_leak_into_next_call(self, wired) -> None:
        registry, session, _ = wired
        seen = []

        def record_token(s, _args):
            seen.append(s.cancel.cancelled)
            return ToolResult.ok()

        registry.register(Tool("quick", "succeeds", _Args, record_token))
        registry.invoke("quick", {})
        session.cancel.cancel()
        envelope = json.loads(registry.invoke("quick", {}))
        assert envelope["success"] is True
        assert seen == [False, False]

    def test_history_records_success(self, wired) -> None:
        registry, session, _ = wired
        registry.invoke("browser_wait", {"milliseconds": 10})
        entry = session.history[-1]
        assert (entry.tool, entry.success, entry.arguments) == ("browser_wait", True, {"milliseconds": 10})


# ---------------------------------------------------------------------------
# Browser tools end to end against the fake bridge
# ---------------------------------------------------------------------------


class TestBrowserTools:
    def test_click_out_of_range_clamps(self, wired) -> None:
        registry, _, fake = wired
        fake.set_nodes("css", [rec("button", 0, attrs={"id": "submit"})], key="#submit")
        envelope = json.loads(registry.invoke("browser_click", {"selector": "#submit", "index": 3}))
        assert envelope["success"] is True
        assert envelope["clamped"] is True

    def test_click_missing_element(self, wired) -> None:
        registry, _, _ = wired
        envelope = json.loads(registry.invoke("browser_click", {"selector": "#missing"}))
        assert envelope["success"] is False
        assert envelope["error"].startswith("Element not found: #missing")

    def test_type_reports_mutations(self, wired) -> None:
        registry, _, fake = wired
        fake.set_nodes("css", [rec("input", 0)])
        fake.responses["type_char"] = {"mutated": True}
        envelope = json.loads(registry.invoke("browser_type", {"selector": "input", "text": "L"}))
        assert envelope["typed"] == 1
        assert envelope["mutations"] == 1

    def test_type_into_non_editable_fails(self, wired) -> None:
        registry, _, fake = wired
        fake.set_nodes("css", [rec("button", 0)])
        fake.responses["type_char"] = {"mutated": False, "events": []}
        envelope = json.loads(registry.invoke("browser_type", {"selector": "button", "text": "hi"}))
        assert envelope["success"] is False
        assert envelope["error"].startswith("Element not interactable: <button>")

    def test_obscured_click_fails(self, wired) -> None:
        registry, _, fake = wired
        fake.set_nodes("css", [rec("button", 0)], key="#save")
        fake.responses["click"] = {"obscured": True, "obscured_by": "modal"}
        envelope = json.loads(registry.invoke("browser_click", {"selector": "#save"}))
        assert envelope == {"success": False, "error": "Element not interactable: <button> (obscured by modal)"}

    def test_snapshot_then_marker_click(self, wired) -> None:
        registry, _, fake = wired
        fake.set_nodes("snapshot_collect", [rec("button", 0, attrs={"aria-label": "Send"})], title="Chat")
        fake.set_nodes("marker", [rec("button", 0, attrs={"aria-label": "Send"})])

        snap = json.loads(registry.invoke("browser_snapshot", {}))
        assert snap["elements"][0]["suggestedSelector"] == "aria/Send"

        envelope = json.loads(registry.invoke("browser_click", {"selector": "id/0"}))
        assert envelope["success"] is True

    def test_marker_before_snapshot_fails(self, wired) -> None:
        registry, _, _ = wired
        envelope = json.loads(registry.invoke("browser_click", {"selector": "0"}))
        assert "stale" in envelope["error"]

    def test_page_content(self, wired) -> None:
        registry, _, fake = wired
        fake.responses["page_info"] = {"url": "https://example.com/", "title": "Example", "host": "example.com"}
        envelope = json.loads(registry.invoke("browser_get_page_content", {"include_text": True}))
        assert envelope["title"] == "Example"
        assert fake.calls_of("page_info")[0]["include_text"] is True

    def test_navigate(self, wired) -> None:
        registry, session, _ = wired
        envelope = json.loads(registry.invoke("browser_navigate", {"url": "example.com"}))
        assert envelope["url"] == session.page.url

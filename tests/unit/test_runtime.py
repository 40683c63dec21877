"""Unit tests for webreach.browser.runtime: the page bridge and node sets."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from playwright.sync_api import Error as PlaywrightError

from tests.conftest import make_page, rec
from webreach.browser.runtime import _DISPATCH_JS, RUNTIME_JS, NodeSet, PageBridge, is_detached_error
from webreach.exceptions import ScriptInjectionFailure, SessionNotReady
from webreach.models.elements import Viewport

_MISSING = {"__wr_missing": True}


class TestIsDetachedError:
    def test_known_messages(self) -> None:
        assert is_detached_error(PlaywrightError("Execution context was destroyed, most likely because of a navigation"))
        assert is_detached_error(PlaywrightError("Target page, context or browser has been closed"))
        assert not is_detached_error(PlaywrightError("SyntaxError: unexpected token"))


class TestCall:
    def test_dispatches_descriptor(self) -> None:
        page = make_page()
        page.evaluate.return_value = {"y": 400}
        assert PageBridge(page).call("scroll", dx=0, dy=400) == {"y": 400}
        page.evaluate.assert_called_once_with(_DISPATCH_JS, {"op": "scroll", "args": {"dx": 0, "dy": 400}})

    def test_bootstraps_runtime_once_then_retries(self) -> None:
        page = make_page()
        page.evaluate.side_effect = [_MISSING, True, {"url": "https://example.com/"}]
        result = PageBridge(page).call("page_info")
        assert result == {"url": "https://example.com/"}
        assert page.evaluate.call_args_list[1].args == (RUNTIME_JS,)

    def test_runtime_still_missing_after_bootstrap(self) -> None:
        page = make_page()
        page.evaluate.side_effect = [_MISSING, True, _MISSING]
        with pytest.raises(ScriptInjectionFailure):
            PageBridge(page).call("focus")

    def test_bootstrap_refused(self) -> None:
        page = make_page()
        page.evaluate.side_effect = [_MISSING, PlaywrightError("EvalError: Refused to evaluate a string (CSP)")]
        with pytest.raises(ScriptInjectionFailure, match="refused"):
            PageBridge(page).call("focus")

    def test_bootstrap_returned_falsy(self) -> None:
        page = make_page()
        page.evaluate.side_effect = [_MISSING, False]
        with pytest.raises(ScriptInjectionFailure, match="did not initialize"):
            PageBridge(page).call("focus")

    def test_detached_page(self) -> None:
        page = make_page()
        page.evaluate.side_effect = PlaywrightError("Frame was detached")
        with pytest.raises(SessionNotReady):
            PageBridge(page).call("focus")

    def test_closed_page(self) -> None:
        page = make_page()
        page.is_closed.return_value = True
        with pytest.raises(SessionNotReady, match="closed"):
            PageBridge(page).call("focus")
        page.evaluate.assert_not_called()

    def test_other_errors_propagate(self) -> None:
        page = make_page()
        page.evaluate.side_effect = PlaywrightError("TypeError: x is not a function")
        with pytest.raises(PlaywrightError):
            PageBridge(page).call("focus")


class TestCollect:
    def test_builds_node_set(self) -> None:
        page = make_page()
        handle = MagicMock()
        handle.evaluate.return_value = {
            "records": [rec("button", 0), rec("a", 1)],
            "viewport": {"width": 1280, "height": 800},
            "modal_open": True,
            "error": None,
            "url": "https://example.com/",
            "title": "Example",
        }
        page.evaluate_handle.return_value = handle

        nodes = PageBridge(page).collect("css", selector="button, a")

        assert [r.tag for r in nodes.records] == ["button", "a"]
        assert nodes.viewport == Viewport(1280, 800)
        assert nodes.modal_open is True
        assert nodes.title == "Example"
        page.evaluate_handle.assert_called_once_with(_DISPATCH_JS, {"op": "css", "args": {"selector": "button, a"}})

    def test_missing_runtime_bootstraps(self) -> None:
        page = make_page()
        missing, ready = MagicMock(), MagicMock()
        missing.evaluate.return_value = None
        ready.evaluate.return_value = {"records": [], "viewport": None}
        page.evaluate_handle.side_effect = [missing, ready]
        page.evaluate.return_value = True

        nodes = PageBridge(page).collect("snapshot_collect")

        assert len(nodes) == 0
        missing.dispose.assert_called_once()
        page.evaluate.assert_called_once_with(RUNTIME_JS)

    def test_detached_during_collect(self) -> None:
        page = make_page()
        page.evaluate_handle.side_effect = PlaywrightError("Execution context was destroyed")
        with pytest.raises(SessionNotReady):
            PageBridge(page).collect("css", selector="a")


class TestNodeSet:
    def test_node_out_of_range(self) -> None:
        nodes = NodeSet(MagicMock(), [], Viewport(0, 0))
        assert nodes.node(0) is None

    def test_dispose_is_safe_twice(self) -> None:
        handle = MagicMock()
        handle.dispose.side_effect = PlaywrightError("Target closed")
        nodes = NodeSet(handle, [], Viewport(0, 0))
        nodes.dispose()
        nodes.dispose()
        assert nodes.handle is None
        handle.dispose.assert_called_once()

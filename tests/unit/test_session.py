"""Unit tests for webreach.session: manager, focus guard, waits and page events."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from tests.conftest import make_page
from webreach.exceptions import OperationCancelled, SessionNotReady
from webreach.session import CancellationToken, FocusGuard, InteractionSession, SessionManager


def _handler(page: MagicMock, event: str):
    """The callback *page* registered for *event* (last registration wins)."""
    handlers = [c.args[1] for c in page.on.call_args_list if c.args[0] == event]
    return handlers[-1]


# ---------------------------------------------------------------------------
# SessionManager
# ---------------------------------------------------------------------------


class TestSessionManager:
    def test_no_page_registered(self, settings) -> None:
        with pytest.raises(SessionNotReady, match="No page registered"):
            SessionManager(settings).get()

    def test_first_registration_becomes_active(self, settings) -> None:
        manager = SessionManager(settings)
        first = manager.register_page(make_page())
        second = manager.register_page(make_page())
        assert manager.active is first
        assert manager.tabs() == [first.tab_id, second.tab_id]
        assert manager.get() is first
        assert manager.activate(second.tab_id) is second
        assert manager.get() is second

    def test_duplicate_tab_id_rejected(self, settings) -> None:
        manager = SessionManager(settings)
        manager.register_page(make_page(), tab_id="main")
        with pytest.raises(ValueError):
            manager.register_page(make_page(), tab_id="main")

    def test_unknown_tab(self, settings) -> None:
        manager = SessionManager(settings)
        manager.register_page(make_page())
        with pytest.raises(SessionNotReady, match="ghost"):
            manager.get("ghost")

    def test_closed_page_unregisters(self, settings) -> None:
        manager = SessionManager(settings)
        page = make_page()
        session = manager.register_page(page, tab_id="main")
        page.is_closed.return_value = True
        with pytest.raises(SessionNotReady, match="closed"):
            manager.get("main")
        assert manager.tabs() == []
        assert not session.is_alive

    def test_page_close_event_unregisters(self, settings) -> None:
        manager = SessionManager(settings)
        page = make_page()
        manager.register_page(page, tab_id="a")
        manager.register_page(make_page(), tab_id="b")
        _handler(page, "close")(page)
        assert manager.tabs() == ["b"]
        assert manager.active.tab_id == "b"

    def test_cancel_all(self, settings) -> None:
        manager = SessionManager(settings)
        sessions = [manager.register_page(make_page()) for _ in range(2)]
        manager.cancel_all()
        assert all(s.cancel.cancelled for s in sessions)


# ---------------------------------------------------------------------------
# FocusGuard
# ---------------------------------------------------------------------------


class TestFocusGuard:
    def test_allowed_without_foreground_check(self) -> None:
        page = MagicMock()
        guard = FocusGuard()
        assert guard.request_focus(page, "load") is True
        page.bring_to_front.assert_called_once()
        assert guard.granted == 1

    def test_background_host_suppresses_focus(self) -> None:
        page = MagicMock()
        guard = FocusGuard(lambda: False)
        assert guard.request_focus(page, "popup") is False
        page.bring_to_front.assert_not_called()
        assert guard.suppressed == 1

    def test_foreground_check_failure_means_background(self) -> None:
        def is_foreground() -> bool:
            raise RuntimeError("window server unavailable")

        assert FocusGuard(is_foreground).allows_focus() is False

    def test_load_event_respects_guard(self, settings) -> None:
        page = make_page()
        SessionManager(settings, focus_check=lambda: False).register_page(page)
        _handler(page, "load")(page)
        page.bring_to_front.assert_not_called()


# ---------------------------------------------------------------------------
# InteractionSession
# ---------------------------------------------------------------------------


class TestInteractionSession:
    def test_wait_sleeps_in_cancel_poll_slices(self, settings, clock) -> None:
        session = InteractionSession(make_page(), settings=settings, clock=clock, sleep=clock.sleep)
        session.wait(2500)
        assert clock.sleeps == [1.0, 1.0, 0.5]

    def test_wait_observes_cancellation(self, settings, clock) -> None:
        session = InteractionSession(make_page(), settings=settings, clock=clock)

        def sleep(seconds: float) -> None:
            clock.sleep(seconds)
            session.cancel.cancel()

        session._sleep = sleep
        with pytest.raises(OperationCancelled):
            session.wait(10_000)
        assert clock.sleeps == [1.0]

    def test_main_frame_navigation_invalidates_markers(self, settings) -> None:
        page = make_page()
        session = InteractionSession(page, settings=settings)
        session.markers.begin()
        session.markers.commit(4)
        session.pointer.moved_to(100, 100)

        child = MagicMock(parent_frame=MagicMock())
        _handler(page, "framenavigated")(child)
        assert session.markers.is_current(0)

        main = MagicMock(parent_frame=None, url="https://example.com/next")
        _handler(page, "framenavigated")(main)
        assert not session.markers.is_current(0)
        assert session.pointer.position == (0.0, 0.0)

    def test_navigate_returns_final_url(self, settings) -> None:
        page = make_page("https://example.com/landing")
        session = InteractionSession(page, settings=settings)
        assert session.navigate("example.com") == "https://example.com/landing"
        assert page.goto.call_args.args[0] == "https://example.com"

    def test_history_is_bounded(self, settings) -> None:
        session = InteractionSession(make_page(), settings=settings, history_size=2)
        for i in range(3):
            session.record(f"tool{i}", {}, True)
        assert [r.tool for r in session.history] == ["tool1", "tool2"]

    def test_speed_property_forwards_to_simulator(self, settings) -> None:
        session = InteractionSession(make_page(), settings=settings, speed="slow")
        assert session.speed == "slow"
        session.speed = "fast"
        assert session.simulator.speed == "fast"


class TestCancellationToken:
    def test_cancel_and_reset(self) -> None:
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        with pytest.raises(OperationCancelled):
            token.raise_if_cancelled()
        token.reset()
        assert not token.cancelled

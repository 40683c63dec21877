"""Interaction sessions: one per driven page, owned by a ``SessionManager``.

A session bundles everything that is scoped to a single page: the in-page
bridge, the resolver / simulator / snapshot serializer, the virtual pointer,
the marker registry, the cancellation token and a bounded action history.
Nothing here is global; callers hold the manager and pass it by reference.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from playwright.sync_api import Error as PlaywrightError

from webreach.browser.motion import PointerState
from webreach.browser.navigation import resilient_goto
from webreach.browser.resolver import Resolver
from webreach.browser.runtime import PageBridge
from webreach.browser.simulator import Simulator
from webreach.browser.snapshot import MarkerRegistry, SnapshotSerializer
from webreach.exceptions import OperationCancelled, SessionNotReady
from webreach.settings import Settings, get_settings

if TYPE_CHECKING:
    from playwright.sync_api import Frame, Page

    from webreach.models.elements import Snapshot

logger = logging.getLogger(__name__)

ForegroundCheck = Callable[[], bool]


class CancellationToken:
    """Cooperative stop flag checked by long-running operations."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled")


class FocusGuard:
    """Gates ``page.bring_to_front()`` on the host application's foreground state.

    Args:
        is_foreground: Returns ``True`` when the controlling host application
            is the foreground window.  Without it, focus requests are allowed.
    """

    def __init__(self, is_foreground: ForegroundCheck | None = None) -> None:
        self._is_foreground = is_foreground
        self.granted = 0
        self.suppressed = 0

    def allows_focus(self) -> bool:
        if self._is_foreground is None:
            return True
        try:
            return bool(self._is_foreground())
        except Exception as exc:  # host code; treat failure as "background"
            logger.debug("Foreground check failed: %s", exc)
            return False

    def request_focus(self, page: Page, reason: str) -> bool:
        """Bring *page* to front if the host is in the foreground."""
        if not self.allows_focus():
            self.suppressed += 1
            logger.debug("Focus request suppressed (%s): host application is in the background", reason)
            return False
        try:
            page.bring_to_front()
        except PlaywrightError as exc:
            logger.debug("bring_to_front failed (%s): %s", reason, exc)
            return False
        self.granted += 1
        return True


@dataclass
class ActionRecord:
    """One tool invocation in a session's history."""

    tool: str
    arguments: dict[str, Any]
    success: bool
    error: str | None = None
    duration_ms: float = 0.0
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InteractionSession:
    """Everything scoped to one driven page."""

    def __init__(
        self,
        page: Page,
        tab_id: str = "default",
        settings: Settings | None = None,
        speed: str | None = None,
        focus_guard: FocusGuard | None = None,
        history_size: int = 200,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.page = page
        self.tab_id = tab_id
        self.settings = settings or get_settings()
        self.cancel = CancellationToken()
        self.pointer = PointerState()
        self.markers = MarkerRegistry()
        self.focus_guard = focus_guard or FocusGuard()
        self.history: deque[ActionRecord] = deque(maxlen=history_size)
        self._sleep = sleep

        self.bridge = PageBridge(page)
        self.resolver = Resolver(self.bridge, self.markers, self.settings, self.cancel, clock, sleep)
        self.simulator = Simulator(
            self.bridge,
            self.resolver,
            self.pointer,
            self.settings,
            speed=speed,
            cancel=self.cancel,
            clock=clock,
            sleep=sleep,
        )
        self.snapshotter = SnapshotSerializer(self.bridge, self.markers, self.settings)

        page.on("framenavigated", self._on_frame_navigated)
        page.on("load", self._on_load)
        page.on("popup", self._on_popup)

    # -- properties ------------------------------------------------------

    @property
    def speed(self) -> str:
        return self.simulator.speed

    @speed.setter
    def speed(self, value: str) -> None:
        self.simulator.speed = value

    @property
    def is_alive(self) -> bool:
        return not self.page.is_closed()

    # -- operations ------------------------------------------------------

    def navigate(self, url: str) -> str:
        """Navigate the page and return the final URL."""
        self.cancel.raise_if_cancelled()
        final_url = resilient_goto(self.page, url, timeout_ms=self.settings.browser.timeout_ms)
        self.markers.invalidate("navigation")
        self.focus_guard.request_focus(self.page, "navigation")
        return final_url

    def snapshot(self, constrain_to_viewport: bool = False) -> Snapshot:
        self.cancel.raise_if_cancelled()
        return self.snapshotter.snapshot(constrain_to_viewport=constrain_to_viewport)

    def wait(self, ms: float) -> None:
        """Sleep *ms*, checking the cancellation token every ``cancel_poll_ms``."""
        remaining = max(ms, 0) / 1000.0
        slice_s = max(self.settings.interaction.cancel_poll_ms, 1) / 1000.0
        while remaining > 0:
            self.cancel.raise_if_cancelled()
            step = min(remaining, slice_s)
            self._sleep(step)
            remaining -= step
        self.cancel.raise_if_cancelled()

    def record(
        self, tool: str, arguments: dict[str, Any], success: bool, error: str | None = None, duration_ms: float = 0.0
    ) -> ActionRecord:
        entry = ActionRecord(tool=tool, arguments=arguments, success=success, error=error, duration_ms=duration_ms)
        self.history.append(entry)
        return entry

    def close(self) -> None:
        """Detach event listeners; the page itself is left to its owner."""
        for event, handler in (
            ("framenavigated", self._on_frame_navigated),
            ("load", self._on_load),
            ("popup", self._on_popup),
        ):
            try:
                self.page.remove_listener(event, handler)
            except (PlaywrightError, ValueError, KeyError):
                pass

    # -- page events -----------------------------------------------------

    def _on_frame_navigated(self, frame: Frame) -> None:
        if frame.parent_frame is not None:
            return
        self.pointer.reset()
        self.markers.invalidate(f"main frame navigated to {frame.url}")

    def _on_load(self, page: Page) -> None:
        self.focus_guard.request_focus(page, "load")

    def _on_popup(self, popup: Page) -> None:
        self.focus_guard.request_focus(popup, "popup")


class SessionManager:
    """Explicit registry of ``tab_id -> InteractionSession``."""

    def __init__(self, settings: Settings | None = None, focus_check: ForegroundCheck | None = None) -> None:
        self._settings = settings
        self._focus_check = focus_check
        self._sessions: dict[str, InteractionSession] = {}
        self._active: str | None = None
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def register_page(self, page: Page, tab_id: str | None = None, speed: str | None = None) -> InteractionSession:
        """Create a session for *page* and make it active if none is."""
        with self._lock:
            tab_id = tab_id or f"tab-{next(self._counter)}"
            if tab_id in self._sessions:
                raise ValueError(f"Tab id already registered: {tab_id}")
            session = InteractionSession(
                page,
                tab_id=tab_id,
                settings=self._settings,
                speed=speed,
                focus_guard=FocusGuard(self._focus_check),
            )
            self._sessions[tab_id] = session
            if self._active is None:
                self._active = tab_id
        page.on("close", lambda _page: self.unregister(tab_id))
        logger.info("Registered page as %s", tab_id)
        return session

    def unregister(self, tab_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(tab_id, None)
            if self._active == tab_id:
                self._active = next(iter(self._sessions), None)
        if session is not None:
            session.close()
            logger.info("Unregistered %s", tab_id)

    def activate(self, tab_id: str) -> InteractionSession:
        session = self.get(tab_id)
        self._active = tab_id
        return session

    def get(self, tab_id: str | None = None) -> InteractionSession:
        """Return the session for *tab_id* (default: the active one).

        Raises:
            SessionNotReady: No such session, or its page has closed.
        """
        key = tab_id or self._active
        if key is None:
            raise SessionNotReady("No page registered")
        session = self._sessions.get(key)
        if session is None:
            raise SessionNotReady(f"No page registered for {key}")
        if not session.is_alive:
            self.unregister(key)
            raise SessionNotReady(f"Page for {key} has been closed")
        return session

    @property
    def active(self) -> InteractionSession | None:
        if self._active is None:
            return None
        return self._sessions.get(self._active)

    def tabs(self) -> list[str]:
        return list(self._sessions)

    def cancel_all(self) -> None:
        for session in list(self._sessions.values()):
            session.cancel.cancel()

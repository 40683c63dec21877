"""webreach test configuration: shared fixtures and in-memory page doubles."""

from __future__ import annotations

import random
from typing import Any
from unittest.mock import MagicMock

import pytest

from webreach.browser.runtime import NodeSet
from webreach.models.elements import ElementRecord, Viewport


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache(monkeypatch):
    """Clear the settings LRU cache between tests and pin the local profile."""
    from webreach.settings.config import get_settings

    monkeypatch.delenv("WEBREACH_ENV", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings():
    from webreach.settings.config import Settings

    return Settings()


# ---------------------------------------------------------------------------
# Record / node-set builders
# ---------------------------------------------------------------------------


def rec(tag: str = "button", order: int = 0, **overrides: Any) -> dict[str, Any]:
    """Serialized element record as the in-page runtime returns it.

    Defaults describe a visible 100x30 box at (10, 10) in the main document.
    """
    data: dict[str, Any] = {
        "order": order,
        "tag": tag,
        "rect": {"x": 10, "y": 10, "width": 100, "height": 30},
        "frame": {"kind": "document", "ox": 0, "oy": 0, "depth": 0},
        "style": {"display": "block", "visibility": "visible", "opacity": "1"},
        "attrs": {},
        "text": "",
    }
    data.update(overrides)
    return data


def record(tag: str = "button", order: int = 0, **overrides: Any) -> ElementRecord:
    return ElementRecord.from_dict(rec(tag, order, **overrides))


class _Spec:
    """Canned result for one collect op: fixed records and stable node handles."""

    def __init__(self, records: list[dict[str, Any]], **meta: Any) -> None:
        self.records = records
        self.meta = meta
        self.handles = [MagicMock(name=f"node{i}") for i in range(len(records))]

    def build(self) -> NodeSet:
        js = MagicMock(name="nodeset")
        js.evaluate_handle.side_effect = lambda _expr, i: MagicMock(as_element=MagicMock(return_value=self.handles[i]))
        vw, vh = self.meta.get("viewport", (1280, 800))
        return NodeSet(
            js,
            [ElementRecord.from_dict(r) for r in self.records],
            Viewport(vw, vh),
            modal_open=self.meta.get("modal_open", False),
            top_modal=self.meta.get("top_modal", -1),
            error=self.meta.get("error"),
            url=self.meta.get("url", ""),
            title=self.meta.get("title", ""),
        )


class FakeBridge:
    """Stands in for ``PageBridge``: records every op and serves canned results.

    ``set_nodes(op, records, key=...)`` answers ``collect(op)``; *key* narrows
    the answer to one CSS selector (or text/label) argument.  ``responses``
    maps ``call`` ops to a value or to a callable receiving the op's args.
    """

    def __init__(self, page: Any = None) -> None:
        self.page = page if page is not None else make_page()
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.collected: list[tuple[str, dict[str, Any]]] = []
        self.responses: dict[str, Any] = {}
        self._specs: dict[tuple[str, Any], _Spec] = {}

    def set_nodes(self, op: str, records: list[dict[str, Any]], key: Any = None, **meta: Any) -> list[MagicMock]:
        spec = _Spec(records, **meta)
        self._specs[(op, key)] = spec
        return spec.handles

    def collect(self, op: str, **args: Any) -> NodeSet:
        self.collected.append((op, args))
        key = args.get("selector") or args.get("label") or args.get("text") or args.get("expression")
        spec = self._specs.get((op, key)) or self._specs.get((op, None))
        if spec is None:
            spec = _Spec([])
        return spec.build()

    def call(self, op: str, **args: Any) -> Any:
        self.calls.append((op, args))
        response = self.responses.get(op)
        if callable(response):
            return response(**args)
        return response

    def ops(self) -> list[str]:
        return [op for op, _ in self.calls]

    def calls_of(self, op: str) -> list[dict[str, Any]]:
        return [args for name, args in self.calls if name == op]


# ---------------------------------------------------------------------------
# Time / page doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock that only advances when ``sleep`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_page(url: str = "https://example.com/") -> MagicMock:
    page = MagicMock(name="page")
    page.is_closed.return_value = False
    page.url = url
    return page


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def page() -> MagicMock:
    return make_page()


@pytest.fixture()
def bridge(page) -> FakeBridge:
    return FakeBridge(page)


@pytest.fixture()
def session_factory(settings, clock):
    """Build an ``InteractionSession`` whose components talk to a ``FakeBridge``."""
    from webreach.browser.resolver import Resolver
    from webreach.browser.simulator import Simulator
    from webreach.browser.snapshot import SnapshotSerializer
    from webreach.session import InteractionSession

    def factory(url: str = "https://example.com/") -> tuple[InteractionSession, FakeBridge]:
        page = make_page(url)
        fake = FakeBridge(page)
        session = InteractionSession(page, settings=settings, clock=clock, sleep=clock.sleep)
        session.bridge = fake
        session.resolver = Resolver(fake, session.markers, settings, session.cancel, clock, clock.sleep)
        session.simulator = Simulator(
            fake,
            session.resolver,
            session.pointer,
            settings,
            cancel=session.cancel,
            clock=clock,
            sleep=clock.sleep,
            rng=random.Random(7),
        )
        session.snapshotter = SnapshotSerializer(fake, session.markers, settings)
        return session, fake

    return factory


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that require a real browser")

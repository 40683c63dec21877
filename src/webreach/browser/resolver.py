"""Selector resolution: turn a ``SelectorQuery`` into a concrete page node.

Collection happens in the page (``webreach.browser.runtime``); everything
after that is plain Python over ``ElementRecord`` facts:

1. visibility filtering (``webreach.browser.visibility``)
2. topmost-modal priority for CSS queries
3. scoring / ranking per query kind
4. index selection under the configured index policy
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from webreach.browser.visibility import is_interactable
from webreach.exceptions import ElementNotFound
from webreach.models.elements import Candidate, ElementRecord
from webreach.models.selectors import AriaFuzzy, Css, MarkerId, SelectorQuery, Text, XPath, ensure_query
from webreach.settings import Settings, get_settings

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle

    from webreach.browser.runtime import NodeSet, PageBridge
    from webreach.browser.snapshot import MarkerRegistry
    from webreach.session import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (attribute key, weight-table prefix) pairs examined by the fuzzy ARIA scorer
_SCORED_FIELDS: tuple[tuple[str, str], ...] = (
    ("aria-label", "aria_label"),
    ("placeholder", "placeholder"),
    ("aria-placeholder", "placeholder"),
    ("name", "name"),
    ("data-testid", "testid"),
    ("title", "title"),
    ("alt", "alt"),
)

_ACTIONABLE_TAGS = frozenset({"a", "button"})
_ACTIONABLE_ROLES = frozenset({"button", "link"})
_ACTIONABLE_INPUT_TYPES = frozenset({"submit", "button"})


# ---------------------------------------------------------------------------
# Pure scoring / ranking
# ---------------------------------------------------------------------------


def score_element(record: ElementRecord, label: str, weights: Mapping[str, int]) -> int:
    """Score *record* against a fuzzy accessible-name *label*.

    Every rule in *weights* whose condition holds is a match; the score is
    the highest matching weight, or ``0`` when nothing matches.  Comparison
    is case-insensitive on trimmed values.

    Rule keys are ``<field>_exact``, ``<field>_prefix``, ``<field>_contains``,
    plus ``text_exact`` (visible text of a button or link) and
    ``role_equals``.
    """
    needle = label.strip().lower()
    if not needle:
        return 0

    best = 0

    def consider(rule: str) -> None:
        nonlocal best
        weight = weights.get(rule, 0)
        if weight > best:
            best = weight

    for attr_name, prefix in _SCORED_FIELDS:
        value = record.attr(attr_name).lower()
        if not value:
            continue
        if value == needle:
            consider(f"{prefix}_exact")
        if value.startswith(needle):
            consider(f"{prefix}_prefix")
        if needle in value:
            consider(f"{prefix}_contains")

    if record.role and record.role == needle:
        consider("role_equals")
    if _is_actionable(record) and record.text.strip().lower() == needle:
        consider("text_exact")
    return best


def rank_candidates(candidates: list[Candidate]) -> list[Candidate]:
    """Stable sort by descending score, ties broken by document order."""
    return sorted(candidates, key=lambda c: (-c.score, c.record.order))


def rank_text_matches(records: list[ElementRecord]) -> list[ElementRecord]:
    """Exact trimmed-text matches first, then actionable ancestors, then order."""
    return sorted(records, key=lambda r: (not r.exact, not (r.actionable or _is_actionable(r)), r.order))


def select_index(items: Sequence[T], index: int, policy: str = "clamp", description: str = "") -> tuple[T | None, bool]:
    """Pick ``items[index]`` under an index policy.

    Returns ``(item, clamped)``.  Out of range under ``"clamp"`` selects the
    nearest end (logged as a warning, ``clamped=True``); under ``"strict"``
    it returns ``(None, False)``.
    """
    if not items:
        return None, False
    if 0 <= index < len(items):
        return items[index], False
    if policy == "strict":
        logger.info(
            "Index %d out of range for %s (%d match(es)); strict policy returns nothing",
            index,
            description or "query",
            len(items),
        )
        return None, False
    clamped_to = len(items) - 1 if index >= len(items) else 0
    logger.warning(
        "Index %d out of range for %s (%d match(es)); clamping to %d",
        index,
        description or "query",
        len(items),
        clamped_to,
    )
    return items[clamped_to], True


def _is_actionable(record: ElementRecord) -> bool:
    if record.tag == "input" and record.input_type in _ACTIONABLE_INPUT_TYPES:
        return True
    return record.tag in _ACTIONABLE_TAGS or record.role in _ACTIONABLE_ROLES


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class Resolver:
    """Resolves selector queries against one page.

    Args:
        bridge: The page's ``PageBridge``.
        markers: The session's ``MarkerRegistry``; required for ``MarkerId`` queries.
        settings: Settings override (defaults to ``get_settings()``).
        cancel: Cancellation token consulted while polling in ``locate``.
        clock: Monotonic clock in seconds (injectable for tests).
        sleep: Sleep function in seconds (injectable for tests).
    """

    def __init__(
        self,
        bridge: PageBridge,
        markers: MarkerRegistry | None = None,
        settings: Settings | None = None,
        cancel: CancellationToken | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._bridge = bridge
        self._markers = markers
        self._settings = settings or get_settings()
        self._cancel = cancel
        self._clock = clock
        self._sleep = sleep

    # -- public API ------------------------------------------------------

    def resolve_all(
        self,
        query: SelectorQuery | str,
        within: Candidate | ElementHandle | None = None,
        visible_only: bool = True,
        constrain_to_viewport: bool = False,
    ) -> list[Candidate]:
        """Return every ranked match for *query*, with element handles."""
        query = ensure_query(query)
        nodes, ranked = self._collect_ranked(query, within, visible_only, constrain_to_viewport)
        if nodes is None:
            return []
        try:
            return [
                Candidate(record=record, handle=nodes.node(index), score=score)
                for index, record, score in ranked
            ]
        finally:
            nodes.dispose()

    def resolve(
        self,
        query: SelectorQuery | str,
        index: int = 0,
        within: Candidate | ElementHandle | None = None,
        visible_only: bool = True,
    ) -> Candidate | None:
        """Return the match at *index*, or ``None``.

        Under the ``clamp`` index policy an out-of-range *index* selects the
        last match (logged, and flagged on the candidate); under ``strict``
        it yields ``None``.
        """
        query = ensure_query(query)
        nodes, ranked = self._collect_ranked(query, within, visible_only, False)
        if nodes is None:
            return None
        try:
            if not ranked:
                return None
            chosen, clamped = self._pick_index(query, ranked, index)
            if chosen is None:
                return None
            node_index, record, score = chosen
            handle = nodes.node(node_index)
            if handle is None:
                return None
            return Candidate(record=record, handle=handle, score=score, clamped=clamped)
        finally:
            nodes.dispose()

    def locate(
        self,
        query: SelectorQuery | str,
        index: int = 0,
        timeout_ms: int | None = None,
        within: Candidate | ElementHandle | None = None,
    ) -> Candidate:
        """Poll ``resolve`` until a match appears or the retry window closes.

        Raises:
            ElementNotFound: Nothing matched within the window, or the marker
                registry does not cover a ``MarkerId`` query.
            OperationCancelled: The session's cancellation token was set.
        """
        query = ensure_query(query)
        if isinstance(query, MarkerId):
            stale = self._marker_problem(query)
            if stale:
                raise ElementNotFound(query.to_string(), stale)

        rs = self._settings.resolver
        window_s = (rs.retry_timeout_ms if timeout_ms is None else timeout_ms) / 1000.0
        poll_s = max(rs.poll_interval_ms, 1) / 1000.0
        deadline = self._clock() + window_s
        attempt = 0

        while True:
            attempt += 1
            candidate = self.resolve(query, index=index, within=within)
            if candidate is not None:
                return candidate
            if self._cancel is not None:
                self._cancel.raise_if_cancelled()
            if self._clock() >= deadline:
                break
            logger.debug("No match for %s (attempt %d); retrying", query.to_string(), attempt)
            self._sleep(poll_s)

        raise ElementNotFound(query.to_string(), f"no visible match after {attempt} attempt(s)")

    # -- internals -------------------------------------------------------

    def _collect_ranked(
        self,
        query: SelectorQuery,
        within: Candidate | ElementHandle | None,
        visible_only: bool,
        constrain_to_viewport: bool,
    ) -> tuple[NodeSet | None, list[tuple[int, ElementRecord, int]]]:
        nodes = self._collect(query, _handle_of(within))
        if nodes is None:
            return None, []
        if nodes.error:
            logger.debug("Query %s failed in page: %s", query.to_string(), nodes.error)
            nodes.dispose()
            return None, []

        pairs = list(enumerate(nodes.records))
        if visible_only:
            buffer_px = self._settings.resolver.viewport_buffer_px
            pairs = [
                (i, r)
                for i, r in pairs
                if is_interactable(
                    r, nodes.viewport, constrain_to_viewport=constrain_to_viewport, buffer_px=buffer_px
                )
            ]

        if isinstance(query, Css) and nodes.modal_open and nodes.top_modal >= 0:
            in_top_modal = [(i, r) for i, r in pairs if r.modal_layer == nodes.top_modal]
            if in_top_modal:
                pairs = in_top_modal

        return nodes, self._rank(query, pairs)

    def _collect(self, query: SelectorQuery, within: ElementHandle | None) -> NodeSet | None:
        if isinstance(query, MarkerId) and self._marker_problem(query):
            return None
        args = query.descriptor()
        op = args.pop("op")
        if isinstance(query, MarkerId):
            args["generation"] = self._markers.generation
            return self._bridge.collect(op, **args)
        if isinstance(query, AriaFuzzy):
            args["fields"] = [name for name, _ in _SCORED_FIELDS]
        # XPath always evaluates against the top-level document
        if not isinstance(query, XPath):
            args["within"] = within
        return self._bridge.collect(op, **args)

    def _rank(
        self, query: SelectorQuery, pairs: list[tuple[int, ElementRecord]]
    ) -> list[tuple[int, ElementRecord, int]]:
        if isinstance(query, AriaFuzzy):
            weights = self._settings.resolver.aria_weights
            scored = [(i, r, score_element(r, query.label, weights)) for i, r in pairs]
            scored = [item for item in scored if item[2] > 0]
            return sorted(scored, key=lambda item: (-item[2], item[1].order))
        if isinstance(query, Text):
            by_record = {id(r): i for i, r in pairs}
            return [(by_record[id(r)], r, 0) for r in rank_text_matches([r for _, r in pairs])]
        return [(i, r, 0) for i, r in pairs]

    def _pick_index(
        self, query: SelectorQuery, ranked: list[tuple[int, ElementRecord, int]], index: int
    ) -> tuple[tuple[int, ElementRecord, int] | None, bool]:
        return select_index(ranked, index, self._settings.resolver.index_policy, query.to_string())

    def _marker_problem(self, query: MarkerId) -> str:
        if self._markers is None:
            return "no marker registry for this session"
        return self._markers.staleness(query.marker)


def _handle_of(within: Any) -> ElementHandle | None:
    if within is None:
        return None
    if isinstance(within, Candidate):
        return within.handle
    return within

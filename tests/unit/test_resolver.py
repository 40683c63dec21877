"""Unit tests for webreach.browser.resolver: scoring, ranking, index policy, polling."""

from __future__ import annotations

import logging

import pytest

from tests.conftest import FakeBridge, record, rec
from webreach.browser.resolver import (
    Resolver,
    rank_candidates,
    rank_text_matches,
    score_element,
    select_index,
)
from webreach.browser.snapshot import MarkerRegistry
from webreach.exceptions import ElementNotFound, OperationCancelled
from webreach.models.elements import Candidate
from webreach.models.selectors import AriaFuzzy, Css, MarkerId, Text
from webreach.session import CancellationToken
from webreach.settings.config import DEFAULT_ARIA_WEIGHTS


# ---------------------------------------------------------------------------
# score_element
# ---------------------------------------------------------------------------


class TestScoreElement:
    def test_aria_label_exact_wins(self) -> None:
        r = record(attrs={"aria-label": "Login", "title": "Login now"})
        assert score_element(r, "login", DEFAULT_ARIA_WEIGHTS) == DEFAULT_ARIA_WEIGHTS["aria_label_exact"]

    def test_prefix_beats_contains(self) -> None:
        prefix = record("input", attrs={"placeholder": "Search people"})
        contains = record("input", attrs={"placeholder": "Quick search"})
        assert score_element(prefix, "search", DEFAULT_ARIA_WEIGHTS) == DEFAULT_ARIA_WEIGHTS["placeholder_prefix"]
        assert score_element(contains, "search", DEFAULT_ARIA_WEIGHTS) == DEFAULT_ARIA_WEIGHTS["placeholder_contains"]

    def test_score_is_max_of_matching_rules(self) -> None:
        r = record(attrs={"title": "Send message", "data-testid": "send"})
        assert score_element(r, "send", DEFAULT_ARIA_WEIGHTS) == DEFAULT_ARIA_WEIGHTS["testid_exact"]

    def test_text_exact_only_for_actionable(self) -> None:
        button = record("button", text=" Next ")
        div = record("div", text="Next")
        assert score_element(button, "next", DEFAULT_ARIA_WEIGHTS) == DEFAULT_ARIA_WEIGHTS["text_exact"]
        assert score_element(div, "next", DEFAULT_ARIA_WEIGHTS) == 0

    def test_submit_input_value_counts_as_text(self) -> None:
        submit = record("input", type="submit", text="Log in")
        text_field = record("input", type="text", text="Log in")
        assert score_element(submit, "log in", DEFAULT_ARIA_WEIGHTS) == DEFAULT_ARIA_WEIGHTS["text_exact"]
        assert score_element(text_field, "log in", DEFAULT_ARIA_WEIGHTS) == 0

    def test_aria_placeholder_scored_like_placeholder(self) -> None:
        r = record("div", role="textbox", attrs={"aria-placeholder": "Search"})
        assert score_element(r, "search", DEFAULT_ARIA_WEIGHTS) == DEFAULT_ARIA_WEIGHTS["placeholder_exact"]

    def test_role_equals(self) -> None:
        r = record("div", role="searchbox")
        assert score_element(r, "searchbox", DEFAULT_ARIA_WEIGHTS) == DEFAULT_ARIA_WEIGHTS["role_equals"]

    def test_no_match_and_blank_label(self) -> None:
        r = record(attrs={"aria-label": "Close"})
        assert score_element(r, "open", DEFAULT_ARIA_WEIGHTS) == 0
        assert score_element(r, "   ", DEFAULT_ARIA_WEIGHTS) == 0

    def test_custom_weights(self) -> None:
        r = record(attrs={"alt": "company logo"})
        weights = {**DEFAULT_ARIA_WEIGHTS, "alt_contains": 95}
        assert score_element(r, "logo", weights) == 95

    def test_case_insensitive(self) -> None:
        r = record(attrs={"aria-label": "SUBMIT"})
        assert score_element(r, "Submit", DEFAULT_ARIA_WEIGHTS) == DEFAULT_ARIA_WEIGHTS["aria_label_exact"]


# ---------------------------------------------------------------------------
# ranking helpers
# ---------------------------------------------------------------------------


class TestRanking:
    def test_rank_candidates_ties_keep_document_order(self) -> None:
        cands = [
            Candidate(record(order=3), score=50),
            Candidate(record(order=1), score=50),
            Candidate(record(order=2), score=90),
        ]
        ranked = rank_candidates(cands)
        assert [c.record.order for c in ranked] == [2, 1, 3]

    def test_rank_text_matches_exact_then_actionable(self) -> None:
        loose_div = record("div", order=0)
        loose_button = record("span", order=1, actionable=True)
        exact_late = record("div", order=5, exact=True)
        ranked = rank_text_matches([loose_div, loose_button, exact_late])
        assert [r.order for r in ranked] == [5, 1, 0]


class TestSelectIndex:
    def test_in_range(self) -> None:
        assert select_index(["a", "b"], 1) == ("b", False)

    def test_clamp_high_index_to_last(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="webreach.browser.resolver"):
            assert select_index(["a", "b"], 5, "clamp", "#x") == ("b", True)
        assert "clamping to 1" in caplog.text

    def test_strict_returns_none(self) -> None:
        assert select_index(["a"], 3, "strict") == (None, False)

    def test_empty(self) -> None:
        assert select_index([], 0) == (None, False)


# ---------------------------------------------------------------------------
# Resolver against a fake bridge
# ---------------------------------------------------------------------------


@pytest.fixture()
def resolver_for(settings, clock):
    def factory(bridge: FakeBridge, markers: MarkerRegistry | None = None, cancel=None) -> Resolver:
        return Resolver(bridge, markers, settings, cancel, clock, clock.sleep)

    return factory


class TestResolve:
    def test_out_of_range_index_clamps_to_only_match(self, bridge, resolver_for) -> None:
        handles = bridge.set_nodes("css", [rec("button", 0, attrs={"id": "submit"})], key="#submit")
        candidate = resolver_for(bridge).resolve("#submit", index=3)
        assert candidate is not None
        assert candidate.handle is handles[0]
        assert candidate.clamped is True

    def test_in_range_index_not_clamped(self, bridge, resolver_for) -> None:
        handles = bridge.set_nodes("css", [rec("button", 0, attrs={"id": "submit"})], key="#submit")
        candidate = resolver_for(bridge).resolve("#submit", index=0)
        assert candidate.handle is handles[0]
        assert candidate.clamped is False

    def test_strict_policy_yields_nothing(self, bridge, resolver_for, settings) -> None:
        settings.resolver.index_policy = "strict"
        bridge.set_nodes("css", [rec("button", 0)], key="#submit")
        assert resolver_for(bridge).resolve("#submit", index=3) is None

    def test_aria_ranking_order(self, bridge, resolver_for) -> None:
        bridge.set_nodes(
            "aria",
            [
                rec("input", 0, attrs={"placeholder": "Login here"}),
                rec("a", 1, attrs={"title": "Login help", "href": "/help"}),
                rec("button", 2, attrs={"aria-label": "Login"}),
            ],
        )
        ranked = resolver_for(bridge).resolve_all(AriaFuzzy("Login"))
        assert [c.record.tag for c in ranked] == ["button", "input", "a"]
        assert ranked[0].score == DEFAULT_ARIA_WEIGHTS["aria_label_exact"]

    def test_exact_aria_label_beats_title(self, bridge, resolver_for) -> None:
        handles = bridge.set_nodes(
            "aria",
            [rec("button", 0, attrs={"title": "Login button"}), rec("button", 1, attrs={"aria-label": "Login"})],
        )
        assert resolver_for(bridge).resolve("aria/Login").handle is handles[1]

    def test_zero_score_aria_matches_dropped(self, bridge, resolver_for) -> None:
        bridge.set_nodes("aria", [rec("div", 0, attrs={"aria-label": "Other"})])
        assert resolver_for(bridge).resolve_all("aria/Login") == []

    def test_hidden_nodes_filtered(self, bridge, resolver_for) -> None:
        handles = bridge.set_nodes(
            "css",
            [
                rec("button", 0, style={"display": "none"}),
                rec("button", 1, rect={"x": 0, "y": 0, "width": 0, "height": 0}),
                rec("button", 2),
            ],
        )
        candidate = resolver_for(bridge).resolve(Css("button"))
        assert candidate.handle is handles[2]

    def test_visible_only_false_keeps_hidden(self, bridge, resolver_for) -> None:
        bridge.set_nodes("css", [rec("button", 0, style={"display": "none"})])
        assert len(resolver_for(bridge).resolve_all("button", visible_only=False)) == 1
        assert resolver_for(bridge).resolve_all("button") == []

    def test_modal_priority_for_css(self, bridge, resolver_for) -> None:
        handles = bridge.set_nodes(
            "css",
            [rec("button", 0), rec("button", 1, modal_layer=0)],
            modal_open=True,
            top_modal=0,
        )
        candidate = resolver_for(bridge).resolve("button")
        assert candidate.handle is handles[1]

    def test_only_topmost_modal_takes_priority(self, bridge, resolver_for) -> None:
        handles = bridge.set_nodes(
            "css",
            [rec("button", 0), rec("button", 1, modal_layer=0), rec("button", 2, modal_layer=1)],
            modal_open=True,
            top_modal=1,
        )
        ranked = resolver_for(bridge).resolve_all("button")
        assert [c.handle for c in ranked] == [handles[2]]

    def test_modal_priority_skipped_for_aria(self, bridge, resolver_for) -> None:
        handles = bridge.set_nodes(
            "aria",
            [rec("button", 0, attrs={"aria-label": "Close"}), rec("button", 1, modal_layer=0, attrs={"title": "Close"})],
            modal_open=True,
            top_modal=0,
        )
        assert resolver_for(bridge).resolve("aria/Close").handle is handles[0]

    def test_aria_query_forwards_scored_fields(self, bridge, resolver_for) -> None:
        resolver_for(bridge).resolve_all(AriaFuzzy("Search"))
        op, args = bridge.collected[-1]
        assert op == "aria"
        assert args["label"] == "Search"
        assert "aria-placeholder" in args["fields"]
        assert "data-testid" in args["fields"]

    def test_text_query_prefers_exact(self, bridge, resolver_for) -> None:
        handles = bridge.set_nodes("text", [rec("div", 0), rec("button", 1, exact=True)])
        candidate = resolver_for(bridge).resolve(Text("Next"))
        assert candidate.handle is handles[1]

    def test_in_page_error_resolves_nothing(self, bridge, resolver_for) -> None:
        bridge.set_nodes("css", [rec("button", 0)], error="SyntaxError: bad selector")
        assert resolver_for(bridge).resolve("button[") is None

    def test_contains_forwarded(self, bridge, resolver_for) -> None:
        resolver_for(bridge).resolve('button:contains("Save")')
        op, args = bridge.collected[-1]
        assert op == "css"
        assert args["selector"] == "button"
        assert args["contains"] == "Save"

    def test_within_candidate_passes_handle(self, bridge, resolver_for) -> None:
        scope = Candidate(record(), handle="scope-handle")
        resolver_for(bridge).resolve_all("span", within=scope)
        assert bridge.collected[-1][1]["within"] == "scope-handle"


class TestLocate:
    def test_exhausts_window_then_raises(self, bridge, resolver_for, clock, settings) -> None:
        with pytest.raises(ElementNotFound, match="#missing"):
            resolver_for(bridge).locate("#missing")
        poll_s = settings.resolver.poll_interval_ms / 1000.0
        assert clock.sleeps and all(s == poll_s for s in clock.sleeps)
        assert clock.now >= settings.resolver.retry_timeout_ms / 1000.0

    def test_finds_element_that_appears_late(self, bridge, settings, clock) -> None:
        def sleep(seconds: float) -> None:
            clock.sleep(seconds)
            if len(clock.sleeps) == 2:
                bridge.set_nodes("css", [rec("button", 0)])

        resolver = Resolver(bridge, None, settings, None, clock, sleep)
        candidate = resolver.locate("button")
        assert candidate.record.tag == "button"
        assert len(clock.sleeps) == 2

    def test_custom_timeout(self, bridge, resolver_for, clock) -> None:
        with pytest.raises(ElementNotFound):
            resolver_for(bridge).locate("#missing", timeout_ms=500)
        assert clock.now == pytest.approx(0.5)

    def test_cancellation_interrupts_polling(self, bridge, resolver_for) -> None:
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            resolver_for(bridge, cancel=token).locate("#missing")


class TestMarkerQueries:
    def test_stale_registry_fails_immediately(self, bridge, resolver_for, clock) -> None:
        with pytest.raises(ElementNotFound, match="stale"):
            resolver_for(bridge, MarkerRegistry()).locate(MarkerId(0))
        assert bridge.collected == []
        assert clock.sleeps == []

    def test_no_registry(self, bridge, resolver_for) -> None:
        with pytest.raises(ElementNotFound, match="no marker registry"):
            resolver_for(bridge).locate("id/1")

    def test_marker_out_of_snapshot_range(self, bridge, resolver_for) -> None:
        markers = MarkerRegistry()
        markers.begin()
        markers.commit(2)
        with pytest.raises(ElementNotFound, match="not in the current snapshot"):
            resolver_for(bridge, markers).locate(MarkerId(5))

    def test_current_marker_collects_with_generation(self, bridge, resolver_for) -> None:
        markers = MarkerRegistry()
        markers.begin()
        markers.begin()
        markers.commit(3)
        bridge.set_nodes("marker", [rec("button", 0)])
        candidate = resolver_for(bridge, markers).locate("1")
        assert candidate is not None
        assert bridge.collected[-1] == ("marker", {"marker": 1, "generation": 2})

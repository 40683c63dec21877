"""Unit tests for webreach.models.selectors: parsing raw selector strings."""

from __future__ import annotations

import pytest

from webreach.models.selectors import AriaFuzzy, Css, MarkerId, Text, XPath, ensure_query, parse_selector


class TestParseSelector:
    """Each prefix maps to exactly one query variant."""

    def test_aria_prefix(self) -> None:
        assert parse_selector("aria/Login") == AriaFuzzy("Login")

    def test_text_prefix(self) -> None:
        assert parse_selector("text/Sign in") == Text("Sign in")

    def test_xpath_prefix(self) -> None:
        assert parse_selector("xpath///button[1]") == XPath("//button[1]")

    def test_marker_forms(self) -> None:
        assert parse_selector("id/12") == MarkerId(12)
        assert parse_selector("7") == MarkerId(7)
        assert parse_selector(" 3 ") == MarkerId(3)

    def test_plain_css(self) -> None:
        assert parse_selector("#submit") == Css("#submit")
        assert parse_selector('button[data-testid="like"]') == Css('button[data-testid="like"]')

    def test_contains_suffix(self) -> None:
        query = parse_selector('button:contains("Post now")')
        assert query == Css("button", contains="Post now")
        assert query.to_string() == 'button:contains("Post now")'

    def test_contains_single_quotes(self) -> None:
        assert parse_selector("a:contains('Next')") == Css("a", contains="Next")

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_empty_rejected(self, raw: str) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            parse_selector(raw)

    def test_bad_marker_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-negative integer"):
            parse_selector("id/abc")

    def test_to_string_round_trips_prefix(self) -> None:
        for raw in ("aria/Send", "text/Next", "xpath///a", "id/4", "div.card"):
            assert parse_selector(raw).to_string() == raw


class TestEnsureQuery:
    def test_passes_parsed_query_through(self) -> None:
        query = AriaFuzzy("Search")
        assert ensure_query(query) is query

    def test_parses_strings(self) -> None:
        assert ensure_query("id/0") == MarkerId(0)

    def test_descriptor_names_collect_op(self) -> None:
        assert Css("a").descriptor() == {"op": "css", "selector": "a", "contains": ""}
        assert MarkerId(2).descriptor() == {"op": "marker", "marker": 2}

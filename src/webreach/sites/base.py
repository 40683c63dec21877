"""Shared machinery for platform site adapters.

An adapter composes the resolver and simulator of one session with
platform-specific selector knowledge.  Adapters raise ``WebReachError``
subclasses; the tool layer turns those into ``{"success": false}`` envelopes
prefixed with the tool name.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Literal
from urllib.parse import urlparse

from webreach.browser.resolver import select_index
from webreach.exceptions import ComposerNotFound, ElementNotFound, WrongSite
from webreach.models.elements import Candidate
from webreach.models.selectors import Css
from webreach.models.tools import ToolResult

if TYPE_CHECKING:
    from webreach.session import InteractionSession

logger = logging.getLogger(__name__)

_CLICKABLE = 'button, [role="button"]'

Desired = Literal["on", "off", "toggle"]


def normalize_handle(text: str | None) -> str:
    """``"@Alice "`` -> ``"alice"``."""
    return (text or "").replace("@", "").strip().lower()


def is_own_post(author_handle: str | None, own_handle: str | None) -> bool:
    """True only when both handles are known and equal."""
    author = normalize_handle(author_handle)
    own = normalize_handle(own_handle)
    return bool(author) and bool(own) and author == own


def host_matches(url: str, hosts: Sequence[str]) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host == h or host.endswith("." + h) for h in hosts)


class SiteAdapter:
    """Base class: host checks, scoped lookups, toggles and composers."""

    platform: str = ""
    hosts: tuple[str, ...] = ()

    def __init__(self, session: InteractionSession) -> None:
        self.session = session

    # -- context ---------------------------------------------------------

    def ensure_host(self) -> None:
        url = self.session.page.url
        if not host_matches(url, self.hosts):
            raise WrongSite(self.platform, url)

    # -- lookups ---------------------------------------------------------

    def find_all(self, selectors: Sequence[str], within: Candidate | None = None) -> list[Candidate]:
        """Visible matches for the first selector in *selectors* that has any."""
        for selector in selectors:
            found = self.session.resolver.resolve_all(Css(selector), within=within)
            if found:
                return found
        return []

    def find_first(self, selectors: Sequence[str], within: Candidate | None = None) -> Candidate | None:
        found = self.find_all(selectors, within)
        return found[0] if found else None

    def pick(self, candidates: list[Candidate], index: int, what: str) -> Candidate | None:
        chosen, clamped = select_index(candidates, index, self.session.settings.resolver.index_policy, what)
        if chosen is not None and clamped:
            chosen.clamped = True
        return chosen

    def clickable(self, candidate: Candidate) -> Candidate:
        """The nearest button-like ancestor of *candidate* (or itself)."""
        nodes = self.session.bridge.collect("closest", target=candidate.handle, selector=_CLICKABLE)
        try:
            if not nodes.records:
                return candidate
            handle = nodes.node(0)
            if handle is None:
                return candidate
            return Candidate(record=nodes.records[0], handle=handle, score=candidate.score, clamped=candidate.clamped)
        finally:
            nodes.dispose()

    def wait_for(
        self, selectors: Sequence[str], timeout_ms: int = 4000, within: Candidate | None = None
    ) -> Candidate:
        """Poll for the first visible match of any selector in *selectors*."""
        return self.session.resolver.locate(Css(", ".join(selectors)), timeout_ms=timeout_ms, within=within)

    # -- actions ---------------------------------------------------------

    def click(self, candidate: Candidate) -> dict:
        return self.session.simulator.click(candidate)

    def toggle(
        self,
        *,
        on_selectors: Sequence[str],
        off_selectors: Sequence[str],
        desired: Desired,
        index: int,
        on_message: str,
        off_message: str,
        already_on: str,
        already_off: str,
    ) -> tuple[ToolResult, Candidate | None]:
        """Click an on/off toggle that renders as two different buttons.

        *on_selectors* match buttons that turn the state on (e.g. "like"),
        *off_selectors* those that turn it off ("unlike").  When the desired
        state is already present the result is a successful no-op with
        ``already=True``.
        """
        turn_on = self.find_all(on_selectors)
        turn_off = self.find_all(off_selectors)

        if desired == "on":
            target = self.pick(turn_on, index, on_selectors[0])
            if target is None and turn_off:
                return ToolResult.ok(already_on, already=True), None
            effective = "on"
        elif desired == "off":
            target = self.pick(turn_off, index, off_selectors[0])
            if target is None and turn_on:
                return ToolResult.ok(already_off, already=True), None
            effective = "off"
        else:
            target = self.pick(turn_on, index, on_selectors[0])
            effective = "on"
            if target is None:
                target = self.pick(turn_off, index, off_selectors[0])
                effective = "off"

        if target is None:
            raise ElementNotFound(", ".join([*on_selectors, *off_selectors]), "no toggle buttons visible")

        clicked = self.clickable(target)
        self.click(clicked)
        message = on_message if effective == "on" else off_message
        return ToolResult.ok(message, index=index, clamped=clicked.clamped or None), clicked

    def find_composer(
        self,
        composer_selectors: Sequence[str],
        open_selectors: Sequence[str] = (),
        timeout_ms: int = 4000,
        within: Candidate | None = None,
    ) -> Candidate:
        """Locate the text composer, opening it first when needed.

        *within* scopes both the composer and its opener to one post.

        Raises:
            ComposerNotFound: The composer never appeared.
        """
        composer = self.find_first(composer_selectors, within=within)
        if composer is not None:
            return composer
        opener = self.find_first(open_selectors, within=within) if open_selectors else None
        if opener is not None:
            self.click(self.clickable(opener))
        try:
            return self.wait_for(composer_selectors, timeout_ms=timeout_ms, within=within)
        except ElementNotFound as exc:
            raise ComposerNotFound(self.platform, "open the composer manually and try again") from exc

    def fill_composer(self, composer: Candidate, text: str) -> None:
        """Focus the composer and insert *text* as one editor transaction.

        Rich editors keep their own document model, so the text goes in
        through the editor's insert-text command rather than per-key events.
        """
        self.click(composer)
        outcome = self.session.bridge.call("insert_text", target=composer.handle, text=text) or {}
        if not outcome.get("inserted"):
            raise ComposerNotFound(self.platform, "composer does not accept text")
        if not outcome.get("exec_command"):
            logger.debug("%s composer rejected insertText; fell back to direct text insertion", self.platform)
        self.session.wait(200)

    def submit(self, send_selectors: Sequence[str], what: str = "send", within: Candidate | None = None) -> None:
        try:
            button = self.wait_for(send_selectors, timeout_ms=3000, within=within)
        except ElementNotFound as exc:
            raise ElementNotFound(", ".join(send_selectors), f"{self.platform} {what} button not found") from exc
        if button.record.disabled:
            raise ElementNotFound(button.record.tag, f"{self.platform} {what} button is disabled")
        self.click(self.clickable(button))

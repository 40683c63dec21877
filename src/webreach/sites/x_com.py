"""X.com (Twitter) adapter: search, like, reply, post, follow."""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from webreach.exceptions import ElementNotFound
from webreach.models.elements import Candidate
from webreach.models.tools import ToolResult
from webreach.sites.base import SiteAdapter, is_own_post

logger = logging.getLogger(__name__)

SEARCH_FILTERS = {
    "top": "top",
    "latest": "live",
    "people": "user",
    "photos": "image",
    "videos": "video",
}

LIKE = ['button[data-testid="like"]', '[data-testid="like"]']
UNLIKE = ['button[data-testid="unlike"]', '[data-testid="unlike"]']
FOLLOW = ['[data-testid$="-follow"]', '[data-testid$="-Follow"]', '[data-testid="follow"]']
UNFOLLOW = ['[data-testid$="-unfollow"]', '[data-testid$="-Unfollow"]', '[data-testid="unfollow"]']
REPLY = ['button[data-testid="reply"]', '[data-testid="reply"]']
UNFOLLOW_CONFIRM = ['[data-testid="confirmationSheetConfirm"]']

COMPOSER = [
    '[data-testid="tweetTextarea_0"] div[contenteditable="true"]',
    '[data-testid="tweetTextarea_1"] div[contenteditable="true"]',
    '[data-testid="tweetTextarea_0"][contenteditable="true"]',
    '[data-testid="tweetTextarea_1"][contenteditable="true"]',
    'div[role="textbox"][contenteditable="true"]',
]
OPEN_COMPOSER = [
    '[data-testid="SideNav_NewTweet_Button"]',
    '[data-testid="AppTabBar_NewTweet_Button"]',
    '[data-testid="AppTabBar_Compose_Button"]',
]
SEND = ['[data-testid="tweetButton"]', '[data-testid="tweetButtonInline"]']

ACCOUNT_HANDLE = '[data-testid="SideNav_AccountSwitcher_Button"] [dir="ltr"] span'
POST_CONTAINER = '[data-testid="tweet"]'
POST_AUTHOR_HANDLE = '[data-testid="User-Handle"] span, [data-testid="User-Name"] a[tabindex="-1"] span'
REPLIED_ATTR = "data-wr-replied"

_DESIRED = {"like": "on", "unlike": "off", "follow": "on", "unfollow": "off", "toggle": "toggle"}


def search_url(query: str, filter: str | None = None) -> str:
    params = {"q": query, "src": "typed_query", "f": SEARCH_FILTERS[filter or "latest"]}
    return f"https://x.com/search?{urlencode(params)}"


class XAdapter(SiteAdapter):
    platform = "x.com"
    hosts = ("x.com", "twitter.com")

    def search(self, query: str, filter: str | None = None) -> ToolResult:
        url = search_url(query, filter)
        final_url = self.session.navigate(url)
        return ToolResult.ok(f"Opened search for {query!r}", url=final_url)

    def like(self, index: int = 0, action: str = "like") -> ToolResult:
        self.ensure_host()
        result, _ = self.toggle(
            on_selectors=LIKE,
            off_selectors=UNLIKE,
            desired=_DESIRED[action],
            index=index,
            on_message="Liked post",
            off_message="Unliked post",
            already_on="Already liked",
            already_off="Already unliked",
        )
        return result

    def follow(self, index: int = 0, action: str = "follow") -> ToolResult:
        self.ensure_host()
        result, clicked = self.toggle(
            on_selectors=FOLLOW,
            off_selectors=UNFOLLOW,
            desired=_DESIRED[action],
            index=index,
            on_message="Followed",
            off_message="Unfollowed",
            already_on="Already following",
            already_off="Already not following",
        )
        if clicked is not None and result.message == "Unfollowed":
            self._confirm_unfollow()
        return result

    def own_handle(self) -> str:
        return self.session.bridge.call("text_of", selector=ACCOUNT_HANDLE) or ""

    def author_handle(self, candidate: Candidate) -> str:
        return (
            self.session.bridge.call(
                "text_of", within=candidate.handle, ancestor=POST_CONTAINER, selector=POST_AUTHOR_HANDLE
            )
            or ""
        )

    def reply_targets(self) -> list[Candidate]:
        """Visible reply buttons, minus own posts and posts already replied to."""
        me = self.own_handle()
        targets = []
        for candidate in self.find_all(REPLY):
            if self.session.bridge.call("has_attr", target=candidate.handle, name=REPLIED_ATTR):
                continue
            if is_own_post(self.author_handle(candidate), me):
                logger.debug("Skipping own post by @%s", me)
                continue
            targets.append(candidate)
        return targets

    def reply(self, text: str, index: int = 0) -> ToolResult:
        self.ensure_host()
        target = self.pick(self.reply_targets(), index, "x reply buttons")
        if target is None:
            raise ElementNotFound(REPLY[0], "no eligible posts (own and already-replied posts are skipped)")

        self.click(self.clickable(target))
        composer = self.find_composer(COMPOSER)
        self.fill_composer(composer, text)
        self.submit(SEND, "reply")
        self.session.bridge.call("set_attr", target=target.handle, name=REPLIED_ATTR, value="true")
        return ToolResult.ok("Reply sent", index=index, clamped=target.clamped or None)

    def post(self, text: str) -> ToolResult:
        self.ensure_host()
        composer = self.find_composer(COMPOSER, OPEN_COMPOSER)
        self.fill_composer(composer, text)
        self.submit(SEND, "post")
        return ToolResult.ok("Post sent")

    def _confirm_unfollow(self) -> None:
        try:
            confirm = self.wait_for(UNFOLLOW_CONFIRM, timeout_ms=1500)
        except ElementNotFound:
            logger.debug("No unfollow confirmation sheet appeared")
            return
        self.click(confirm)

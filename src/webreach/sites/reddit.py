"""Reddit adapter: vote, comment and reply, join or leave a subreddit."""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from webreach.exceptions import ElementNotFound
from webreach.models.elements import Candidate
from webreach.models.tools import ToolResult
from webreach.sites.base import SiteAdapter

logger = logging.getLogger(__name__)

POSTS = ["shreddit-post", ".Post"]
COMMENTS = ["shreddit-comment", ".Comment"]

# Vote buttons live inside the post's shadow root on the current UI
VOTE_BUTTONS = {
    "up": [
        "button[upvote]",
        'button[name="upvote"]',
        'button[icon-name="upvote-outline"]',
        'button[icon-name="upvote-fill"]',
        'button[data-click-id="upvote"]',
    ],
    "down": [
        "button[downvote]",
        'button[name="downvote"]',
        'button[icon-name="downvote-outline"]',
        'button[icon-name="downvote-fill"]',
        'button[data-click-id="downvote"]',
    ],
}

JOIN_BUTTON = ["shreddit-join-button", 'button[aria-label="Subscribe"]', 'button[aria-label="Join"]']

COMMENT_EDITOR = [
    'shreddit-composer div[role="textbox"]',
    'shreddit-composer div[contenteditable="true"]',
    'shreddit-composer [role="textbox"]',
    'textarea[name="text"]',
]
# Collapsed "Share your thoughts" placeholder that expands into the editor
COMMENT_OPENER = ["faceplate-textarea-input", "faceplate-textarea-pwa"]
COMMENT_SUBMIT = ['button[slot="submit-button"]', 'shreddit-composer button[type="submit"]']
COMMENT_REPLY = ['button[slot="reply"]']
POST_OVERLAY = ["#overlayScrollContainer"]


def subreddit_url(name: str) -> str:
    sub = name.strip().removeprefix("/").removeprefix("r/").strip("/")
    return f"https://www.reddit.com/r/{sub}/"


def is_pressed(candidate: Candidate) -> bool:
    return candidate.record.attr("aria-pressed").lower() == "true"


def is_post_page(url: str) -> bool:
    return "/comments/" in urlparse(url).path


class RedditAdapter(SiteAdapter):
    platform = "reddit"
    hosts = ("reddit.com",)

    def vote(self, direction: str = "up", target: str = "post", index: int = 0) -> ToolResult:
        self.ensure_host()
        containers = self.find_all(POSTS if target == "post" else COMMENTS)
        container = self.pick(containers, index, f"reddit {target}s")
        if container is None:
            raise ElementNotFound((POSTS if target == "post" else COMMENTS)[0], f"no visible {target}s")

        button = self.find_first(VOTE_BUTTONS[direction], within=container)
        if button is None:
            raise ElementNotFound(VOTE_BUTTONS[direction][0], "vote buttons not found")
        if is_pressed(button):
            return ToolResult.ok(f"Already {direction}voted", already=True)

        self.click(button)
        return ToolResult.ok(f"{direction.capitalize()}voted {target}", index=index, clamped=container.clamped or None)

    def comment(self, text: str, target: str = "post", index: int = 0) -> ToolResult:
        """Comment on the open post, or reply to the visible comment at *index*.

        Top-level comments need the post page (or the post overlay) to be open.
        """
        self.ensure_host()
        if target == "post":
            if not is_post_page(self.session.page.url) and self.find_first(POST_OVERLAY) is None:
                raise ElementNotFound(COMMENT_EDITOR[0], "open the post page before commenting")
            editor = self.find_composer(COMMENT_EDITOR, COMMENT_OPENER)
            self.fill_composer(editor, text)
            self.submit(COMMENT_SUBMIT, "comment")
            return ToolResult.ok("Comment submitted")

        comment = self.pick(self.find_all(COMMENTS), index, "reddit comments")
        if comment is None:
            raise ElementNotFound(COMMENTS[0], "no visible comments")
        reply = self.find_first(COMMENT_REPLY, within=comment)
        if reply is None:
            raise ElementNotFound(COMMENT_REPLY[0], "reply button not found")
        self.click(reply)
        editor = self.find_composer(COMMENT_EDITOR, within=comment)
        self.fill_composer(editor, text)
        self.submit(COMMENT_SUBMIT, "reply", within=comment)
        return ToolResult.ok("Replied to comment", index=index, clamped=comment.clamped or None)

    def join(self, action: str = "join", subreddit: str | None = None) -> ToolResult:
        if subreddit:
            self.session.navigate(subreddit_url(subreddit))
            self.session.wait(1500)
        self.ensure_host()

        host = self.find_first(JOIN_BUTTON)
        if host is None:
            raise ElementNotFound(JOIN_BUTTON[0], "join button not found")

        joined = self.is_joined(host)
        if action == "join" and joined:
            return ToolResult.ok("Already joined", already=True)
        if action == "leave" and not joined:
            return ToolResult.ok("Already not a member", already=True)

        inner = self.find_first(["button"], within=host)
        self.click(inner or host)
        return ToolResult.ok("Joined subreddit" if action == "join" else "Left subreddit")

    def is_joined(self, button: Candidate) -> bool:
        if self.session.bridge.call("has_attr", target=button.handle, name="subscribed"):
            return True
        text = button.record.text.strip().lower()
        return text.startswith("joined") or text == "leave"

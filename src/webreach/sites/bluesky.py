"""Bluesky adapter: publish a post or reply to one."""

from __future__ import annotations

from webreach.exceptions import ElementNotFound
from webreach.models.tools import ToolResult
from webreach.sites.base import SiteAdapter

OPEN_COMPOSER = ['[aria-label="New Post"]', '[aria-label="New post"]', '[aria-label="Compose post"]']
POST_COMPOSER = ['[contenteditable="true"][aria-label="Write your post"]', '[role="dialog"] [contenteditable="true"]']
REPLY_COMPOSER = ['[role="dialog"] [contenteditable="true"]', '[contenteditable="true"]']
REPLY = ['[data-testid="replyBtn"]', '[aria-label="Reply"]']
SEND = [
    '[aria-label="Publish post"]',
    '[aria-label="Publish reply"]',
    '[data-testid="composerPublishBtn"]',
]


class BlueskyAdapter(SiteAdapter):
    platform = "bluesky"
    hosts = ("bsky.app",)

    def post(self, text: str) -> ToolResult:
        self.ensure_host()
        composer = self.find_composer(POST_COMPOSER, OPEN_COMPOSER)
        self.fill_composer(composer, text)
        self.submit(SEND, "post")
        return ToolResult.ok("Post published")

    def reply(self, text: str, index: int = 0) -> ToolResult:
        self.ensure_host()
        target = self.pick(self.find_all(REPLY), index, "bluesky reply buttons")
        if target is None:
            raise ElementNotFound(REPLY[-1], "no reply buttons found")

        self.click(self.clickable(target))
        composer = self.find_composer(REPLY_COMPOSER)
        self.fill_composer(composer, text)
        self.submit(SEND, "reply")
        return ToolResult.ok("Reply published", index=index, clamped=target.clamped or None)

"""LinkedIn adapter: like, unlike or comment on a feed post."""

from __future__ import annotations

from webreach.exceptions import ElementNotFound
from webreach.models.elements import Candidate
from webreach.models.tools import ToolResult
from webreach.sites.base import SiteAdapter

POSTS = [
    ".feed-shared-update-v2",
    '[data-urn^="urn:li:activity:"]',
    ".search-content__result",
    "li.reusable-search__result-container",
]

LIKE_BUTTON = [
    ".react-button__trigger, .social-actions-button.react-button__trigger",
    'button[aria-label*="React Like"]',
    'button[aria-label*="Like"]',
    'button[aria-label*="Gostei"]',
    'button[aria-label*="Recomendar"]',
    'button[aria-label*="Unlike"]',
    'button[aria-label*="remover"]',
    ".feed-shared-social-action-bar__action-button",
]

COMMENT_EDITOR = [
    '.ql-editor[contenteditable="true"]',
    '.editor-content[contenteditable="true"]',
    '[role="textbox"][contenteditable="true"]',
    '.comments-comment-box__editor-container [contenteditable="true"]',
]
COMMENT_OPENER = [
    ".comments-comment-box__placeholder",
    ".comment-box-placeholder",
    'button[aria-label*="Comment"]',
    'button[aria-label*="Comentar"]',
]
COMMENT_SUBMIT = [
    "button.comments-comment-box__submit-button",
    "button.comments-comment-box__submit-button--cr",
    "form button.artdeco-button--primary",
]
COMMENTS = ["article.comments-comment-entity", ".comments-comment-item"]
COMMENT_BODY = ".update-components-text, .comments-comment-item__main-content"

# Label fragments of an already-active like button (EN, PT, ES)
_LIKED_LABELS = ("unlike", "remover", "quitar", "cancelar")


def is_liked(button: Candidate) -> bool:
    if button.record.attr("aria-pressed").lower() == "true":
        return True
    label = button.record.attr("aria-label").lower()
    return any(fragment in label for fragment in _LIKED_LABELS)


class LinkedInAdapter(SiteAdapter):
    platform = "linkedin"
    hosts = ("linkedin.com",)

    def posts(self) -> list[Candidate]:
        """Visible posts under whichever container selector finds the most."""
        best: list[Candidate] = []
        for selector in POSTS:
            found = self.session.resolver.resolve_all(selector)
            if len(found) > len(best):
                best = found
        return best

    def has_comment(self, post: Candidate, text: str) -> bool:
        """True when *post* already shows a comment whose body is *text*."""
        wanted = " ".join(text.split())
        for comment in self.find_all(COMMENTS, within=post):
            body = self.session.bridge.call("text_of", within=comment.handle, selector=COMMENT_BODY)
            if body and body == wanted:
                return True
        return False

    def comment(self, text: str, index: int = 0) -> ToolResult:
        self.ensure_host()
        post = self.pick(self.posts(), index, "linkedin posts")
        if post is None:
            raise ElementNotFound(POSTS[0], f"post not found at index {index}")
        if self.has_comment(post, text):
            return ToolResult.ok("Already commented with this text", already=True)

        editor = self.find_composer(COMMENT_EDITOR, COMMENT_OPENER, within=post)
        self.fill_composer(editor, text)
        self.submit(COMMENT_SUBMIT, "post", within=post)
        return ToolResult.ok("Comment posted", index=index, clamped=post.clamped or None)

    def like(self, index: int = 0, action: str = "like") -> ToolResult:
        self.ensure_host()
        post = self.pick(self.posts(), index, "linkedin posts")
        if post is None:
            raise ElementNotFound(POSTS[0], f"post not found at index {index}")

        button = self.find_first(LIKE_BUTTON, within=post)
        if button is None:
            raise ElementNotFound(LIKE_BUTTON[0], "like button not found")

        liked = is_liked(button)
        if action == "like" and liked:
            return ToolResult.ok("Already liked", already=True)
        if action == "unlike" and not liked:
            return ToolResult.ok("Already not liked", already=True)

        self.click(button)
        return ToolResult.ok("Post liked" if action == "like" else "Post unliked", index=index)

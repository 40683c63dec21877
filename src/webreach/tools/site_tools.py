"""Site adapter tools for X, Reddit, LinkedIn and Bluesky."""

from __future__ import annotations

from typing import TYPE_CHECKING

from webreach.models.tools import (
    LinkedInLikeArgs,
    PostArgs,
    RedditCommentArgs,
    RedditJoinArgs,
    RedditVoteArgs,
    ReplyArgs,
    ToolResult,
    XFollowArgs,
    XLikeArgs,
    XSearchArgs,
)
from webreach.sites import BlueskyAdapter, LinkedInAdapter, RedditAdapter, XAdapter
from webreach.tools.registry import Tool, ToolRegistry

if TYPE_CHECKING:
    from webreach.session import InteractionSession


def x_search(session: InteractionSession, args: XSearchArgs) -> ToolResult:
    return XAdapter(session).search(args.query, args.filter)


def x_like(session: InteractionSession, args: XLikeArgs) -> ToolResult:
    return XAdapter(session).like(args.index, args.action or "like")


def x_reply(session: InteractionSession, args: ReplyArgs) -> ToolResult:
    return XAdapter(session).reply(args.text, args.index)


def x_post(session: InteractionSession, args: PostArgs) -> ToolResult:
    return XAdapter(session).post(args.text)


def x_follow(session: InteractionSession, args: XFollowArgs) -> ToolResult:
    return XAdapter(session).follow(args.index, args.action or "follow")


def reddit_vote(session: InteractionSession, args: RedditVoteArgs) -> ToolResult:
    return RedditAdapter(session).vote(args.direction, args.target, args.index)


def reddit_comment(session: InteractionSession, args: RedditCommentArgs) -> ToolResult:
    return RedditAdapter(session).comment(args.text, args.target, args.index)


def reddit_join(session: InteractionSession, args: RedditJoinArgs) -> ToolResult:
    return RedditAdapter(session).join(args.action, args.subreddit)


def linkedin_like(session: InteractionSession, args: LinkedInLikeArgs) -> ToolResult:
    return LinkedInAdapter(session).like(args.index, args.action or "like")


def linkedin_comment(session: InteractionSession, args: ReplyArgs) -> ToolResult:
    return LinkedInAdapter(session).comment(args.text, args.index)


def bluesky_post(session: InteractionSession, args: PostArgs) -> ToolResult:
    return BlueskyAdapter(session).post(args.text)


def bluesky_reply(session: InteractionSession, args: ReplyArgs) -> ToolResult:
    return BlueskyAdapter(session).reply(args.text, args.index)


SITE_TOOLS: list[Tool] = [
    Tool("x_search", "On X.com, open search results for a query with an optional filter tab.", XSearchArgs, x_search, site=True),
    Tool("x_like", "On X.com, like, unlike or toggle the like on a visible post.", XLikeArgs, x_like, site=True),
    Tool("x_reply", "On X.com, reply to a visible post (never your own).", ReplyArgs, x_reply, site=True),
    Tool("x_post", "On X.com, publish a new post.", PostArgs, x_post, site=True),
    Tool("x_follow", "On X.com, follow, unfollow or toggle a visible account.", XFollowArgs, x_follow, site=True),
    Tool("reddit_vote", "On Reddit, upvote or downvote a visible post or comment.", RedditVoteArgs, reddit_vote, site=True),
    Tool(
        "reddit_comment",
        "On Reddit, comment on the open post or reply to a visible comment.",
        RedditCommentArgs,
        reddit_comment,
        site=True,
    ),
    Tool("reddit_join", "On Reddit, join or leave a subreddit.", RedditJoinArgs, reddit_join, site=True),
    Tool("linkedin_like", "On LinkedIn, like or unlike a feed post by index.", LinkedInLikeArgs, linkedin_like, site=True),
    Tool("linkedin_comment", "On LinkedIn, comment on a feed post by index.", ReplyArgs, linkedin_comment, site=True),
    Tool("bluesky_post", "On Bluesky, publish a new post.", PostArgs, bluesky_post, site=True),
    Tool("bluesky_reply", "On Bluesky, reply to a visible post.", ReplyArgs, bluesky_reply, site=True),
]


def register_site_tools(registry: ToolRegistry) -> None:
    for tool in SITE_TOOLS:
        registry.register(tool)

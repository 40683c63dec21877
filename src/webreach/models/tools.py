"""Tool-call argument records and the result envelope.

Every tool consumed by the orchestrator takes one of these typed records and
returns a ``ToolResult`` serialized as ``{"success": true, ...}`` or
``{"success": false, "error": "..."}``.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ToolResult(BaseModel):
    """JSON envelope returned by every tool."""

    model_config = ConfigDict(extra="allow")

    success: bool
    error: str | None = None
    message: str | None = None

    @classmethod
    def ok(cls, message: str | None = None, **extra: Any) -> "ToolResult":
        return cls(success=True, message=message, **extra)

    @classmethod
    def fail(cls, error: str, **extra: Any) -> "ToolResult":
        return cls(success=False, error=error, **extra)

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


# ---------------------------------------------------------------------------
# Generic browser tools
# ---------------------------------------------------------------------------


class NavigateArgs(BaseModel):
    url: str = Field(description="The URL to navigate to. https:// is assumed when no scheme is given.")


class ClickArgs(BaseModel):
    selector: str = Field(description='Selector: CSS, "aria/<label>", "text/<t>", "xpath/<e>", "id/<n>" or "<n>".')
    index: int = Field(0, ge=0, description="0-based index among matches.")


class TypeArgs(BaseModel):
    selector: str = Field(description="Selector for the input, textarea or contenteditable element.")
    text: str = Field(description="Text to type.")
    clear: bool = Field(False, description="Clear the existing value first.")
    index: int = Field(0, ge=0)


class ScrollArgs(BaseModel):
    direction: Literal["up", "down"] = "down"
    amount: int = Field(500, ge=0, le=20_000, description="Pixels to scroll.")


class SnapshotArgs(BaseModel):
    viewport_only: bool = Field(False, description="Only include elements inside (or near) the viewport.")


class WaitArgs(BaseModel):
    milliseconds: int = Field(ge=0, le=120_000)


class ClickCoordinatesArgs(BaseModel):
    x: float
    y: float


class PageContentArgs(BaseModel):
    include_text: bool = Field(False, description="Include a visible-text excerpt.")


class PressKeyArgs(BaseModel):
    key: str = Field(description='Key name, e.g. "Enter", "Escape", "Tab".')


class ScreenshotArgs(BaseModel):
    max_width: int = Field(1280, ge=64)
    max_height: int = Field(800, ge=64)


# ---------------------------------------------------------------------------
# Site adapter tools
# ---------------------------------------------------------------------------


class XSearchArgs(BaseModel):
    query: str = Field(min_length=1)
    filter: Literal["top", "latest", "people", "photos", "videos"] | None = None


class ToggleArgs(BaseModel):
    """Shared shape for like / follow / vote style toggles."""

    index: int = Field(0, ge=0, description="0-based index among visible targets.")
    action: str | None = None


class XLikeArgs(ToggleArgs):
    action: Literal["like", "unlike", "toggle"] | None = "like"


class XFollowArgs(ToggleArgs):
    action: Literal["follow", "unfollow", "toggle"] | None = "follow"


class ReplyArgs(BaseModel):
    text: str = Field(min_length=1)
    index: int = Field(0, ge=0)

    @field_validator("text")
    @classmethod
    def _strip(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be blank")
        return v


class PostArgs(BaseModel):
    text: str = Field(min_length=1)


class RedditVoteArgs(BaseModel):
    direction: Literal["up", "down"] = "up"
    target: Literal["post", "comment"] = "post"
    index: int = Field(0, ge=0)


class RedditCommentArgs(ReplyArgs):
    target: Literal["post", "comment"] = Field(
        "post", description="\"post\" comments on the open post; \"comment\" replies to the comment at index."
    )


class RedditJoinArgs(BaseModel):
    action: Literal["join", "leave"] = "join"
    subreddit: str | None = Field(None, description="Subreddit to open first, e.g. \"python\" or \"r/python\".")


class LinkedInLikeArgs(ToggleArgs):
    action: Literal["like", "unlike"] | None = "like"

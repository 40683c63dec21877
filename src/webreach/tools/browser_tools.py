"""Generic browser tools: navigate, click, type, scroll, snapshot and friends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from webreach.browser.capture import capture_base64
from webreach.models.tools import (
    ClickArgs,
    ClickCoordinatesArgs,
    NavigateArgs,
    PageContentArgs,
    PressKeyArgs,
    ScreenshotArgs,
    ScrollArgs,
    SnapshotArgs,
    ToolResult,
    TypeArgs,
    WaitArgs,
)
from webreach.tools.registry import Tool, ToolRegistry

if TYPE_CHECKING:
    from webreach.session import InteractionSession


def navigate(session: InteractionSession, args: NavigateArgs) -> ToolResult:
    url = session.navigate(args.url)
    return ToolResult.ok(f"Navigated to {url}", url=url)


def click(session: InteractionSession, args: ClickArgs) -> ToolResult:
    outcome = session.simulator.click(args.selector, index=args.index)
    return ToolResult.ok(f"Clicked {args.selector} [{args.index}]", **outcome)


def type_text(session: InteractionSession, args: TypeArgs) -> ToolResult:
    outcome = session.simulator.type_text(args.selector, args.text, clear=args.clear, index=args.index)
    return ToolResult.ok(f"Typed {len(args.text)} character(s) into {args.selector}", **outcome)


def scroll(session: InteractionSession, args: ScrollArgs) -> ToolResult:
    outcome = session.simulator.scroll(args.direction, args.amount)
    return ToolResult.ok(f"Scrolled {args.direction} {args.amount}px", **outcome)


def snapshot(session: InteractionSession, args: SnapshotArgs) -> ToolResult:
    snap = session.snapshot(constrain_to_viewport=args.viewport_only)
    return ToolResult.ok(f"{len(snap.elements)} interactive element(s)", **snap.to_dict())


def wait(session: InteractionSession, args: WaitArgs) -> ToolResult:
    session.wait(args.milliseconds)
    return ToolResult.ok(f"Waited {args.milliseconds}ms")


def click_coordinates(session: InteractionSession, args: ClickCoordinatesArgs) -> ToolResult:
    outcome = session.simulator.click_at(args.x, args.y)
    return ToolResult.ok(f"Clicked at ({args.x:.0f}, {args.y:.0f})", **outcome)


def get_page_content(session: InteractionSession, args: PageContentArgs) -> ToolResult:
    info = session.bridge.call("page_info", include_text=args.include_text, max_length=2000) or {}
    return ToolResult.ok(None, **info)


def press_key(session: InteractionSession, args: PressKeyArgs) -> ToolResult:
    outcome = session.simulator.press_key(args.key)
    return ToolResult.ok(f"Pressed {args.key}", **outcome)


def screenshot(session: InteractionSession, args: ScreenshotArgs) -> ToolResult:
    data = capture_base64(session.page, args.max_width, args.max_height)
    return ToolResult.ok("Captured viewport", mime_type="image/png", image_base64=data)


BROWSER_TOOLS: list[Tool] = [
    Tool("browser_navigate", "Navigate the browser to a URL.", NavigateArgs, navigate),
    Tool(
        "browser_click",
        'Click an element. Selector may be CSS, "aria/<label>", "text/<t>", "xpath/<e>" or a snapshot id.',
        ClickArgs,
        click,
    ),
    Tool("browser_type", "Type text into an input, textarea or contenteditable element.", TypeArgs, type_text),
    Tool("browser_scroll", "Scroll the page up or down.", ScrollArgs, scroll),
    Tool(
        "browser_snapshot",
        "List interactive elements with ids usable as selectors until the next snapshot or navigation.",
        SnapshotArgs,
        snapshot,
    ),
    Tool("browser_wait", "Wait for a number of milliseconds.", WaitArgs, wait),
    Tool("browser_click_coordinates", "Click at viewport coordinates.", ClickCoordinatesArgs, click_coordinates),
    Tool("browser_get_page_content", "Get the page URL and title, optionally with visible text.", PageContentArgs, get_page_content),
    Tool("browser_press_key", "Press a keyboard key such as Enter or Escape.", PressKeyArgs, press_key),
    Tool("browser_screenshot", "Capture a downscaled screenshot of the viewport.", ScreenshotArgs, screenshot),
]


def register_browser_tools(registry: ToolRegistry) -> None:
    for tool in BROWSER_TOOLS:
        registry.register(tool)

"""CLI commands for driving a live page: snapshot, resolve and single tool calls."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from webreach.session import InteractionSession, SessionManager

inspect_app = typer.Typer(help="Open a page and inspect it the way tool calls see it.")
console = Console()


@contextmanager
def browser_session(headless: Optional[bool] = None) -> Iterator[tuple[SessionManager, InteractionSession]]:
    """Launch Chromium with the configured mask profile and register its page."""
    from playwright.sync_api import sync_playwright

    from webreach.browser.stealth import FingerprintMasker, build_browser_profile, build_mask_profile
    from webreach.session import SessionManager
    from webreach.settings import get_settings

    settings = get_settings()
    mask = build_mask_profile(settings)
    profile = build_browser_profile(mask, settings)
    if headless is not None:
        profile.launch_args["headless"] = headless

    with sync_playwright() as pw:
        browser = pw.chromium.launch(**profile.launch_args)
        try:
            context = browser.new_context(**profile.context_args)
            page = context.new_page()
            if settings.stealth.enabled:
                FingerprintMasker(mask).install(page)
            manager = SessionManager(settings)
            session = manager.register_page(page, tab_id="cli")
            yield manager, session
        finally:
            browser.close()


def _setup_logging(verbose: bool) -> None:
    from webreach.logging_setup import configure_logging

    configure_logging(level="DEBUG" if verbose else None)


@inspect_app.command("snapshot")
def snapshot_cmd(
    url: str = typer.Argument(..., help="Page to open."),
    viewport_only: bool = typer.Option(False, "--viewport-only", help="Only elements in or near the viewport."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw snapshot JSON."),
    headless: Optional[bool] = typer.Option(None, "--headless/--headful", help="Override browser.headless."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Open URL and print its interactive-element snapshot."""
    from webreach.browser.snapshot import format_snapshot

    _setup_logging(verbose)
    with browser_session(headless) as (_, session):
        session.navigate(url)
        snap = session.snapshot(constrain_to_viewport=viewport_only)
    if as_json:
        console.print_json(json.dumps(snap.to_dict(), default=str))
    else:
        console.print(format_snapshot(snap), markup=False, highlight=False)


@inspect_app.command("resolve")
def resolve_cmd(
    url: str = typer.Argument(..., help="Page to open."),
    selector: str = typer.Argument(..., help='Selector: CSS, "aria/<label>", "text/<t>" or "xpath/<e>".'),
    headless: Optional[bool] = typer.Option(None, "--headless/--headful", help="Override browser.headless."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Open URL and list every ranked match for SELECTOR."""
    from webreach.models.selectors import parse_selector

    _setup_logging(verbose)
    try:
        query = parse_selector(selector)
    except ValueError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=2)

    with browser_session(headless) as (_, session):
        session.navigate(url)
        candidates = session.resolver.resolve_all(query)

        table = Table(title=f"{query.to_string()} ({len(candidates)} match(es))")
        table.add_column("#", justify="right")
        table.add_column("tag")
        table.add_column("score", justify="right")
        table.add_column("frame")
        table.add_column("center")
        table.add_column("text")
        for i, c in enumerate(candidates):
            x, y = c.center()
            table.add_row(
                str(i), c.record.tag, str(c.score), c.frame.kind, f"({x:.0f}, {y:.0f})", c.record.text[:40]
            )
    console.print(table)
    if not candidates:
        raise typer.Exit(code=1)


@inspect_app.command("tool")
def tool_cmd(
    url: str = typer.Argument(..., help="Page to open first."),
    name: str = typer.Argument(..., help="Tool name, e.g. browser_click."),
    args: str = typer.Option("{}", "--args", help="Tool arguments as a JSON object."),
    headless: Optional[bool] = typer.Option(None, "--headless/--headful", help="Override browser.headless."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Open URL, invoke one tool and print its JSON envelope."""
    from webreach.tools import build_registry

    _setup_logging(verbose)
    try:
        arguments = json.loads(args)
    except json.JSONDecodeError as e:
        console.print(f"[red]✗[/red] --args is not valid JSON: {e}")
        raise typer.Exit(code=2)

    with browser_session(headless) as (manager, session):
        session.navigate(url)
        envelope = build_registry(manager).invoke(name, arguments)
    console.print_json(envelope)
    if not json.loads(envelope).get("success"):
        raise typer.Exit(code=1)


@inspect_app.command("tools")
def tools_cmd() -> None:
    """List the available tools and their argument schemas."""
    from webreach.session import SessionManager
    from webreach.tools import build_registry

    registry = build_registry(SessionManager())
    table = Table(title="webreach tools")
    table.add_column("name", no_wrap=True)
    table.add_column("arguments")
    table.add_column("description")
    for schema in registry.schemas():
        props = ", ".join(schema["parameters"].get("properties", {}))
        table.add_row(schema["name"], props, schema["description"])
    console.print(table)

"""Unified CLI entry point for webreach.

Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml -> env vars (WEBREACH_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import typer

from webreach.cli.inspect_cmd import inspect_app
from webreach.cli.settings_cmd import settings_app

try:
    from importlib.metadata import version

    VERSION = version("webreach")
except Exception:
    VERSION = "unknown"

APP_HELP = (
    "webreach: human-like browser interaction for agent tool calls. "
    "Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml "
    "-> env vars (WEBREACH_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.add_typer(inspect_app, name="inspect")
app.add_typer(settings_app, name="settings")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context, version: bool = typer.Option(False, "--version", help="Show version and exit.")) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"webreach {VERSION}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()

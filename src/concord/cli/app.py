"""
Root Typer application for the concord CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from concord import __version__
from concord.cli.routes import routes
from concord.cli.serve import serve

app = Typer(
    name="concord",
    help="concord — capability units wired together by synchronization rules.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"concord {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """concord CLI — serve units over HTTP and inspect their routes."""


app.command("serve")(serve)
app.command("routes")(routes)

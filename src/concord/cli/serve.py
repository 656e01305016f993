"""
CLI: ``concord serve`` — start the API server.
"""

from __future__ import annotations

import typer
import uvicorn

from concord.cli.utils import apply_overrides, console, err_console
from concord.core.settings import ConcordSettings


def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address [default: CONCORD_HOST or 0.0.0.0]"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port [default: CONCORD_PORT or 8000]"),
    base_path: str = typer.Option("/api", "--base-path", help="URL prefix for unit routes"),
    log_level: str = typer.Option("info", "--log-level"),
    sync_logging: str = typer.Option(
        "trace", "--sync-logging", help="Engine diagnostics: off, trace or verbose"
    ),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
) -> None:
    """Start the concord REST API server."""
    if sync_logging not in ("off", "trace", "verbose"):
        err_console.print(f"[red]Unknown --sync-logging level:[/red] {sync_logging}")
        raise typer.Exit(code=2)

    settings = ConcordSettings()
    host = host or settings.host
    port = port or settings.port

    apply_overrides(
        host=host,
        port=port,
        base_path=base_path,
        log_level=log_level.upper(),
        sync_logging=sync_logging,
    )
    console.print(f"[bold green]Starting concord[/bold green] on {host}:{port}{base_path}")
    uvicorn.run(
        "concord.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level.lower(),
    )

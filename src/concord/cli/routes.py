"""
CLI: ``concord routes`` — show discovered operations and their exposure.
"""

from __future__ import annotations

import json

import typer
from rich.table import Table

from concord.cli.utils import console


def routes(
    base_path: str = typer.Option("/api", "--base-path", help="URL prefix for unit routes"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List every unit operation with its passthrough decision."""
    from concord.api.app import build_engine
    from concord.core.logging import configure_logging
    from concord.core.settings import ConcordSettings
    from concord.engine.engine import Logging
    from concord.framework.dispatcher import RouteDispatcher

    configure_logging(level="WARNING", json_format=False)
    settings = ConcordSettings(base_path=base_path, sync_logging=Logging.OFF.value)
    engine = build_engine(settings)
    dispatcher = RouteDispatcher(engine, base_path=settings.base_path)
    rows = [
        (f"{settings.base_path}{descriptor.route}", descriptor.arity, decision.value)
        for descriptor, decision in dispatcher.routes()
    ]

    if json_out:
        payload = [{"route": r, "arity": a, "decision": d} for r, a, d in rows]
        console.print_json(json.dumps(payload))
        return

    table = Table(title="Routes", show_lines=False)
    table.add_column("Route", style="cyan")
    table.add_column("Arity", justify="right")
    table.add_column("Decision")
    for route, arity, decision in rows:
        style = {"included": "green", "unverified": "yellow"}.get(decision, "dim")
        table.add_row(route, str(arity), f"[{style}]{decision}[/{style}]")
    console.print(table)
    console.print(f"[dim]{len(engine.rules)} sync rules registered[/dim]")

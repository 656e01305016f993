"""
CLI utility helpers — consoles and settings overrides.
"""

from __future__ import annotations

import os

from rich.console import Console

console = Console()
err_console = Console(stderr=True)


def apply_overrides(**overrides: object) -> None:
    """Export non-``None`` options as ``CONCORD_*`` environment variables.

    The server process builds its settings from the environment, so this is
    how command-line flags reach ``ConcordSettings``.
    """
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        os.environ[f"CONCORD_{key.upper()}"] = str(value)

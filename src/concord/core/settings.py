"""
Process settings.

All values can be overridden via environment variables prefixed with
``CONCORD_`` (``CONCORD_PORT``, ``CONCORD_BASE_PATH`` ...) or a ``.env``
file in the working directory.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConcordSettings(BaseSettings):
    """Settings for the concord server and engine.

    Order of precedence (highest → lowest):
        1. Environment variables (``CONCORD_PORT``, etc.)
        2. ``.env`` file
        3. Defaults below
    """

    # ── Server ───────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, description="Bind port")
    base_path: str = Field(default="/api", description="URL prefix for unit routes")
    debug: bool = Field(default=False, description="Expose exception text in 500 responses")
    api_title: str = Field(default="concord", description="OpenAPI title")

    # ── Logging ──────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Log level")
    json_logs: bool | None = Field(
        default=None,
        description="Render JSON logs; None auto-detects (JSON when stdout is not a tty)",
    )

    # ── Engine ───────────────────────────────────────────────────────────
    sync_logging: Literal["off", "trace", "verbose"] = Field(
        default="trace",
        description="Synchronization engine diagnostics level",
    )
    request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds the HTTP layer waits for a pending request to resolve",
    )
    max_flow_actions: int = Field(
        default=1000,
        gt=0,
        description="Upper bound of actions in one reaction flow",
    )
    units_package: str = Field(
        default="concord.units",
        description="Package scanned for unit modules",
    )

    model_config = SettingsConfigDict(
        env_prefix="CONCORD_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("base_path")
    @classmethod
    def _normalize_base_path(cls, value: str) -> str:
        value = "/" + value.strip().strip("/")
        return "" if value == "/" else value

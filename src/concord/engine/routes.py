"""
Route synchronizations — bind a mediated HTTP path to a handler.

``route_sync(path, handler)`` builds a rule that reacts to
``Requesting.request`` actions for ``path``, calls ``handler`` with the
request body and resolves the pending request with the handler's result.
A handler exception resolves the request with ``{"error": message}``;
the request never hangs on handler failure.

Handlers reach units through ``route.unit(name)``, so every operation they
call is itself an action other rules can react to::

    async def delete_resource(route: RouteContext) -> dict:
        resource_id = require_id(route.body, ["resourceID", "id"], "resourceID")
        await route.unit("Resource").delete_resource({"resourceID": resource_id})
        return {}

    RULE = route_sync("/Resource/deleteResource", delete_resource)

The ``pick_*``/``require_*`` helpers normalise loosely-typed JSON bodies.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError

from concord.core.errors import AuthError, UnitError, error_message
from concord.core.logging import get_logger
from concord.engine.actions import Frame, Frames, SyncRule, Var, when
from concord.engine.engine import SyncContext, UnitProxy

log = get_logger(__name__)

REQUEST = Var("request")
INPUT = Var("input")


@dataclass(frozen=True)
class RouteContext:
    """What a route handler receives."""

    request_id: str
    body: dict[str, Any]
    sync: SyncContext

    def unit(self, name: str) -> UnitProxy:
        return self.sync.unit(name)


RouteHandler = Callable[[RouteContext], Awaitable[Mapping[str, Any] | None]]


def route_sync(path: str, handler: RouteHandler, *, name: str | None = None) -> SyncRule:
    """Build the synchronization rule serving ``path`` with ``handler``."""

    async def where(ctx: SyncContext, frames: Frames) -> Frames:
        for frame in frames:
            request_id = frame.get(REQUEST.name)
            if not isinstance(request_id, str):
                log.error("route_missing_request_id", path=path)
                continue
            raw = frame.get(INPUT.name)
            body = dict(raw) if isinstance(raw, Mapping) else {}
            body.pop("path", None)
            result = await handler(RouteContext(request_id=request_id, body=body, sync=ctx))
            response = dict(result) if isinstance(result, Mapping) else {}
            await ctx.unit("Requesting").respond({**response, "request": request_id})
        return Frames()

    async def on_error(ctx: SyncContext, frame: Frame, error: BaseException) -> None:
        request_id = frame.get(REQUEST.name)
        if not isinstance(request_id, str):
            return
        log.info("route_failed", path=path, request_id=request_id, error=error_message(error))
        await ctx.unit("Requesting").respond(
            {"request": request_id, "error": error_message(error)}
        )

    return SyncRule(
        name=name or f"Route{path.replace('/', '.')}",
        when=(when("Requesting", "request", {"path": path, "input": INPUT}, {"request": REQUEST}),),
        where=where,
        on_error=on_error,
    )


# ── Body helpers ─────────────────────────────────────────────────────────

_DATETIME = TypeAdapter(datetime)


class _Missing:
    """Marker for a field absent from the body (as opposed to null)."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def _as_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def pick_string(body: Mapping[str, Any], keys: Sequence[str], *, trim: bool = True) -> str | None:
    """First non-empty string (or number) among ``keys``."""
    for key in keys:
        text = _as_text(body.get(key))
        if text is None:
            continue
        if not trim:
            return text
        text = text.strip()
        if text:
            return text
    return None


def require_string(
    body: Mapping[str, Any], keys: Sequence[str], field: str, *, trim: bool = True
) -> str:
    value = pick_string(body, keys, trim=trim)
    if not value:
        raise UnitError(f"{field} is required.")
    return value


require_id = require_string


def pick_nullable_string(
    body: Mapping[str, Any], keys: Sequence[str], *, trim: bool = True
) -> str | None | _Missing:
    """Like ``pick_string`` but distinguishes explicit ``null``.

    Returns ``MISSING`` when none of ``keys`` is present, ``None``
    for an explicit null, else the string.
    """
    for key in keys:
        if key not in body:
            continue
        value = body[key]
        if value is None:
            return None
        text = _as_text(value)
        if text is not None:
            return text.strip() if trim else text
    return MISSING


def pick_boolean(body: Mapping[str, Any], keys: Sequence[str]) -> bool | None:
    for key in keys:
        if key not in body:
            continue
        value = body[key]
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in ("true", "false"):
                return normalized == "true"
    return None


def parse_datetime_field(
    body: Mapping[str, Any], keys: Sequence[str], field: str
) -> datetime | None | _Missing:
    """Parse an ISO-8601 string, epoch number or datetime.

    Returns ``MISSING`` when absent, ``None`` for explicit null. Naive values
    are taken as UTC.
    """
    for key in keys:
        if key not in body:
            continue
        value = body[key]
        if value is None:
            return None
        if isinstance(value, bool):
            raise UnitError(f"Invalid {field} value.")
        try:
            parsed = _DATETIME.validate_python(value)
        except ValidationError:
            raise UnitError(f"Invalid {field} value.") from None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return MISSING


def pick_auth_user(body: Mapping[str, Any]) -> str | None:
    raw = body.get("authUser")
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return None


def require_auth_user(body: Mapping[str, Any], expected: str, message: str) -> str:
    """Caller identity must be present and equal ``expected``."""
    auth_user = pick_auth_user(body)
    if auth_user is None or auth_user != str(expected):
        raise AuthError(message)
    return auth_user


__all__ = [
    "MISSING",
    "RouteContext",
    "RouteHandler",
    "route_sync",
    "pick_string",
    "require_string",
    "require_id",
    "pick_nullable_string",
    "pick_boolean",
    "parse_datetime_field",
    "pick_auth_user",
    "require_auth_user",
]

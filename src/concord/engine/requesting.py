"""
Requesting mediator — correlates inbound network calls with their responses.

Manifesto:
    The HTTP layer never calls business units for mediated routes. It
    records the call as a pending request (the ``request`` action is the
    trigger route rules react to) and suspends until some rule resolves
    the request with ``respond``. Each request resolves exactly once.

State machine per request::

    Created ──respond──► Resolved ──wait() returns──► discarded
       │                                 (later respond → DuplicateResolutionError)
       └──wait() times out──► TimedOut ──respond──► dead-lettered (once)
                                          (later respond → DuplicateResolutionError)

Tags:
    concord, requesting, mediator, pending-request, dead-letter

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from concord.core.errors import (
    DuplicateResolutionError,
    RequestTimeoutError,
    UnitError,
    UnknownRequestError,
)
from concord.core.logging import get_logger
from concord.core.store import fresh_id
from concord.framework.registry import OperationSpec, UnitDefinition, UnitDependencies

log = get_logger(__name__)


@dataclass
class PendingRequest:
    """The mediator's record of an in-flight network call."""

    request_id: str
    path: str
    input: dict[str, Any]
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    resolved: bool = False
    response: dict[str, Any] | None = None
    future: asyncio.Future[dict[str, Any]] | None = field(default=None, repr=False)


@dataclass(frozen=True)
class DeadLetter:
    """A response that arrived after its waiter gave up."""

    request_id: str
    path: str
    response: dict[str, Any]
    received_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class Requesting:
    """Pending-request store exposed as the ``Requesting`` unit.

    Args:
        dependencies: Unit dependency bundle (unused; units share a signature)
        resolved_memory: How many resolved ids are remembered for
            duplicate-resolution detection after they are discarded, and
            how many timed-out ids are kept for dead-lettering. The oldest
            entries are forgotten first.
    """

    def __init__(self, dependencies: UnitDependencies | None = None, *, resolved_memory: int = 4096):
        self._pending: dict[str, PendingRequest] = {}
        self._timed_out: OrderedDict[str, str] = OrderedDict()
        self._resolved: OrderedDict[str, None] = OrderedDict()
        self._resolved_memory = resolved_memory
        self.dead_letters: list[DeadLetter] = []

    async def request(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Record a new pending request; returns ``{"request": id}``."""
        path = payload.get("path") if isinstance(payload, Mapping) else None
        if not isinstance(path, str) or not path:
            raise UnitError("path is required.")
        body = payload.get("input")
        request = PendingRequest(
            request_id=fresh_id(),
            path=path,
            input=dict(body) if isinstance(body, Mapping) else {},
        )
        request.future = asyncio.get_running_loop().create_future()
        self._pending[request.request_id] = request
        log.debug("request_created", request_id=request.request_id, path=path)
        return {"request": request.request_id}

    async def respond(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Resolve a pending request with the remaining payload fields.

        Raises:
            UnknownRequestError: the id was never created
            DuplicateResolutionError: the request was already resolved
        """
        fields = dict(payload)
        request_id = fields.pop("request", None)
        if not isinstance(request_id, str):
            raise UnitError("request is required.")

        pending = self._pending.get(request_id)
        if pending is not None:
            if pending.resolved:
                raise DuplicateResolutionError(request_id)
            pending.resolved = True
            pending.response = fields
            if pending.future is not None and not pending.future.done():
                pending.future.set_result(fields)
            log.debug("request_resolved", request_id=request_id, path=pending.path)
            return {"request": request_id}

        late_path = self._timed_out.pop(request_id, None)
        if late_path is not None:
            self._remember(request_id)
            self.dead_letters.append(DeadLetter(request_id, late_path, fields))
            log.warning("late_response_dead_lettered", request_id=request_id, path=late_path)
            return {"request": request_id}

        if request_id in self._resolved:
            raise DuplicateResolutionError(request_id)
        raise UnknownRequestError(request_id)

    async def wait(self, request_id: str, timeout: float | None = None) -> dict[str, Any]:
        """Suspend until ``request_id`` resolves; discards it afterwards.

        Raises:
            UnknownRequestError: no such pending request
            RequestTimeoutError: nothing resolved it within ``timeout`` seconds
        """
        pending = self._pending.get(request_id)
        if pending is None or pending.future is None:
            raise UnknownRequestError(request_id)
        try:
            response = await asyncio.wait_for(asyncio.shield(pending.future), timeout)
        except asyncio.TimeoutError:
            self._pending.pop(request_id, None)
            self._timed_out[request_id] = pending.path
            while len(self._timed_out) > self._resolved_memory:
                self._timed_out.popitem(last=False)
            log.warning("request_timed_out", request_id=request_id, path=pending.path, timeout=timeout)
            raise RequestTimeoutError(request_id, timeout).with_context(path=pending.path) from None
        self._pending.pop(request_id, None)
        self._remember(request_id)
        return dict(response)

    def get(self, request_id: str) -> PendingRequest | None:
        return self._pending.get(request_id)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def timed_out_count(self) -> int:
        return len(self._timed_out)

    def _remember(self, request_id: str) -> None:
        self._resolved[request_id] = None
        while len(self._resolved) > self._resolved_memory:
            self._resolved.popitem(last=False)


UNIT = UnitDefinition(
    name="Requesting",
    factory=Requesting,
    operations=(
        OperationSpec("request", Requesting.request),
        OperationSpec("respond", Requesting.respond),
    ),
)

__all__ = ["DeadLetter", "PendingRequest", "Requesting", "UNIT"]

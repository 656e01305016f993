"""
Route Dispatcher — one POST endpoint per exposed unit operation.

Manifesto:
    No hand-written routing table: every descriptor the route policy lets
    through becomes ``POST {base}/{Unit}/{operation}``. The endpoint parses
    the body, adapts it to the operation's arguments and invokes the
    operation through the engine, so passthrough calls still emit actions
    that rules can react to.

    Everything else under the base path is served by the Requesting
    mediator: the call becomes a pending request, route rules resolve it,
    and the endpoint returns the resolution (or 504 on timeout).

ARCHITECTURE
────────────
::

    POST /api/Resource/getResource      ─► passthrough endpoint
        body ─► adapt_arguments ─► engine.invoke ─► JSON result
                                       └─ error ─► {"error": msg}, 4xx/5xx

    POST /api/Resource/createResource   ─► mediated endpoint (catch-all)
        engine.submit("Requesting", "request", {path, input})
            └─ background flow: route rule ─► handler ─► Requesting.respond
        requesting.wait(request_id, timeout) ─► JSON response
                                       ├─ {"error": ...} ─► 400
                                       └─ timeout        ─► 504

Tags:
    concord, dispatcher, routes, passthrough, fastapi

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from typing import Any

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from concord.core.errors import (
    ConcordError,
    DispatchError,
    RequestTimeoutError,
    error_message,
    http_status_for,
)
from concord.core.logging import get_logger
from concord.engine.engine import SyncEngine
from concord.engine.requesting import Requesting
from concord.framework.adapter import adapt_arguments
from concord.framework.passthrough import DEFAULT_POLICY, RouteDecision, RoutePolicy
from concord.framework.registry import OperationDescriptor

log = get_logger(__name__)

GENERIC_ERROR = "An internal server error occurred."
TIMEOUT_ERROR = "Request timed out."


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def read_body(request: Request) -> Any:
    """Parsed JSON body; ``{}`` when absent or unparseable."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        return {}


class RouteDispatcher:
    """Builds the FastAPI router serving unit operations.

    Args:
        engine: Engine every invocation goes through
        policy: Passthrough inclusion/exclusion policy
        base_path: Prefix the router is mounted under (logging only)
        request_timeout: Seconds a mediated call waits for resolution
    """

    def __init__(
        self,
        engine: SyncEngine,
        *,
        policy: RoutePolicy = DEFAULT_POLICY,
        base_path: str = "/api",
        request_timeout: float | None = 10.0,
    ):
        self.engine = engine
        self.policy = policy
        self.base_path = base_path
        self.request_timeout = request_timeout
        self._flows: set[asyncio.Task[None]] = set()

    @property
    def registry(self):
        return self.engine.registry

    def routes(self) -> list[tuple[OperationDescriptor, RouteDecision]]:
        """Every loaded descriptor with the policy's decision for it."""
        return [(d, self.policy.decide(d.route)) for d in self.registry.descriptors()]

    def exposed(self) -> list[OperationDescriptor]:
        return [d for d, decision in self.routes() if decision.exposed]

    def build_router(self) -> APIRouter:
        router = APIRouter()
        for descriptor, decision in self.routes():
            route = f"{self.base_path}{descriptor.route}"
            if not decision.exposed:
                log.debug("route_not_exposed", route=route, decision=decision.value)
                continue
            if decision is RouteDecision.UNVERIFIED:
                log.warning("unverified_passthrough", route=route)
            router.add_api_route(
                descriptor.route,
                self._passthrough_endpoint(descriptor),
                methods=["POST"],
                name=f"{descriptor.unit}.{descriptor.operation}",
                tags=[descriptor.unit],
            )
            log.info("route_registered", route=route, arity=descriptor.arity)

        if self.registry.has("Requesting", "request"):
            router.add_api_route(
                "/{path:path}",
                self._mediated_endpoint,
                methods=["POST"],
                name="Requesting.request",
                tags=["Requesting"],
            )
        return router

    # ── Passthrough ──────────────────────────────────────────────────────

    def _passthrough_endpoint(self, descriptor: OperationDescriptor):
        async def endpoint(request: Request) -> JSONResponse:
            body = await read_body(request)
            return await self.dispatch(descriptor, body)

        endpoint.__name__ = f"{descriptor.unit}_{descriptor.operation}"
        return endpoint

    async def dispatch(self, descriptor: OperationDescriptor, body: Any) -> JSONResponse:
        """Adapt ``body``, invoke the operation and encode the outcome."""
        try:
            args = adapt_arguments(descriptor, body)
            result = await self.engine.invoke(descriptor.unit, descriptor.operation, *args)
        except DispatchError as e:
            log.error("dispatch_failed", route=descriptor.route, error=str(e))
            return error_response(500, GENERIC_ERROR)
        except ConcordError as e:
            log.info("operation_failed", route=descriptor.route, error=e.message)
            return error_response(http_status_for(e), error_message(e, GENERIC_ERROR))
        except Exception as e:
            log.warning("operation_raised", route=descriptor.route, error=repr(e))
            return error_response(500, error_message(e, GENERIC_ERROR))
        return JSONResponse(content=jsonable_encoder(result))

    # ── Mediated ─────────────────────────────────────────────────────────

    async def _mediated_endpoint(self, request: Request, path: str) -> JSONResponse:
        body = await read_body(request)
        return await self.mediate("/" + path.strip("/"), body)

    async def mediate(self, path: str, body: Any) -> JSONResponse:
        """Serve ``path`` through the Requesting mediator.

        The request's flow drains in a background task while this call
        waits, so ``request_timeout`` bounds the whole exchange. Once
        resolved, the call also lets the flow finish if it can within the
        deadline. A rule that responds after the deadline is dead-lettered
        by the mediator.
        """
        requesting: Requesting = self.registry.instance("Requesting")
        payload = {"path": path, "input": body if isinstance(body, Mapping) else {}}
        try:
            created, flow = await self.engine.submit("Requesting", "request", payload)
        except ConcordError as e:
            log.error("mediation_failed", path=path, error=e.message)
            return error_response(500, GENERIC_ERROR)
        self._track(flow)

        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            response = await requesting.wait(created["request"], self.request_timeout)
        except RequestTimeoutError:
            log.warning("mediated_request_timed_out", path=path, timeout=self.request_timeout)
            return error_response(504, TIMEOUT_ERROR)
        except ConcordError as e:
            log.error("mediation_failed", path=path, error=e.message)
            return error_response(500, GENERIC_ERROR)

        # remaining reactions get whatever is left of the deadline
        remaining = None
        if self.request_timeout is not None:
            remaining = max(0.0, self.request_timeout - (loop.time() - started))
        await asyncio.wait({flow}, timeout=remaining)

        content = jsonable_encoder(response)
        if "error" in response:
            return JSONResponse(status_code=400, content=content)
        return JSONResponse(content=content)

    # ── Background flows ─────────────────────────────────────────────────

    @property
    def background_flows(self) -> int:
        return len(self._flows)

    async def join(self, timeout: float | None = None) -> None:
        """Wait for mediated flows still draining (at most ``timeout`` seconds)."""
        if self._flows:
            await asyncio.wait(set(self._flows), timeout=timeout)

    def _track(self, task: asyncio.Task[None]) -> None:
        self._flows.add(task)
        task.add_done_callback(self._flow_done)

    def _flow_done(self, task: asyncio.Task[None]) -> None:
        self._flows.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("mediated_flow_failed", task=task.get_name(), error=repr(task.exception()))


__all__ = ["RouteDispatcher", "read_body", "error_response", "GENERIC_ERROR", "TIMEOUT_ERROR"]

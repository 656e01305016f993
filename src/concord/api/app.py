"""
FastAPI application factory.

``create_app()`` builds the unit registry and synchronization engine,
wires middleware, exception handlers and routers into a single
``FastAPI`` instance.

Manifesto:
    The app factory is the single composition root: the document store,
    registry, engine and dispatcher are constructed here once and handed
    to the rest of the code by reference, never as module globals.

Tags:
    concord, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Iterable
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from concord import __version__
from concord.api.deps import get_settings
from concord.api.middleware.errors import unhandled_exception_handler
from concord.api.middleware.request_id import RequestIDMiddleware
from concord.core.logging import configure_logging, get_logger
from concord.core.settings import ConcordSettings
from concord.core.store import DocumentStore
from concord.engine.actions import SyncRule
from concord.engine.engine import Logging, SyncEngine
from concord.engine.requesting import UNIT as REQUESTING_UNIT
from concord.framework.dispatcher import RouteDispatcher
from concord.framework.passthrough import DEFAULT_POLICY, RoutePolicy
from concord.framework.registry import UnitDependencies, UnitRegistry

log = get_logger("concord.api")


def build_engine(
    settings: ConcordSettings,
    *,
    store: DocumentStore | None = None,
    syncs: Iterable[SyncRule] | None = None,
) -> SyncEngine:
    """Load the Requesting mediator and all units, register the syncs."""
    registry = UnitRegistry(UnitDependencies(store=store or DocumentStore(), settings=settings))
    registry.load(REQUESTING_UNIT)
    loaded = registry.load_package(settings.units_package)

    engine = SyncEngine(
        registry,
        level=Logging(settings.sync_logging),
        max_flow_actions=settings.max_flow_actions,
    )
    if syncs is None:
        from concord.syncs import ALL_SYNCS

        syncs = ALL_SYNCS
    engine.register(syncs)
    log.info("engine_ready", units=loaded, operations=len(registry), rules=len(engine.rules))
    return engine


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup / shutdown hooks."""
    settings: ConcordSettings = app.state.settings
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    log.info("concord_starting", version=app.version, base_path=settings.base_path)
    yield
    log.info("concord_shutting_down", background_flows=app.state.dispatcher.background_flows)
    await app.state.dispatcher.join(timeout=settings.request_timeout)


def create_app(
    *,
    settings: ConcordSettings | None = None,
    engine: SyncEngine | None = None,
    policy: RoutePolicy = DEFAULT_POLICY,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : ConcordSettings | None
        Override settings (useful for testing). When ``None`` the cached
        singleton from :func:`get_settings` is used.
    engine : SyncEngine | None
        Pre-built engine; by default one is built from ``settings``.
    policy : RoutePolicy
        Passthrough inclusion/exclusion policy.
    """
    settings = settings or get_settings()
    engine = engine or build_engine(settings)
    base = settings.base_path

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        lifespan=lifespan,
        docs_url=f"{base}/docs",
        openapi_url=f"{base}/openapi.json",
        redoc_url=None,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.dependency_overrides[get_settings] = lambda: settings

    # ── Middleware ───────────────────────────────────────────────────
    app.add_middleware(RequestIDMiddleware)

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    from concord.api.routers import discovery

    dispatcher = RouteDispatcher(
        engine,
        policy=policy,
        base_path=base,
        request_timeout=settings.request_timeout,
    )
    app.state.dispatcher = dispatcher

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def root() -> str:
        return "Concord server is running."

    app.include_router(discovery.router, prefix=base, tags=["discovery"])
    app.include_router(dispatcher.build_router(), prefix=base)
    return app

"""
FastAPI dependency injection — shared singletons reached from routers.

Usage in routers::

    from concord.api.deps import Engine, Settings

    @router.get("/things")
    def list_things(engine: Engine, settings: Settings):
        ...
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request

from concord.core.settings import ConcordSettings
from concord.engine.engine import SyncEngine
from concord.framework.dispatcher import RouteDispatcher


@lru_cache(maxsize=1)
def get_settings() -> ConcordSettings:
    """Cached settings — loaded once per process."""
    return ConcordSettings()


def get_engine(request: Request) -> SyncEngine:
    return request.app.state.engine


def get_dispatcher(request: Request) -> RouteDispatcher:
    return request.app.state.dispatcher


Settings = Annotated[ConcordSettings, Depends(get_settings)]
Engine = Annotated[SyncEngine, Depends(get_engine)]
Dispatcher = Annotated[RouteDispatcher, Depends(get_dispatcher)]

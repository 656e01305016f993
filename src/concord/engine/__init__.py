"""Synchronization engine, Requesting mediator and route synchronizations."""

from concord.engine.actions import (
    ActionPattern,
    ActionRecord,
    ActionTemplate,
    Frame,
    Frames,
    SyncRule,
    Var,
    invoke,
    variables,
    when,
)
from concord.engine.engine import Logging, SyncContext, SyncEngine, UnitProxy
from concord.engine.requesting import Requesting
from concord.engine.routes import RouteContext, route_sync

__all__ = [
    "ActionPattern",
    "ActionRecord",
    "ActionTemplate",
    "Frame",
    "Frames",
    "SyncRule",
    "Var",
    "invoke",
    "variables",
    "when",
    "Logging",
    "SyncContext",
    "SyncEngine",
    "UnitProxy",
    "Requesting",
    "RouteContext",
    "route_sync",
]

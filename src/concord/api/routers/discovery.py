"""
Discovery router — lists the operations the dispatcher knows about.

``GET {base}/_routes`` returns every loaded operation with the passthrough
decision made for it, plus the registered synchronization rules.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from concord.api.deps import Dispatcher, Engine

router = APIRouter()


@router.get("/_routes")
def list_routes(dispatcher: Dispatcher, engine: Engine) -> dict[str, Any]:
    policy = dispatcher.policy
    routes = [
        {
            "route": descriptor.route,
            "unit": descriptor.unit,
            "operation": descriptor.operation,
            "arity": descriptor.arity,
            "decision": decision.value,
            "exposed": decision.exposed,
            "justification": policy.justification(descriptor.route),
        }
        for descriptor, decision in dispatcher.routes()
    ]
    return {
        "routes": routes,
        "syncs": [rule.name for rule in engine.rules],
    }

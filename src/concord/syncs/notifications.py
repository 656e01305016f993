"""
Category-post fan-out — notify followers of a category about a new resource.

``fan_out_category_post`` only depends on two duck-typed collaborators
(anything with ``get_followers`` / ``log_notification``), so it runs the
same against raw units in tests and against engine-instrumented unit
proxies inside the ``CategoryPostFanOut`` rule.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Mapping
from typing import Any, Protocol

from concord.core.logging import get_logger
from concord.engine.actions import Frames, SyncRule, Var, when
from concord.engine.engine import SyncContext

log = get_logger(__name__)


class FollowingLike(Protocol):
    def get_followers(self, payload: Mapping[str, Any]) -> Awaitable[Mapping[str, Any]]: ...


class NotificationLogLike(Protocol):
    def log_notification(self, payload: Mapping[str, Any]) -> Awaitable[Mapping[str, Any]]: ...


async def fan_out_category_post(
    payload: Mapping[str, Any],
    following: FollowingLike,
    notification_log: NotificationLogLike,
) -> dict[str, int]:
    """Log one ``category_post`` notification per follower of the category.

    The owner is never notified. A blank category returns before any
    lookup. Individual failures are logged and do not stop other
    recipients.

    Returns:
        ``{"attempted": n, "notified": m}``
    """
    category = payload.get("category")
    category = category.strip() if isinstance(category, str) else ""
    if not category:
        return {"attempted": 0, "notified": 0}

    owner = payload.get("owner")
    followers = await following.get_followers({"followee": category})
    recipients = [f for f in followers.get("followerIDs", []) if f != owner]
    if not recipients:
        return {"attempted": 0, "notified": 0}

    content: dict[str, Any] = {
        "type": "category_post",
        "category": category,
        "resourceID": payload.get("resourceID"),
        "owner": owner,
        "name": payload.get("name"),
    }
    if payload.get("description") is not None:
        content["description"] = payload["description"]
    text = json.dumps(content)

    results = await asyncio.gather(
        *(
            notification_log.log_notification({"recipient": recipient, "content": text})
            for recipient in recipients
        ),
        return_exceptions=True,
    )

    notified = 0
    for recipient, result in zip(recipients, results):
        if isinstance(result, BaseException):
            log.warning("notification_failed", recipient=recipient, error=str(result))
        elif isinstance(result, Mapping) and "notificationID" in result:
            notified += 1
        else:
            error = result.get("error") if isinstance(result, Mapping) else result
            log.warning("notification_rejected", recipient=recipient, error=error)

    return {"attempted": len(recipients), "notified": notified}


_input, _resource = Var("input"), Var("resource")


async def _notify_followers(ctx: SyncContext, frames: Frames) -> Frames:
    for frame in frames:
        fields = frame[_input.name]
        summary = await fan_out_category_post(
            {
                "owner": fields.get("owner"),
                "category": fields.get("category"),
                "resourceID": frame[_resource.name],
                "name": fields.get("name"),
                "description": fields.get("description"),
            },
            ctx.unit("Following"),
            ctx.unit("NotificationLog"),
        )
        if summary["attempted"]:
            log.info("category_post_fan_out", category=fields.get("category"), **summary)
    return Frames()


CATEGORY_POST_FAN_OUT = SyncRule(
    name="CategoryPostFanOut",
    when=(when("Resource", "createResource", _input, {"resourceID": _resource}),),
    where=_notify_followers,
)

__all__ = ["fan_out_category_post", "CATEGORY_POST_FAN_OUT"]

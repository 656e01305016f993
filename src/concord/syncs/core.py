"""
Route synchronizations for the mediated (non-passthrough) routes.

Each handler normalises the loosely-typed request body, enforces that the
caller identity (``authUser``) owns what it mutates, and calls units
through the engine. Anything a handler raises becomes the request's
``{"error": message}`` resolution.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from concord.core.errors import AuthError, NotFoundError, error_message
from concord.core.logging import get_logger
from concord.engine.routes import (
    MISSING,
    RouteContext,
    parse_datetime_field,
    pick_auth_user,
    pick_boolean,
    pick_nullable_string,
    pick_string,
    require_auth_user,
    require_id,
    require_string,
    route_sync,
)

log = get_logger(__name__)

RESOURCE_KEYS = ["resourceID", "resourceId", "resource", "id"]
WINDOW_KEYS = ["resource", "resourceID", "resourceId", "id"]
RECIPIENT_KEYS = ["recipient", "recipientId", "user", "id"]
NOTIFICATION_KEYS = ["notificationID", "notificationId", "id"]
DEFAULT_CLEANUP_LIMIT = 200


async def assert_owner(route: RouteContext, resource_id: str) -> None:
    """The caller must be authenticated and own ``resource_id``."""
    auth_user = pick_auth_user(route.body)
    if auth_user is None:
        raise AuthError("Unauthorized: missing auth user.")
    try:
        resource = await route.unit("Resource").get_resource({"resourceID": resource_id})
    except NotFoundError:
        raise NotFoundError("Not found: resource does not exist.") from None
    if str(resource.get("owner")) != auth_user:
        raise AuthError("Forbidden: not the resource owner.")


# ── Resource ─────────────────────────────────────────────────────────────


async def create_resource(route: RouteContext) -> dict[str, Any]:
    body = route.body
    owner = require_id(body, ["owner", "ownerId", "user"], "owner")
    require_auth_user(body, owner, "Forbidden: owner must match authenticated user.")
    name = require_string(body, ["name", "title"], "name")
    category = pick_nullable_string(body, ["category"])
    description = pick_nullable_string(body, ["description", "details"])

    payload: dict[str, Any] = {"owner": owner, "name": name}
    if category:
        payload["category"] = category
    if description:
        payload["description"] = description
    created = await route.unit("Resource").create_resource(payload)
    log.info("resource_created", resource_id=created["resourceID"], owner=owner)
    return {"resourceID": created["resourceID"]}


async def update_resource(route: RouteContext) -> dict[str, Any]:
    body = route.body
    resource_id = require_id(body, RESOURCE_KEYS, "resourceID")
    await assert_owner(route, resource_id)

    update: dict[str, Any] = {"resourceID": resource_id}
    name = pick_string(body, ["name", "title"])
    if name is not None:
        update["name"] = name
    for field, keys in (("category", ["category"]), ("description", ["description", "details"])):
        value = pick_nullable_string(body, keys)
        if value is not MISSING:
            update[field] = value
    await route.unit("Resource").update_resource(update)
    return {}


async def delete_resource(route: RouteContext) -> dict[str, Any]:
    resource_id = require_id(route.body, RESOURCE_KEYS, "resourceID")
    await assert_owner(route, resource_id)
    await route.unit("Resource").delete_resource({"resourceID": resource_id})
    return {}


# ── TimeBoundedResource ──────────────────────────────────────────────────


async def define_time_window(route: RouteContext) -> dict[str, Any]:
    body = route.body
    resource = require_id(body, WINDOW_KEYS, "resource")
    await assert_owner(route, resource)
    available_from = parse_datetime_field(body, ["availableFrom", "from", "start"], "availableFrom")
    available_until = parse_datetime_field(body, ["availableUntil", "until", "end"], "availableUntil")
    await route.unit("TimeBoundedResource").define_time_window(
        {
            "resource": resource,
            "availableFrom": available_from or None,
            "availableUntil": available_until or None,
        }
    )
    return {}


async def expire_resource(route: RouteContext) -> dict[str, Any]:
    resource = require_id(route.body, WINDOW_KEYS, "resource")
    await assert_owner(route, resource)
    await route.unit("TimeBoundedResource").expire_resource({"resource": resource})
    return {}


async def delete_time_window(route: RouteContext) -> dict[str, Any]:
    resource = require_id(route.body, WINDOW_KEYS, "resource")
    await assert_owner(route, resource)
    await route.unit("TimeBoundedResource").delete_time_window({"resource": resource})
    return {}


# ── Following ────────────────────────────────────────────────────────────


def _relationship(route: RouteContext) -> dict[str, str]:
    body = route.body
    follower = require_id(body, ["follower", "followerId", "user"], "follower")
    require_auth_user(body, follower, "Forbidden: follower must match authenticated user.")
    followee = require_id(body, ["followee", "followeeId", "target", "id"], "followee")
    return {"follower": follower, "followee": followee}


async def follow(route: RouteContext) -> dict[str, Any]:
    await route.unit("Following").follow(_relationship(route))
    return {}


async def unfollow(route: RouteContext) -> dict[str, Any]:
    await route.unit("Following").unfollow(_relationship(route))
    return {}


# ── NotificationLog ──────────────────────────────────────────────────────


async def log_notification(route: RouteContext) -> dict[str, Any]:
    recipient = require_id(route.body, RECIPIENT_KEYS, "recipient")
    content = require_string(route.body, ["content"], "content", trim=False)
    return await route.unit("NotificationLog").log_notification(
        {"recipient": recipient, "content": content}
    )


async def mark_as_delivered(route: RouteContext) -> dict[str, Any]:
    notification_id = require_id(route.body, NOTIFICATION_KEYS, "notificationID")
    await route.unit("NotificationLog").mark_as_delivered({"notificationID": notification_id})
    return {}


async def dismiss_notification(route: RouteContext) -> dict[str, Any]:
    notification_id = require_id(route.body, NOTIFICATION_KEYS, "notificationID")
    await route.unit("NotificationLog").dismiss_notification({"notificationID": notification_id})
    return {}


async def clear_dismissed_notifications(route: RouteContext) -> dict[str, Any]:
    recipient = require_id(route.body, RECIPIENT_KEYS, "recipient")
    await route.unit("NotificationLog").clear_dismissed_notifications({"recipient": recipient})
    return {}


async def get_notifications(route: RouteContext) -> dict[str, Any]:
    recipient = require_id(route.body, RECIPIENT_KEYS, "recipient")
    return await route.unit("NotificationLog").get_notifications(
        {
            "recipient": recipient,
            "delivered": pick_boolean(route.body, ["delivered"]),
            "dismissed": pick_boolean(route.body, ["dismissed"]),
        }
    )


# ── Maintenance ──────────────────────────────────────────────────────────


async def cleanup_expired_resources(route: RouteContext) -> dict[str, Any]:
    """Delete expired resources (window first, then resource) in one batch."""
    limit = route.body.get("limit")
    if isinstance(limit, bool) or not isinstance(limit, (int, float)) or limit <= 0:
        limit = DEFAULT_CLEANUP_LIMIT
    limit = int(limit)

    now = datetime.now(UTC)
    windows = route.unit("TimeBoundedResource")
    resources = route.unit("Resource")
    expired = (await windows.list_expired_resources({"now": now}))["resourceIDs"]
    batch = expired[:limit]

    deleted = 0
    errors: list[dict[str, str]] = []
    for resource in batch:
        try:
            await windows.delete_time_window({"resource": resource})
        except NotFoundError:
            log.debug("time_window_already_deleted", resource=resource)
        try:
            await resources.delete_resource({"resourceID": resource})
        except Exception as e:
            errors.append({"resource": resource, "error": error_message(e)})
            continue
        deleted += 1

    log.info("expired_resources_cleaned", scanned=len(expired), deleted=deleted, errors=len(errors))
    return {
        "scanned": len(expired),
        "processed": len(batch),
        "deleted": deleted,
        "remaining": len(expired) - len(batch),
        "errors": errors,
        "timestamp": now.isoformat(),
    }


ROUTE_SYNCS = (
    route_sync("/Resource/createResource", create_resource, name="ResourceCreateResource"),
    route_sync("/Resource/updateResource", update_resource, name="ResourceUpdateResource"),
    route_sync("/Resource/deleteResource", delete_resource, name="ResourceDeleteResource"),
    route_sync(
        "/TimeBoundedResource/defineTimeWindow",
        define_time_window,
        name="TimeBoundedResourceDefineTimeWindow",
    ),
    route_sync(
        "/TimeBoundedResource/expireResource",
        expire_resource,
        name="TimeBoundedResourceExpireResource",
    ),
    route_sync(
        "/TimeBoundedResource/deleteTimeWindow",
        delete_time_window,
        name="TimeBoundedResourceDeleteTimeWindow",
    ),
    route_sync("/Following/follow", follow, name="FollowingFollow"),
    route_sync("/Following/unfollow", unfollow, name="FollowingUnfollow"),
    route_sync(
        "/NotificationLog/logNotification",
        log_notification,
        name="NotificationLogLogNotification",
    ),
    route_sync(
        "/NotificationLog/markAsDelivered",
        mark_as_delivered,
        name="NotificationLogMarkAsDelivered",
    ),
    route_sync(
        "/NotificationLog/dismissNotification",
        dismiss_notification,
        name="NotificationLogDismissNotification",
    ),
    route_sync(
        "/NotificationLog/clearDismissedNotifications",
        clear_dismissed_notifications,
        name="NotificationLogClearDismissedNotifications",
    ),
    route_sync(
        "/NotificationLog/getNotifications",
        get_notifications,
        name="NotificationLogGetNotifications",
    ),
    route_sync(
        "/Maintenance/cleanupExpiredResources",
        cleanup_expired_resources,
        name="MaintenanceCleanupExpiredResources",
    ),
)

__all__ = ["ROUTE_SYNCS", "assert_owner"]

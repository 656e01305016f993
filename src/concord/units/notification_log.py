"""
NotificationLog unit — stores notifications addressed to a recipient.

Content is a JSON object serialized as text; readers get it back parsed
(``content``) or, if it is not a JSON object, raw (``rawContent``).
A notification can be delivered once and dismissed once; dismissed
notifications can be cleared per recipient.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from concord.core.errors import ConflictError, NotFoundError, UnitError
from concord.core.store import fresh_id
from concord.framework.registry import OperationSpec, UnitDefinition, UnitDependencies

COLLECTION_NAME = "notifications"


def _require(payload: Any, key: str) -> str:
    value = payload.get(key) if isinstance(payload, Mapping) else None
    if not isinstance(value, str) or not value:
        raise UnitError(f"{key} is required.")
    return value


def _present(document: dict[str, Any]) -> dict[str, Any]:
    try:
        parsed = json.loads(document["content"])
    except ValueError:
        parsed = None
    content = parsed if isinstance(parsed, dict) else None
    view: dict[str, Any] = {
        "id": document["_id"],
        "content": content,
        "sentAt": document["sentAt"],
        "delivered": bool(document["deliveredFlag"]),
    }
    if content is None:
        view["rawContent"] = document["content"]
    if document.get("dismissedAt") is not None:
        view["dismissedAt"] = document["dismissedAt"]
    return view


class NotificationLog:
    def __init__(self, dependencies: UnitDependencies):
        self.notifications = dependencies.store.collection(COLLECTION_NAME)

    async def log_notification(self, payload: Mapping[str, Any]) -> dict:
        """Store a notification; invalid content is reported as ``{"error": ...}``."""
        recipient = _require(payload, "recipient")
        content = payload.get("content")
        if not isinstance(content, str):
            return {"error": "Content must be a JSON object."}
        try:
            parsed = json.loads(content)
        except ValueError as e:
            return {"error": f"Invalid JSON content: {e}"}
        if not isinstance(parsed, dict):
            return {"error": "Content must be a JSON object."}

        notification_id = self.notifications.insert_one(
            {
                "_id": fresh_id(),
                "recipient": recipient,
                "content": content,
                "sentAt": datetime.now(UTC),
                "deliveredFlag": False,
                "dismissedAt": None,
            }
        )
        return {"notificationID": notification_id}

    async def mark_as_delivered(self, payload: Mapping[str, Any]) -> dict:
        notification_id = _require(payload, "notificationID")
        notification = self.notifications.find_one({"_id": notification_id})
        if notification is None:
            raise NotFoundError("Notification not found.")
        if notification["deliveredFlag"]:
            raise ConflictError("Notification already delivered.")
        self.notifications.update_one({"_id": notification_id}, set={"deliveredFlag": True})
        return {}

    async def dismiss_notification(self, payload: Mapping[str, Any]) -> dict:
        notification_id = _require(payload, "notificationID")
        notification = self.notifications.find_one({"_id": notification_id})
        if notification is None:
            raise NotFoundError("Notification not found.")
        if notification["dismissedAt"] is not None:
            raise ConflictError("Notification already dismissed.")
        self.notifications.update_one(
            {"_id": notification_id}, set={"dismissedAt": datetime.now(UTC)}
        )
        return {}

    async def get_notification_with_content(self, payload: Mapping[str, Any]) -> dict:
        notification_id = _require(payload, "notificationID")
        notification = self.notifications.find_one({"_id": notification_id})
        if notification is None:
            return {}
        return {"notification": _present(notification)}

    async def clear_dismissed_notifications(self, payload: Mapping[str, Any]) -> dict:
        recipient = _require(payload, "recipient")
        doomed = self.notifications.find(
            {"recipient": recipient}, where=lambda doc: doc["dismissedAt"] is not None
        )
        for document in doomed:
            self.notifications.delete_one({"_id": document["_id"]})
        return {"cleared": len(doomed)}

    def _query(self, payload: Mapping[str, Any]) -> list[dict[str, Any]]:
        recipient = _require(payload, "recipient")
        delivered = payload.get("delivered")
        dismissed = payload.get("dismissed")

        def wanted(document: dict[str, Any]) -> bool:
            if isinstance(delivered, bool) and document["deliveredFlag"] != delivered:
                return False
            if isinstance(dismissed, bool) and (document["dismissedAt"] is not None) != dismissed:
                return False
            return True

        return self.notifications.find({"recipient": recipient}, where=wanted)

    async def get_notifications(self, payload: Mapping[str, Any]) -> dict:
        return {"notificationIDs": [doc["_id"] for doc in self._query(payload)]}

    async def list_notifications_with_content(self, payload: Mapping[str, Any]) -> dict:
        documents = sorted(self._query(payload), key=lambda doc: doc["sentAt"], reverse=True)
        return {"notifications": [_present(doc) for doc in documents]}


UNIT = UnitDefinition(
    name="NotificationLog",
    factory=NotificationLog,
    operations=(
        OperationSpec("logNotification", NotificationLog.log_notification),
        OperationSpec("markAsDelivered", NotificationLog.mark_as_delivered),
        OperationSpec("dismissNotification", NotificationLog.dismiss_notification),
        OperationSpec("getNotificationWithContent", NotificationLog.get_notification_with_content),
        OperationSpec("clearDismissedNotifications", NotificationLog.clear_dismissed_notifications),
        OperationSpec("getNotifications", NotificationLog.get_notifications),
        OperationSpec("listNotificationsWithContent", NotificationLog.list_notifications_with_content),
    ),
)

"""
TimeBoundedResource unit — availability windows for resources.

A window is keyed by resource id. ``availableFrom`` of ``None`` means "now"
at definition time; ``availableUntil`` of ``None`` means indefinitely
available. A resource is expired once ``availableUntil`` is in the past.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError

from concord.core.errors import NotFoundError, UnitError
from concord.framework.registry import OperationSpec, UnitDefinition, UnitDependencies

COLLECTION_NAME = "time_bounded_resources"

_DATETIME = TypeAdapter(datetime)


def _resource(payload: Any) -> str:
    value = payload.get("resource") if isinstance(payload, Mapping) else None
    if not isinstance(value, str) or not value:
        raise UnitError("resource is required.")
    return value


def _moment(value: Any, field: str) -> datetime | None:
    """Coerce an ISO string, epoch number or datetime to an aware datetime."""
    if value is None:
        return None
    try:
        moment = _DATETIME.validate_python(value)
    except ValidationError:
        raise UnitError(f"Invalid {field} value.") from None
    return moment if moment.tzinfo else moment.replace(tzinfo=UTC)


def _present(document: dict[str, Any]) -> dict[str, Any]:
    return {
        "resource": document["resource"],
        "availableFrom": document["availableFrom"],
        "availableUntil": document["availableUntil"],
    }


class TimeBoundedResource:
    def __init__(self, dependencies: UnitDependencies):
        self.windows = dependencies.store.collection(COLLECTION_NAME)

    async def define_time_window(self, payload: Mapping[str, Any]) -> dict:
        """Create or replace the window of a resource."""
        resource = _resource(payload)
        available_from = _moment(payload.get("availableFrom"), "availableFrom")
        available_until = _moment(payload.get("availableUntil"), "availableUntil")
        if available_from is not None and available_until is not None:
            if available_from >= available_until:
                raise UnitError(
                    "Validation Error: 'availableFrom' must be strictly earlier than 'availableUntil'."
                )
        self.windows.update_one(
            {"_id": resource},
            set={
                "resource": resource,
                "availableFrom": available_from or datetime.now(UTC),
                "availableUntil": available_until,
            },
            upsert=True,
        )
        return {}

    async def get_time_window(self, payload: Mapping[str, Any]) -> dict | None:
        document = self.windows.find_one({"_id": _resource(payload)})
        return _present(document) if document is not None else None

    async def expire_resource(self, payload: Mapping[str, Any]) -> dict:
        """Succeeds only if the window exists, is bounded and has elapsed."""
        resource = _resource(payload)
        document = self.windows.find_one({"_id": resource})
        if document is None:
            raise NotFoundError(
                f"Validation Error: No TimeWindow entry found for resource '{resource}'."
            )
        until = document["availableUntil"]
        if until is None:
            raise UnitError(
                f"Validation Error: 'availableUntil' is not defined (null) for resource '{resource}'. "
                "Cannot expire an indefinitely available resource through this action."
            )
        now = datetime.now(UTC)
        if now < until:
            raise UnitError(
                f"Validation Error: Current time ({now.isoformat()}) is earlier than "
                f"'availableUntil' ({until.isoformat()}) for resource '{resource}'. "
                "Resource is not yet expired."
            )
        return {}

    async def delete_time_window(self, payload: Mapping[str, Any]) -> dict:
        resource = _resource(payload)
        if self.windows.delete_one({"_id": resource}) == 0:
            raise NotFoundError(f"TimeWindow for resource '{resource}' not found.")
        return {}

    async def list_expired_resources(self, payload: Mapping[str, Any] | None = None) -> dict:
        now = payload.get("now") if isinstance(payload, Mapping) else None
        reference = _moment(now, "now") or datetime.now(UTC)
        expired = self.windows.find(
            where=lambda doc: doc["availableUntil"] is not None and doc["availableUntil"] <= reference
        )
        return {"resourceIDs": [doc["_id"] for doc in expired]}


UNIT = UnitDefinition(
    name="TimeBoundedResource",
    factory=TimeBoundedResource,
    operations=(
        OperationSpec("defineTimeWindow", TimeBoundedResource.define_time_window),
        OperationSpec("getTimeWindow", TimeBoundedResource.get_time_window),
        OperationSpec("expireResource", TimeBoundedResource.expire_resource),
        OperationSpec("deleteTimeWindow", TimeBoundedResource.delete_time_window),
        OperationSpec("listExpiredResources", TimeBoundedResource.list_expired_resources),
    ),
)

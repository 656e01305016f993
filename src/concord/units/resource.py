"""
Resource unit — named items (listings) owned by a user.

A resource has a mandatory non-empty name and an optional category and
description. Updates distinguish an absent field (unchanged) from an
explicit ``None`` (field cleared).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from concord.core.errors import NotFoundError, UnitError
from concord.core.store import fresh_id
from concord.framework.registry import OperationSpec, UnitDefinition, UnitDependencies

COLLECTION_NAME = "resources"
OPTIONAL_FIELDS = ("category", "description")


def _resource_id(payload: Mapping[str, Any] | str) -> str:
    value = payload.get("resourceID") if isinstance(payload, Mapping) else payload
    if not isinstance(value, str) or not value:
        raise UnitError("resourceID is required.")
    return value


def _present(document: dict[str, Any]) -> dict[str, Any]:
    resource = {"id": document.pop("_id")}
    resource.update(document)
    return resource


class ResourceUnit:
    def __init__(self, dependencies: UnitDependencies):
        self.resources = dependencies.store.collection(COLLECTION_NAME)

    async def create_resource(self, payload: Mapping[str, Any]) -> dict:
        owner = payload.get("owner")
        name = payload.get("name")
        if not isinstance(owner, str) or not owner:
            raise UnitError("Resource owner is required.")
        if not isinstance(name, str) or not name.strip():
            raise UnitError("Resource name cannot be empty.")

        document: dict[str, Any] = {"_id": fresh_id(), "owner": owner, "name": name}
        for field in OPTIONAL_FIELDS:
            if payload.get(field) is not None:
                document[field] = payload[field]
        return {"resourceID": self.resources.insert_one(document)}

    async def update_resource(self, payload: Mapping[str, Any]) -> dict:
        resource_id = _resource_id(payload)
        changes: dict[str, Any] = {}
        cleared: list[str] = []

        if "name" in payload and payload["name"] is not None:
            name = payload["name"]
            if not isinstance(name, str) or not name.strip():
                raise UnitError("Resource name cannot be updated to an empty string.")
            changes["name"] = name
        for field in OPTIONAL_FIELDS:
            if field not in payload:
                continue
            if payload[field] is None:
                cleared.append(field)
            else:
                changes[field] = payload[field]

        matched = self.resources.update_one({"_id": resource_id}, set=changes, unset=cleared)
        if matched == 0:
            raise NotFoundError(f"Resource with ID '{resource_id}' not found.")
        return {}

    async def delete_resource(self, payload: Mapping[str, Any] | str) -> dict:
        resource_id = _resource_id(payload)
        if self.resources.delete_one({"_id": resource_id}) == 0:
            raise NotFoundError(f"Resource with ID '{resource_id}' not found.")
        return {}

    async def get_resource(self, payload: Mapping[str, Any] | str) -> dict:
        resource_id = _resource_id(payload)
        document = self.resources.find_one({"_id": resource_id})
        if document is None:
            raise NotFoundError(f"Resource with ID '{resource_id}' not found.")
        return _present(document)

    async def list_resources(self) -> dict:
        return {"resources": [_present(doc) for doc in self.resources.find()]}

    async def list_resources_by_owner(self, payload: Mapping[str, Any] | str) -> dict:
        owner = payload.get("owner") if isinstance(payload, Mapping) else payload
        if not isinstance(owner, str) or not owner:
            raise UnitError("owner is required.")
        return {"resources": [_present(doc) for doc in self.resources.find({"owner": owner})]}


UNIT = UnitDefinition(
    name="Resource",
    factory=ResourceUnit,
    operations=(
        OperationSpec("createResource", ResourceUnit.create_resource),
        OperationSpec("updateResource", ResourceUnit.update_resource),
        OperationSpec("deleteResource", ResourceUnit.delete_resource),
        OperationSpec("getResource", ResourceUnit.get_resource),
        OperationSpec("listResources", ResourceUnit.list_resources, arity=0),
        OperationSpec("listResourcesByOwner", ResourceUnit.list_resources_by_owner),
    ),
)

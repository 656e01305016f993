"""
Following unit — directed follow relationships.

A follower (usually a user) follows a followee (a user or a category).
The (follower, followee) pair is unique; a follower cannot follow itself.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from concord.core.errors import ConflictError, DuplicateKeyError, NotFoundError, UnitError
from concord.framework.registry import OperationSpec, UnitDefinition, UnitDependencies

COLLECTION_NAME = "follow_relationships"


def _field(payload: Any, key: str) -> str:
    """Accept ``{"key": value}`` or a bare id string."""
    value = payload.get(key) if isinstance(payload, Mapping) else payload
    if not isinstance(value, str) or not value.strip():
        raise UnitError(f"Missing {key}")
    return value


class Following:
    def __init__(self, dependencies: UnitDependencies):
        self.relationships = dependencies.store.collection(COLLECTION_NAME)
        self.relationships.create_index(("follower", "followee"), unique=True)

    async def follow(self, payload: Mapping[str, Any]) -> dict:
        follower = _field(payload, "follower")
        followee = _field(payload, "followee")
        if follower == followee:
            raise UnitError("Cannot follow yourself.")
        try:
            self.relationships.insert_one({"follower": follower, "followee": followee})
        except DuplicateKeyError as e:
            raise ConflictError(
                f"Follower '{follower}' is already following followee '{followee}'.",
                cause=e,
            ) from e
        return {}

    async def unfollow(self, payload: Mapping[str, Any]) -> dict:
        follower = _field(payload, "follower")
        followee = _field(payload, "followee")
        deleted = self.relationships.delete_one({"follower": follower, "followee": followee})
        if deleted == 0:
            raise NotFoundError(
                "No existing follow relationship found between "
                f"follower '{follower}' and followee '{followee}'."
            )
        return {}

    async def is_following(self, payload: Mapping[str, Any]) -> dict:
        follower = _field(payload, "follower")
        followee = _field(payload, "followee")
        found = self.relationships.find_one({"follower": follower, "followee": followee})
        return {"isFollowing": found is not None}

    async def get_followees(self, payload: Mapping[str, Any] | str) -> dict:
        follower = _field(payload, "follower")
        rows = self.relationships.find({"follower": follower})
        return {"followeeIDs": [row["followee"] for row in rows]}

    async def get_followers(self, payload: Mapping[str, Any] | str) -> dict:
        followee = _field(payload, "followee")
        rows = self.relationships.find({"followee": followee})
        return {"followerIDs": [row["follower"] for row in rows]}


UNIT = UnitDefinition(
    name="Following",
    factory=Following,
    operations=(
        OperationSpec("follow", Following.follow),
        OperationSpec("unfollow", Following.unfollow),
        OperationSpec("isFollowing", Following.is_following),
        OperationSpec("getFollowees", Following.get_followees),
        OperationSpec("getFollowers", Following.get_followers),
    ),
)

"""
Tests for the mediated route handlers, driven through the engine.
"""

from __future__ import annotations

import json

import pytest

from concord.engine.engine import SyncEngine
from concord.syncs.core import DEFAULT_CLEANUP_LIMIT, ROUTE_SYNCS


async def mediate(engine: SyncEngine, path: str, body: dict) -> dict:
    created = await engine.invoke("Requesting", "request", {"path": path, "input": body})
    return await engine.registry.instance("Requesting").wait(created["request"], 1.0)


async def create(engine: SyncEngine, owner: str = "alice", **extra) -> str:
    response = await mediate(
        engine,
        "/Resource/createResource",
        {"owner": owner, "name": "Bike", "authUser": owner, **extra},
    )
    return response["resourceID"]


class TestRegistration:
    def test_route_rule_names_are_unique(self):
        names = [rule.name for rule in ROUTE_SYNCS]
        assert len(names) == len(set(names)) == 14


class TestResourceRoutes:
    @pytest.mark.asyncio
    async def test_create(self, engine):
        rid = await create(engine, category=" bikes ", description="red")
        resource = await engine.invoke("Resource", "getResource", {"resourceID": rid})
        assert resource["category"] == "bikes"
        assert resource["description"] == "red"

    @pytest.mark.asyncio
    async def test_create_requires_matching_auth(self, engine):
        response = await mediate(
            engine, "/Resource/createResource", {"owner": "alice", "name": "Bike", "authUser": "mallory"}
        )
        assert response == {"error": "Forbidden: owner must match authenticated user."}

    @pytest.mark.asyncio
    async def test_create_requires_name(self, engine):
        response = await mediate(engine, "/Resource/createResource", {"owner": "alice", "authUser": "alice"})
        assert response == {"error": "name is required."}

    @pytest.mark.asyncio
    async def test_update_by_owner(self, engine):
        rid = await create(engine, category="bikes")
        response = await mediate(
            engine,
            "/Resource/updateResource",
            {"resourceId": rid, "authUser": "alice", "title": "Trike", "category": None},
        )
        assert response == {}
        resource = await engine.invoke("Resource", "getResource", rid)
        assert resource["name"] == "Trike"
        assert "category" not in resource

    @pytest.mark.asyncio
    async def test_update_by_stranger(self, engine):
        rid = await create(engine)
        response = await mediate(engine, "/Resource/updateResource", {"resourceID": rid, "authUser": "bob"})
        assert response == {"error": "Forbidden: not the resource owner."}

    @pytest.mark.asyncio
    async def test_unauthenticated(self, engine):
        rid = await create(engine)
        response = await mediate(engine, "/Resource/deleteResource", {"resourceID": rid})
        assert response == {"error": "Unauthorized: missing auth user."}

    @pytest.mark.asyncio
    async def test_delete_missing(self, engine):
        response = await mediate(engine, "/Resource/deleteResource", {"id": "nope", "authUser": "alice"})
        assert response == {"error": "Not found: resource does not exist."}

    @pytest.mark.asyncio
    async def test_delete(self, engine):
        rid = await create(engine)
        assert await mediate(engine, "/Resource/deleteResource", {"id": rid, "authUser": "alice"}) == {}
        listed = await engine.invoke("Resource", "listResources")
        assert listed == {"resources": []}


class TestTimeWindowRoutes:
    @pytest.mark.asyncio
    async def test_define_expire_delete(self, engine):
        rid = await create(engine)
        response = await mediate(
            engine,
            "/TimeBoundedResource/defineTimeWindow",
            {"resource": rid, "authUser": "alice", "from": "2020-01-01T00:00:00Z", "until": "2020-01-02T00:00:00Z"},
        )
        assert response == {}
        assert await mediate(engine, "/TimeBoundedResource/expireResource", {"resource": rid, "authUser": "alice"}) == {}
        assert await mediate(engine, "/TimeBoundedResource/deleteTimeWindow", {"resource": rid, "authUser": "alice"}) == {}

    @pytest.mark.asyncio
    async def test_invalid_datetime(self, engine):
        rid = await create(engine)
        response = await mediate(
            engine,
            "/TimeBoundedResource/defineTimeWindow",
            {"resource": rid, "authUser": "alice", "availableUntil": "whenever"},
        )
        assert response == {"error": "Invalid availableUntil value."}


class TestFollowingRoutes:
    @pytest.mark.asyncio
    async def test_follow_and_unfollow(self, engine):
        body = {"follower": "bob", "followee": "bikes", "authUser": "bob"}
        assert await mediate(engine, "/Following/follow", body) == {}
        assert await engine.invoke("Following", "isFollowing", {"follower": "bob", "followee": "bikes"}) == {
            "isFollowing": True
        }
        assert await mediate(engine, "/Following/unfollow", body) == {}

    @pytest.mark.asyncio
    async def test_follow_for_someone_else(self, engine):
        response = await mediate(engine, "/Following/follow", {"follower": "bob", "followee": "x", "authUser": "eve"})
        assert response == {"error": "Forbidden: follower must match authenticated user."}

    @pytest.mark.asyncio
    async def test_duplicate_follow_is_error(self, engine):
        body = {"follower": "bob", "followee": "bikes", "authUser": "bob"}
        await mediate(engine, "/Following/follow", body)
        response = await mediate(engine, "/Following/follow", body)
        assert "already following" in response["error"]


class TestNotificationRoutes:
    @pytest.mark.asyncio
    async def test_log_deliver_dismiss_clear(self, engine):
        logged = await mediate(
            engine, "/NotificationLog/logNotification", {"recipient": "bob", "content": json.dumps({"hi": 1})}
        )
        nid = logged["notificationID"]
        assert await mediate(engine, "/NotificationLog/markAsDelivered", {"notificationId": nid}) == {}
        delivered = await mediate(engine, "/NotificationLog/getNotifications", {"recipient": "bob", "delivered": "true"})
        assert delivered == {"notificationIDs": [nid]}
        assert await mediate(engine, "/NotificationLog/dismissNotification", {"id": nid}) == {}
        assert await mediate(engine, "/NotificationLog/clearDismissedNotifications", {"recipient": "bob"}) == {}
        assert await mediate(engine, "/NotificationLog/getNotifications", {"recipient": "bob"}) == {"notificationIDs": []}

    @pytest.mark.asyncio
    async def test_invalid_content_is_error(self, engine):
        response = await mediate(engine, "/NotificationLog/logNotification", {"recipient": "bob", "content": "[]"})
        assert response == {"error": "Content must be a JSON object."}

    @pytest.mark.asyncio
    async def test_already_delivered(self, engine):
        nid = (await mediate(
            engine, "/NotificationLog/logNotification", {"recipient": "bob", "content": "{}"}
        ))["notificationID"]
        await mediate(engine, "/NotificationLog/markAsDelivered", {"notificationID": nid})
        response = await mediate(engine, "/NotificationLog/markAsDelivered", {"notificationID": nid})
        assert response == {"error": "Notification already delivered."}


class TestCleanup:
    @pytest.mark.asyncio
    async def test_deletes_expired(self, engine):
        expired = await create(engine)
        live = await create(engine)
        await engine.invoke(
            "TimeBoundedResource",
            "defineTimeWindow",
            {"resource": expired, "availableFrom": "2020-01-01T00:00:00Z", "availableUntil": "2020-01-02T00:00:00Z"},
        )
        await engine.invoke("TimeBoundedResource", "defineTimeWindow", {"resource": live})

        report = await mediate(engine, "/Maintenance/cleanupExpiredResources", {})
        assert report["scanned"] == 1
        assert report["processed"] == 1
        assert report["deleted"] == 1
        assert report["remaining"] == 0
        assert report["errors"] == []
        assert "timestamp" in report

        remaining = await engine.invoke("Resource", "listResources")
        assert [r["id"] for r in remaining["resources"]] == [live]
        assert await engine.invoke("TimeBoundedResource", "getTimeWindow", {"resource": expired}) is None

    @pytest.mark.asyncio
    async def test_limit_and_errors(self, engine):
        for name in ("a", "b", "c"):
            await engine.invoke(
                "TimeBoundedResource",
                "defineTimeWindow",
                {"resource": name, "availableFrom": "2020-01-01T00:00:00Z", "availableUntil": "2020-01-02T00:00:00Z"},
            )
        report = await mediate(engine, "/Maintenance/cleanupExpiredResources", {"limit": 2})
        assert report["scanned"] == 3
        assert report["processed"] == 2
        assert report["remaining"] == 1
        assert report["deleted"] == 0
        assert [e["resource"] for e in report["errors"]] == ["a", "b"]

    def test_default_limit(self):
        assert DEFAULT_CLEANUP_LIMIT == 200

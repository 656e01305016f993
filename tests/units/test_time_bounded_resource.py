"""
Tests for the TimeBoundedResource unit.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from concord.core.errors import NotFoundError, UnitError
from concord.units.time_bounded_resource import TimeBoundedResource

PAST_FROM = "2020-01-01T00:00:00Z"
PAST_UNTIL = "2020-01-02T00:00:00Z"


@pytest.fixture
def windows(deps):
    return TimeBoundedResource(deps)


class TestDefine:
    @pytest.mark.asyncio
    async def test_define_and_get(self, windows):
        await windows.define_time_window(
            {"resource": "r1", "availableFrom": PAST_FROM, "availableUntil": PAST_UNTIL}
        )
        window = await windows.get_time_window({"resource": "r1"})
        assert window == {
            "resource": "r1",
            "availableFrom": datetime(2020, 1, 1, tzinfo=UTC),
            "availableUntil": datetime(2020, 1, 2, tzinfo=UTC),
        }

    @pytest.mark.asyncio
    async def test_from_defaults_to_now(self, windows):
        before = datetime.now(UTC)
        await windows.define_time_window({"resource": "r1", "availableFrom": None, "availableUntil": None})
        window = await windows.get_time_window({"resource": "r1"})
        assert window["availableFrom"] >= before
        assert window["availableUntil"] is None

    @pytest.mark.asyncio
    async def test_redefine_replaces(self, windows):
        await windows.define_time_window({"resource": "r1", "availableUntil": PAST_UNTIL})
        await windows.define_time_window({"resource": "r1", "availableUntil": None})
        assert (await windows.get_time_window({"resource": "r1"}))["availableUntil"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("until", [PAST_FROM, "2019-12-31T00:00:00Z"])
    async def test_from_must_precede_until(self, windows, until):
        with pytest.raises(UnitError, match="strictly earlier"):
            await windows.define_time_window(
                {"resource": "r1", "availableFrom": PAST_FROM, "availableUntil": until}
            )

    @pytest.mark.asyncio
    async def test_invalid_datetime(self, windows):
        with pytest.raises(UnitError, match="Invalid availableUntil value."):
            await windows.define_time_window({"resource": "r1", "availableUntil": "soon"})

    @pytest.mark.asyncio
    async def test_missing_window_is_none(self, windows):
        assert await windows.get_time_window({"resource": "nope"}) is None


class TestExpire:
    @pytest.mark.asyncio
    async def test_expire_elapsed(self, windows):
        await windows.define_time_window(
            {"resource": "r1", "availableFrom": PAST_FROM, "availableUntil": PAST_UNTIL}
        )
        assert await windows.expire_resource({"resource": "r1"}) == {}

    @pytest.mark.asyncio
    async def test_expire_not_yet(self, windows):
        future = (datetime.now(UTC) + timedelta(days=1)).isoformat()
        await windows.define_time_window({"resource": "r1", "availableUntil": future})
        with pytest.raises(UnitError, match="not yet expired"):
            await windows.expire_resource({"resource": "r1"})

    @pytest.mark.asyncio
    async def test_expire_unbounded(self, windows):
        await windows.define_time_window({"resource": "r1"})
        with pytest.raises(UnitError, match="indefinitely available"):
            await windows.expire_resource({"resource": "r1"})

    @pytest.mark.asyncio
    async def test_expire_missing(self, windows):
        with pytest.raises(NotFoundError):
            await windows.expire_resource({"resource": "r1"})


class TestDeleteAndList:
    @pytest.mark.asyncio
    async def test_delete(self, windows):
        await windows.define_time_window({"resource": "r1"})
        assert await windows.delete_time_window({"resource": "r1"}) == {}
        with pytest.raises(NotFoundError):
            await windows.delete_time_window({"resource": "r1"})

    @pytest.mark.asyncio
    async def test_list_expired(self, windows):
        future = (datetime.now(UTC) + timedelta(days=1)).isoformat()
        await windows.define_time_window({"resource": "old", "availableUntil": PAST_UNTIL})
        await windows.define_time_window({"resource": "later", "availableUntil": future})
        await windows.define_time_window({"resource": "forever"})
        assert await windows.list_expired_resources() == {"resourceIDs": ["old"]}
        far = datetime.now(UTC) + timedelta(days=2)
        assert set((await windows.list_expired_resources({"now": far}))["resourceIDs"]) == {"old", "later"}

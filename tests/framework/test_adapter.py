"""
Tests for mapping request bodies onto operation arguments.
"""

from __future__ import annotations

import pytest

from concord.core.store import DocumentStore
from concord.framework.adapter import adapt_arguments
from concord.framework.registry import OperationDescriptor, UnitDependencies, UnitRegistry

from tests.framework._units import LEDGER


def _descriptor(arity: int, parameters: tuple[str, ...] = ()) -> OperationDescriptor:
    return OperationDescriptor(
        unit="U", operation="op", handle=lambda *a: None, arity=arity, parameters=parameters
    )


class TestArityZero:
    @pytest.mark.parametrize("body", [{}, {"a": 1}, [1, 2], None, "x"])
    def test_body_ignored(self, body):
        assert adapt_arguments(_descriptor(0), body) == []


class TestArityOne:
    def test_object_passed_as_single_dto(self):
        body = {"a": 1, "b": 2}
        assert adapt_arguments(_descriptor(1, ("payload",)), body) == [{"a": 1, "b": 2}]

    def test_extra_keys_kept(self):
        args = adapt_arguments(_descriptor(1), {"owner": "u1", "extra": True})
        assert args == [{"owner": "u1", "extra": True}]

    def test_primitive(self):
        assert adapt_arguments(_descriptor(1), "r-1") == ["r-1"]
        assert adapt_arguments(_descriptor(1), 7) == [7]

    def test_null(self):
        assert adapt_arguments(_descriptor(1), None) == [None]


class TestArrays:
    def test_array_used_verbatim(self):
        assert adapt_arguments(_descriptor(2), [1, 2, 3]) == [1, 2, 3]

    def test_array_for_arity_one(self):
        assert adapt_arguments(_descriptor(1), ["a"]) == ["a"]


class TestKeyedPositional:
    def test_values_in_insertion_order(self):
        assert adapt_arguments(_descriptor(2), {"x": 10, "y": 20}) == [10, 20]

    def test_truncated_to_arity(self):
        assert adapt_arguments(_descriptor(2), {"x": 1, "y": 2, "z": 3}) == [1, 2]

    def test_padded_with_none(self):
        assert adapt_arguments(_descriptor(3), {"x": 1}) == [1, None, None]

    def test_bound_by_parameter_name_when_all_present(self):
        descriptor = _descriptor(2, ("entry_id", "owner_id"))
        assert adapt_arguments(descriptor, {"owner_id": "u1", "entry_id": "e1"}) == ["e1", "u1"]

    def test_null_pads_to_arity(self):
        assert adapt_arguments(_descriptor(2), None) == [None, None]


class TestAgainstRealUnit:
    @pytest.mark.asyncio
    async def test_create_then_remove_positionally(self):
        registry = UnitRegistry(UnitDependencies(store=DocumentStore()))
        registry.load(LEDGER)
        create = registry.get("Ledger", "create")
        remove = registry.get("Ledger", "remove")

        created = await create.handle(*adapt_arguments(create, {"owner": "u1"}))
        args = adapt_arguments(remove, {"id": created["id"], "owner": "u1"})
        assert args == [created["id"], "u1"]
        assert await remove.handle(*args) == {}
        assert len(registry.instance("Ledger").entries) == 0

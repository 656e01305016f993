"""
Tests for the unit registry and loader.
"""

from __future__ import annotations

import pytest

from concord.core.errors import DispatchError, OperationNotFoundError
from concord.core.store import DocumentStore
from concord.framework.registry import (
    OperationSpec,
    UnitDefinition,
    UnitDependencies,
    UnitRegistry,
)

from tests.framework._units import BROKEN, LEDGER, SLOPPY


@pytest.fixture
def fresh_registry():
    return UnitRegistry(UnitDependencies(store=DocumentStore()))


class TestLoad:
    def test_load_registers_descriptors(self, fresh_registry):
        descriptors = fresh_registry.load(LEDGER)
        assert [d.operation for d in descriptors] == ["create", "remove", "add", "count", "echo", "explode"]
        remove = fresh_registry.get("Ledger", "remove")
        assert remove.arity == 2
        assert remove.parameters == ("entry_id", "owner_id")
        assert remove.route == "/Ledger/remove"

    def test_one_instance_per_unit(self, fresh_registry):
        fresh_registry.load(LEDGER)
        instance = fresh_registry.instance("Ledger")
        assert fresh_registry.get("Ledger", "create").handle.__self__ is instance
        assert fresh_registry.get("Ledger", "remove").handle.__self__ is instance

    def test_factory_receives_dependencies(self):
        store = DocumentStore()
        registry = UnitRegistry(UnitDependencies(store=store))
        registry.load(LEDGER)
        assert registry.instance("Ledger").entries is store.collection("ledger")

    def test_instantiation_failure_skips_unit(self, fresh_registry):
        assert fresh_registry.load(BROKEN) == []
        assert "Broken" not in fresh_registry.units()
        assert not fresh_registry.has("Broken", "ping")

    def test_bad_arity_skips_only_that_operation(self, fresh_registry):
        descriptors = fresh_registry.load(SLOPPY)
        assert [d.operation for d in descriptors] == ["ok"]
        assert not fresh_registry.has("Sloppy", "needsTwo")
        assert not fresh_registry.has("Sloppy", "tooMany")

    def test_unit_without_operations_is_skipped(self, fresh_registry):
        empty = UnitDefinition(name="Empty", factory=lambda deps: object())
        assert fresh_registry.load(empty) == []
        assert fresh_registry.units() == []

    def test_loading_twice_rejected(self, fresh_registry):
        fresh_registry.load(LEDGER)
        with pytest.raises(DispatchError):
            fresh_registry.load(LEDGER)

    def test_operation_spec_default_arity(self):
        assert OperationSpec("x", lambda self, p: p).arity == 1


class TestDiscovery:
    def test_load_package(self, fresh_registry):
        assert fresh_registry.load_package("concord.units") == 4
        assert fresh_registry.units() == [
            "Following",
            "NotificationLog",
            "Resource",
            "TimeBoundedResource",
        ]

    def test_discover_returns_definitions(self, fresh_registry):
        names = sorted(d.name for d in fresh_registry.discover("concord.units"))
        assert names == ["Following", "NotificationLog", "Resource", "TimeBoundedResource"]

    def test_arity_zero_operation(self, fresh_registry):
        fresh_registry.load_package("concord.units")
        assert fresh_registry.get("Resource", "listResources").arity == 0


class TestLookup:
    def test_get_unknown_raises(self, fresh_registry):
        with pytest.raises(OperationNotFoundError):
            fresh_registry.get("Ledger", "nope")

    def test_resolve_accepts_python_name(self, fresh_registry):
        fresh_registry.load_package("concord.units")
        by_wire = fresh_registry.resolve("Following", "getFollowers")
        by_python = fresh_registry.resolve("Following", "get_followers")
        assert by_wire is by_python

    def test_resolve_unknown_raises(self, fresh_registry):
        fresh_registry.load(LEDGER)
        with pytest.raises(OperationNotFoundError):
            fresh_registry.resolve("Ledger", "destroy")

    def test_descriptors_filter_and_len(self, fresh_registry):
        fresh_registry.load(LEDGER)
        fresh_registry.load_package("concord.units")
        assert {d.unit for d in fresh_registry.descriptors("Ledger")} == {"Ledger"}
        assert len(fresh_registry) == len(list(fresh_registry))

    def test_clear(self, fresh_registry):
        fresh_registry.load(LEDGER)
        fresh_registry.clear()
        assert len(fresh_registry) == 0
        assert fresh_registry.units() == []

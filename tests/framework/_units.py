"""Small units used by the framework tests."""

from __future__ import annotations

from concord.core.errors import NotFoundError, UnitError
from concord.framework.registry import OperationSpec, UnitDefinition, UnitDependencies


class Ledger:
    """Positional-style unit: ``remove(entry_id, owner_id)``."""

    def __init__(self, dependencies: UnitDependencies):
        self.entries = dependencies.store.collection("ledger")

    async def create(self, payload: dict) -> dict:
        if not payload.get("owner"):
            raise UnitError("owner is required.")
        return {"id": self.entries.insert_one({"owner": payload["owner"]})}

    async def remove(self, entry_id: str, owner_id: str) -> dict:
        if self.entries.delete_one({"_id": entry_id, "owner": owner_id}) == 0:
            raise NotFoundError("Entry not found.")
        return {}

    def add(self, x, y):
        return {"sum": x + y}

    def count(self) -> dict:
        return {"count": len(self.entries)}

    def echo(self, value):
        return value

    async def explode(self, payload):
        raise RuntimeError("kaboom")


LEDGER = UnitDefinition(
    name="Ledger",
    factory=Ledger,
    operations=(
        OperationSpec("create", Ledger.create),
        OperationSpec("remove", Ledger.remove, arity=2),
        OperationSpec("add", Ledger.add, arity=2),
        OperationSpec("count", Ledger.count, arity=0),
        OperationSpec("echo", Ledger.echo),
        OperationSpec("explode", Ledger.explode),
    ),
)


class Broken:
    def __init__(self, dependencies: UnitDependencies):
        raise RuntimeError("cannot start")

    def ping(self, payload):
        return {}


BROKEN = UnitDefinition(name="Broken", factory=Broken, operations=(OperationSpec("ping", Broken.ping),))


class Sloppy:
    def __init__(self, dependencies: UnitDependencies):
        pass

    def ok(self, payload):
        return {}

    def needs_two(self, a, b):
        return {}


SLOPPY = UnitDefinition(
    name="Sloppy",
    factory=Sloppy,
    operations=(
        OperationSpec("ok", Sloppy.ok),
        OperationSpec("needsTwo", Sloppy.needs_two, arity=1),
        OperationSpec("tooMany", Sloppy.ok, arity=3),
    ),
)

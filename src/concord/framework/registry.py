"""Unit Registry & Loader — discovers units and builds operation descriptors.

Manifesto:
    Operations are declared, not discovered by reflection. Each unit module
    exports a static ``UNIT = UnitDefinition(...)`` table naming its
    operations, the handler behind each and the number of positional
    arguments it takes. The loader only has to import modules, build
    instances through an explicit factory and bind the handlers.

ARCHITECTURE
────────────
::

    units/<module>.py
        UNIT = UnitDefinition(
            name="Resource",
            factory=ResourceUnit,               ← receives UnitDependencies
            operations=(
                OperationSpec("createResource", ResourceUnit.create_resource),
                OperationSpec("listResources", ResourceUnit.list_resources, arity=0),
            ),
        )

    UnitRegistry
      ├── .discover(package)       ─ import modules, collect UNIT tables
      ├── .load(definition)        ─ instantiate + bind → OperationDescriptor[]
      ├── .load_package(package)   ─ discover + load, skipping broken units
      ├── .get(unit, operation)    ─ lookup (raises OperationNotFoundError)
      └── .resolve(unit, name)     ─ lookup by operation or handler name

Failure policy: a module that cannot be imported, a factory that raises,
a unit with no operations, or an operation whose declared arity does not
fit its handler signature is skipped with a warning; other units load.

Tags:
    concord, registry, loader, descriptors, units

Doc-Types:
    api-reference
"""

from __future__ import annotations

import importlib
import inspect
import pkgutil
import types
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any

from concord.core.errors import DispatchError, OperationNotFoundError
from concord.core.logging import get_logger
from concord.core.settings import ConcordSettings
from concord.core.store import DocumentStore

log = get_logger(__name__)


@dataclass(frozen=True)
class UnitDependencies:
    """Dependency bundle handed to every unit factory."""

    store: DocumentStore = field(default_factory=DocumentStore)
    settings: ConcordSettings | None = None


@dataclass(frozen=True)
class OperationSpec:
    """One row of a unit's registration table.

    Attributes:
        name: Operation name as exposed on the wire (``createResource``)
        handler: Unbound method of the unit class
        arity: Number of positional arguments the handler receives
    """

    name: str
    handler: Callable[..., Any]
    arity: int = 1


@dataclass(frozen=True)
class UnitDefinition:
    """Static registration table exported by a unit module as ``UNIT``."""

    name: str
    factory: Callable[[UnitDependencies], Any]
    operations: tuple[OperationSpec, ...] = ()


@dataclass(frozen=True)
class OperationDescriptor:
    """Immutable metadata describing one callable unit operation."""

    unit: str
    operation: str
    handle: Callable[..., Any] = field(compare=False, repr=False)
    arity: int = 1
    parameters: tuple[str, ...] = ()

    @property
    def route(self) -> str:
        """Route relative to the base path, e.g. ``/Resource/getResource``."""
        return f"/{self.unit}/{self.operation}"


def _positional_parameters(handle: Callable[..., Any]) -> tuple[list[inspect.Parameter], bool]:
    positional: list[inspect.Parameter] = []
    variadic = False
    for parameter in inspect.signature(handle).parameters.values():
        if parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD):
            positional.append(parameter)
        elif parameter.kind is parameter.VAR_POSITIONAL:
            variadic = True
    return positional, variadic


def _check_arity(handle: Callable[..., Any], arity: int) -> tuple[str, ...]:
    """Verify ``arity`` fits the bound handler; return declared parameter names."""
    if arity < 0:
        raise DispatchError(f"arity must be >= 0, got {arity}")
    positional, variadic = _positional_parameters(handle)
    required = [p for p in positional if p.default is p.empty]
    if len(required) > arity:
        raise DispatchError(
            f"handler requires {len(required)} positional arguments but arity is {arity}"
        )
    if len(positional) < arity and not variadic:
        raise DispatchError(
            f"handler accepts {len(positional)} positional arguments but arity is {arity}"
        )
    return tuple(p.name for p in positional[:arity])


class UnitRegistry:
    """Holds unit instances and their operation descriptors.

    Example:
        >>> registry = UnitRegistry(UnitDependencies())
        >>> registry.load_package("concord.units")
        4
        >>> registry.get("Following", "follow").arity
        1
    """

    def __init__(self, dependencies: UnitDependencies | None = None):
        self.dependencies = dependencies or UnitDependencies()
        self._instances: dict[str, Any] = {}
        self._descriptors: dict[tuple[str, str], OperationDescriptor] = {}
        self._handler_names: dict[tuple[str, str], str] = {}

    # ── Discovery ────────────────────────────────────────────────────────

    def discover(self, package: str | ModuleType) -> list[UnitDefinition]:
        """Import every module of ``package`` and collect its ``UNIT`` table."""
        if isinstance(package, str):
            package = importlib.import_module(package)
        definitions: list[UnitDefinition] = []
        search_path = getattr(package, "__path__", None)
        if search_path is None:
            log.warning("unit_package_not_a_package", package=package.__name__)
            return definitions
        for module_info in sorted(pkgutil.iter_modules(search_path), key=lambda m: m.name):
            if module_info.name.startswith("_"):
                continue
            module_name = f"{package.__name__}.{module_info.name}"
            try:
                module = importlib.import_module(module_name)
            except Exception as e:
                log.warning("unit_import_failed", module=module_name, error=str(e))
                continue
            definition = getattr(module, "UNIT", None)
            if not isinstance(definition, UnitDefinition):
                log.warning("unit_definition_missing", module=module_name)
                continue
            definitions.append(definition)
        return definitions

    def load(self, definition: UnitDefinition) -> list[OperationDescriptor]:
        """Instantiate one unit and register its operations.

        Returns:
            The descriptors registered; empty when the unit was skipped.
        """
        if definition.name in self._instances:
            raise DispatchError(f"Unit '{definition.name}' is already loaded.")
        if not definition.operations:
            log.warning("unit_skipped_no_operations", unit=definition.name)
            return []
        try:
            instance = definition.factory(self.dependencies)
        except Exception as e:
            log.warning("unit_instantiation_failed", unit=definition.name, error=str(e))
            return []

        descriptors: list[OperationDescriptor] = []
        for spec in definition.operations:
            try:
                handle = types.MethodType(spec.handler, instance)
                parameters = _check_arity(handle, spec.arity)
            except (DispatchError, TypeError, ValueError) as e:
                log.warning(
                    "operation_skipped",
                    unit=definition.name,
                    operation=spec.name,
                    error=str(e),
                )
                continue
            descriptors.append(
                OperationDescriptor(
                    unit=definition.name,
                    operation=spec.name,
                    handle=handle,
                    arity=spec.arity,
                    parameters=parameters,
                )
            )

        if not descriptors:
            log.warning("unit_skipped_no_operations", unit=definition.name)
            return []

        self._instances[definition.name] = instance
        for descriptor in descriptors:
            self._descriptors[(descriptor.unit, descriptor.operation)] = descriptor
            handler_name = getattr(descriptor.handle, "__name__", descriptor.operation)
            self._handler_names[(descriptor.unit, handler_name)] = descriptor.operation
        log.info("unit_registered", unit=definition.name, operations=len(descriptors))
        return descriptors

    def load_package(self, package: str | ModuleType) -> int:
        """Discover and load all units of ``package``; returns units loaded."""
        loaded = 0
        for definition in self.discover(package):
            if definition.name in self._instances:
                log.warning("unit_already_loaded", unit=definition.name)
                continue
            if self.load(definition):
                loaded += 1
        return loaded

    # ── Lookup ───────────────────────────────────────────────────────────

    def get(self, unit: str, operation: str) -> OperationDescriptor:
        try:
            return self._descriptors[(unit, operation)]
        except KeyError:
            raise OperationNotFoundError(unit, operation) from None

    def resolve(self, unit: str, name: str) -> OperationDescriptor:
        """Look up by wire operation name or by the handler's Python name."""
        if (unit, name) in self._descriptors:
            return self._descriptors[(unit, name)]
        operation = self._handler_names.get((unit, name))
        if operation is None:
            raise OperationNotFoundError(unit, name)
        return self._descriptors[(unit, operation)]

    def has(self, unit: str, operation: str) -> bool:
        return (unit, operation) in self._descriptors

    def instance(self, unit: str) -> Any:
        """Return the live unit instance (raises KeyError if not loaded)."""
        return self._instances[unit]

    def units(self) -> list[str]:
        return sorted(self._instances)

    def descriptors(self, unit: str | None = None) -> list[OperationDescriptor]:
        """All descriptors, ordered by unit then registration order."""
        return sorted(
            (d for d in self._descriptors.values() if unit is None or d.unit == unit),
            key=lambda d: d.unit,
        )

    def __iter__(self) -> Iterator[OperationDescriptor]:
        return iter(self.descriptors())

    def __len__(self) -> int:
        return len(self._descriptors)

    def clear(self) -> None:
        """Drop all units (for testing)."""
        self._instances.clear()
        self._descriptors.clear()
        self._handler_names.clear()

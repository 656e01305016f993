"""Unit registry, argument adapter and passthrough route policy."""

from concord.framework.adapter import adapt_arguments
from concord.framework.passthrough import DEFAULT_POLICY, RouteDecision, RoutePolicy
from concord.framework.registry import (
    OperationDescriptor,
    OperationSpec,
    UnitDefinition,
    UnitDependencies,
    UnitRegistry,
)

__all__ = [
    "adapt_arguments",
    "DEFAULT_POLICY",
    "RouteDecision",
    "RoutePolicy",
    "OperationDescriptor",
    "OperationSpec",
    "UnitDefinition",
    "UnitDependencies",
    "UnitRegistry",
]

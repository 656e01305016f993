"""
Argument Adapter — maps an inbound request body onto positional arguments.

Precedence (first rule that applies wins):

1. arity 0                       → ``[]`` (body ignored)
2. body is a list/tuple          → used verbatim
3. body is a mapping, arity 1    → ``[body]`` (DTO style, extra keys kept)
4. body is a mapping, arity > 1  → values bound by parameter name when every
                                   declared parameter is present, otherwise
                                   taken in key-insertion order; truncated or
                                   padded with ``None`` up to the arity
5. body is ``None``              → ``[None] * arity``
6. body is a primitive           → ``[body]``

The adapter never raises; a malformed call surfaces as an error from the
operation itself.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from concord.framework.registry import OperationDescriptor


def adapt_arguments(descriptor: OperationDescriptor, body: Any) -> list[Any]:
    arity = descriptor.arity
    if arity == 0:
        return []
    if isinstance(body, (list, tuple)):
        return list(body)
    if isinstance(body, Mapping):
        if arity == 1:
            return [dict(body)]
        return _keyed_positional(descriptor, body)
    if body is None:
        return [None] * arity
    return [body]


def _keyed_positional(descriptor: OperationDescriptor, body: Mapping[str, Any]) -> list[Any]:
    names = descriptor.parameters
    if len(names) == descriptor.arity and all(name in body for name in names):
        return [body[name] for name in names]
    values = list(body.values())[: descriptor.arity]
    return values + [None] * (descriptor.arity - len(values))

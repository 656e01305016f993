"""
Action records, patterns, frames and synchronization rules.

An ``ActionRecord`` is emitted once for every completed unit operation. A
``SyncRule`` names the actions it reacts to (``when``), an optional compute
step (``where``) and the actions it fires for each resulting frame
(``then``). Patterns and templates refer to rule-local logical variables
(``Var``); matching binds them into a ``Frame``.

Example::

    request, input = variables("request", "input")

    rule = SyncRule(
        name="EchoRoute",
        when=(when("Requesting", "request", {"path": "/echo", "input": input},
                   {"request": request}),),
        then=(invoke("Requesting", "respond", {"request": request, "echo": input}),),
    )

Tags:
    concord, engine, actions, patterns, frames, rules

Doc-Types:
    api-reference
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from concord.engine.engine import SyncContext

Frame = dict[str, Any]


@dataclass(frozen=True)
class Var:
    """A logical variable placeholder inside a pattern or template."""

    name: str

    def __repr__(self) -> str:
        return f"?{self.name}"


def variables(*names: str) -> tuple[Var, ...]:
    """Create several variables at once: ``request, input = variables("request", "input")``."""
    return tuple(Var(name) for name in names)


@dataclass(frozen=True)
class ActionRecord:
    """One completed unit operation invocation."""

    unit: str
    operation: str
    input: Mapping[str, Any]
    output: Mapping[str, Any]
    flow: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])

    @property
    def name(self) -> str:
        return f"{self.unit}.{self.operation}"


def _bind(pattern: Any, value: Any, frame: Frame) -> bool:
    """Unify ``pattern`` with ``value`` in place; False when they conflict."""
    if isinstance(pattern, Var):
        if pattern.name in frame:
            return frame[pattern.name] == value
        frame[pattern.name] = value
        return True
    if isinstance(pattern, Mapping):
        if not isinstance(value, Mapping):
            return False
        for key, sub_pattern in pattern.items():
            if key not in value or not _bind(sub_pattern, value[key], frame):
                return False
        return True
    return pattern == value


@dataclass(frozen=True)
class ActionPattern:
    """Matches actions of one (unit, operation) whose fields fit the patterns.

    ``input``/``output`` are mappings of field → literal, ``Var`` or nested
    mapping; a bare ``Var`` binds the whole document.
    """

    unit: str
    operation: str
    input: Mapping[str, Any] | Var = field(default_factory=dict)
    output: Mapping[str, Any] | Var = field(default_factory=dict)

    def match(self, action: ActionRecord, frame: Mapping[str, Any]) -> Frame | None:
        if action.unit != self.unit or action.operation != self.operation:
            return None
        bound: Frame = dict(frame)
        if not _bind(self.input, action.input, bound):
            return None
        if not _bind(self.output, action.output, bound):
            return None
        return bound


def when(
    unit: str,
    operation: str,
    input: Mapping[str, Any] | Var | None = None,
    output: Mapping[str, Any] | Var | None = None,
) -> ActionPattern:
    return ActionPattern(unit, operation, {} if input is None else input, {} if output is None else output)


def substitute(template: Any, frame: Mapping[str, Any]) -> Any:
    """Replace every ``Var`` in ``template`` with its frame binding."""
    if isinstance(template, Var):
        if template.name not in frame:
            raise KeyError(f"unbound variable {template!r}")
        return frame[template.name]
    if isinstance(template, Mapping):
        return {key: substitute(value, frame) for key, value in template.items()}
    if isinstance(template, (list, tuple)):
        return [substitute(value, frame) for value in template]
    return template


@dataclass(frozen=True)
class ActionTemplate:
    """An action to fire once per frame; ``args`` may contain variables."""

    unit: str
    operation: str
    args: tuple[Any, ...] = ()

    def instantiate(self, frame: Mapping[str, Any]) -> list[Any]:
        return [substitute(arg, frame) for arg in self.args]


def invoke(unit: str, operation: str, *args: Any) -> ActionTemplate:
    return ActionTemplate(unit, operation, tuple(args))


class Frames(list):
    """A list of frames with query helpers used by compute steps."""

    def filter(self, predicate: Callable[[Frame], bool]) -> Frames:
        return Frames(frame for frame in self if predicate(frame))

    def bind(self, var: Var, value: Callable[[Frame], Any]) -> Frames:
        """Return frames extended with ``var`` computed from each frame."""
        return Frames({**frame, var.name: value(frame)} for frame in self)

    async def query(
        self,
        query: Callable[[Frame], Awaitable[Any]],
        bindings: Mapping[str, Var],
    ) -> Frames:
        """Expand each frame through an asynchronous query.

        ``query`` returns a mapping or a list of mappings per frame; every
        returned row yields one frame extended with ``bindings`` (row field
        → variable). A frame whose query returns nothing is dropped.
        """
        expanded = Frames()
        for frame in self:
            rows = await query(frame)
            if rows is None:
                continue
            if isinstance(rows, Mapping):
                rows = [rows]
            for row in rows:
                extended = dict(frame)
                for key, var in bindings.items():
                    extended[var.name] = row.get(key) if isinstance(row, Mapping) else row
                expanded.append(extended)
        return expanded


Compute = Callable[["SyncContext", Frames], "Awaitable[Iterable[Frame]] | Iterable[Frame]"]
ErrorHook = Callable[["SyncContext", Frame, BaseException], Awaitable[None]]


@dataclass(frozen=True)
class SyncRule:
    """A declarative reaction: when → where → then.

    Attributes:
        name: Unique rule name (used in logs and duplicate-fire guards)
        when: Patterns that must all match actions of the same flow
        where: Optional compute step, called once per frame
        then: Templates fired for every frame the compute step returns
        on_error: Called with the failing frame when ``where`` raises
    """

    name: str
    when: tuple[ActionPattern, ...]
    where: Compute | None = None
    then: tuple[ActionTemplate, ...] = ()
    on_error: ErrorHook | None = None

    def __post_init__(self) -> None:
        if not self.when:
            raise ValueError(f"rule '{self.name}' needs at least one pattern")


__all__ = [
    "Var",
    "variables",
    "Frame",
    "Frames",
    "ActionRecord",
    "ActionPattern",
    "ActionTemplate",
    "SyncRule",
    "when",
    "invoke",
    "substitute",
]

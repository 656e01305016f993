"""
Synchronization Engine — action emission, rule matching, compute and fire.

Manifesto:
    Units never import each other. Every completed operation becomes an
    ``ActionRecord``; the engine matches it against registered rules and
    runs their compute and fire steps, which may invoke more operations.
    Reaction chains are processed with an explicit breadth-first work
    queue per flow, so they are bounded and can be logged as a flat trace.

ARCHITECTURE
────────────
::

    engine.invoke(unit, op, *args)           ← top-level call starts a flow
        │
        ├── run handler → ActionRecord ──► flow.queue
        │
        └── drain flow.queue (breadth first):
              action ──► match every rule ──► frames
                           │
                           ├── where(ctx, [frame])   (once per frame)
                           │     └── ctx.unit("X").op(...) ─► invoke (nested)
                           │                                   └── enqueued
                           └── then: instantiate templates ─► invoke (nested)

    Nested invokes (made while a flow is draining) run the handler
    immediately, enqueue their action and return the result; the top-level
    invoke returns only once its flow is empty; ``submit`` returns after
    the first action and leaves the drain to a background task.

Guardrails:
    - A compute failure for one frame never affects sibling frames
    - A rule fires at most once per assignment of actions to its patterns
    - A flow exceeding ``max_flow_actions`` raises ReactionLimitError

Tags:
    concord, engine, synchronization, work-queue, rules

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from collections import deque
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from concord.core.errors import ReactionLimitError
from concord.core.logging import LogContext, get_logger
from concord.engine.actions import ActionPattern, ActionRecord, Frame, Frames, SyncRule
from concord.framework.registry import OperationDescriptor, UnitRegistry

log = get_logger(__name__)


class Logging(str, Enum):
    """Diagnostics verbosity; has no functional effect."""

    OFF = "off"
    TRACE = "trace"
    VERBOSE = "verbose"


@dataclass
class _Flow:
    id: str
    queue: deque[ActionRecord] = field(default_factory=deque)
    history: list[ActionRecord] = field(default_factory=list)
    fired: set[tuple[str, tuple[str, ...]]] = field(default_factory=set)


_current_flow: ContextVar[_Flow | None] = ContextVar("concord_flow", default=None)


def _action_input(descriptor: OperationDescriptor, args: Sequence[Any]) -> dict[str, Any]:
    if len(args) == 1 and isinstance(args[0], Mapping):
        return dict(args[0])
    named = dict(zip(descriptor.parameters, args))
    if len(args) > len(descriptor.parameters):
        named["args"] = list(args[len(descriptor.parameters):])
    return named


def _action_output(result: Any) -> dict[str, Any]:
    if result is None:
        return {}
    if isinstance(result, Mapping):
        return dict(result)
    return {"result": result}


class UnitProxy:
    """Instrumented view of a unit: every call goes through the engine.

    Attribute access accepts the wire operation name (``getFollowers``) or
    the handler's Python name (``get_followers``).
    """

    def __init__(self, engine: SyncEngine, unit: str):
        self._engine = engine
        self._unit = unit

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        descriptor = self._engine.registry.resolve(self._unit, name)

        async def call(*args: Any) -> Any:
            return await self._engine.invoke(descriptor.unit, descriptor.operation, *args)

        call.__name__ = descriptor.operation
        return call

    def __repr__(self) -> str:
        return f"UnitProxy({self._unit!r})"


@dataclass(frozen=True)
class SyncContext:
    """Handed to compute steps and error hooks."""

    engine: SyncEngine
    flow: str
    rule: str

    def unit(self, name: str) -> UnitProxy:
        return self.engine.unit(name)

    async def invoke(self, unit: str, operation: str, *args: Any) -> Any:
        return await self.engine.invoke(unit, operation, *args)


class SyncEngine:
    """Runs operations, emits actions and reacts to them with rules.

    Example:
        >>> engine = SyncEngine(registry, level=Logging.TRACE)
        >>> engine.register(ALL_SYNCS)
        >>> await engine.invoke("Resource", "createResource", {"owner": "u1", "name": "Bike"})
        {'resourceID': '...'}
    """

    def __init__(
        self,
        registry: UnitRegistry,
        *,
        level: Logging | str = Logging.OFF,
        max_flow_actions: int = 1000,
    ):
        self.registry = registry
        self.level = Logging(level)
        self.max_flow_actions = max_flow_actions
        self._rules: dict[str, SyncRule] = {}
        self.last_trace: tuple[ActionRecord, ...] = ()

    # ── Registration ─────────────────────────────────────────────────────

    def register(self, rules: Iterable[SyncRule]) -> None:
        """Add a batch of rules. Rule names must be unique."""
        batch = list(rules)
        for rule in batch:
            if rule.name in self._rules:
                raise ValueError(f"Sync rule '{rule.name}' is already registered.")
        for rule in batch:
            self._rules[rule.name] = rule
            log.debug("sync_registered", rule=rule.name, patterns=len(rule.when))

    @property
    def rules(self) -> list[SyncRule]:
        return list(self._rules.values())

    def unit(self, name: str) -> UnitProxy:
        return UnitProxy(self, name)

    # ── Invocation ───────────────────────────────────────────────────────

    async def invoke(self, unit: str, operation: str, *args: Any) -> Any:
        """Run an operation, emit its action and process reactions.

        Raises whatever the operation raises; a failed operation emits no
        action. Nested calls (made while a flow is draining) return as soon
        as their action is queued.
        """
        descriptor = self.registry.get(unit, operation)
        flow = _current_flow.get()
        if flow is not None:
            result = await self._run(descriptor, args)
            self._enqueue(flow, self._record(descriptor, args, result, flow))
            return result

        result, flow = await self._begin(descriptor, args)
        await self._finish(flow)
        return result

    async def submit(self, unit: str, operation: str, *args: Any) -> tuple[Any, asyncio.Task[None]]:
        """Run an operation now and process its reactions in the background.

        Returns the operation's result together with the task draining the
        new flow. The caller owns the task and must keep a reference to it
        until it completes.

        Raises:
            RuntimeError: called while a flow is draining
        """
        if _current_flow.get() is not None:
            raise RuntimeError("submit() cannot start a flow from inside another flow")
        descriptor = self.registry.get(unit, operation)
        result, flow = await self._begin(descriptor, args)
        return result, asyncio.create_task(self._finish(flow), name=f"flow-{flow.id}")

    def trace(self) -> tuple[ActionRecord, ...]:
        """Actions of the running flow (or of the last completed one)."""
        flow = _current_flow.get()
        return tuple(flow.history) if flow is not None else self.last_trace

    async def _begin(self, descriptor: OperationDescriptor, args: Sequence[Any]) -> tuple[Any, _Flow]:
        flow = _Flow(id=uuid.uuid4().hex[:12])
        token = _current_flow.set(flow)
        try:
            async with LogContext(flow=flow.id):
                result = await self._run(descriptor, args)
                self._enqueue(flow, self._record(descriptor, args, result, flow))
        except Exception:
            self.last_trace = tuple(flow.history)
            raise
        finally:
            _current_flow.reset(token)
        return result, flow

    async def _finish(self, flow: _Flow) -> None:
        token = _current_flow.set(flow)
        try:
            async with LogContext(flow=flow.id):
                await self._drain(flow)
        finally:
            _current_flow.reset(token)
            self.last_trace = tuple(flow.history)

    async def _run(self, descriptor: OperationDescriptor, args: Sequence[Any]) -> Any:
        result = descriptor.handle(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _record(
        self,
        descriptor: OperationDescriptor,
        args: Sequence[Any],
        result: Any,
        flow: _Flow,
    ) -> ActionRecord:
        return ActionRecord(
            unit=descriptor.unit,
            operation=descriptor.operation,
            input=_action_input(descriptor, args),
            output=_action_output(result),
            flow=flow.id,
        )

    def _enqueue(self, flow: _Flow, action: ActionRecord) -> None:
        if len(flow.history) >= self.max_flow_actions:
            log.error("reaction_limit_exceeded", flow=flow.id, limit=self.max_flow_actions)
            raise ReactionLimitError(flow.id, self.max_flow_actions)
        flow.history.append(action)
        flow.queue.append(action)

    # ── Work queue ───────────────────────────────────────────────────────

    async def _drain(self, flow: _Flow) -> None:
        while flow.queue:
            action = flow.queue.popleft()
            self._log_action(action)
            for rule in list(self._rules.values()):
                frames = self._match(rule, action, flow)
                if frames:
                    await self._run_rule(rule, frames, flow)

    def _log_action(self, action: ActionRecord) -> None:
        if self.level is Logging.OFF:
            return
        if self.level is Logging.VERBOSE:
            log.info(
                "action",
                action=action.name,
                action_id=action.id,
                input=dict(action.input),
                output=dict(action.output),
            )
        else:
            log.info("action", action=action.name, action_id=action.id)

    # ── Match ────────────────────────────────────────────────────────────

    def _match(self, rule: SyncRule, action: ActionRecord, flow: _Flow) -> Frames:
        """Frames for every new, consistent combination that includes ``action``."""
        position = next(i for i, a in enumerate(flow.history) if a.id == action.id)
        earlier = flow.history[:position]
        frames = Frames()
        for index, pattern in enumerate(rule.when):
            first = pattern.match(action, {})
            if first is None:
                continue
            others = rule.when[:index] + rule.when[index + 1:]
            for frame, ids in _extend(others, first, (action.id,), earlier):
                # ids are ordered by pattern position
                assigned = ids[1:index + 1] + ids[:1] + ids[index + 1:]
                key = (rule.name, assigned)
                if key in flow.fired:
                    continue
                flow.fired.add(key)
                frames.append(frame)
        return frames

    # ── Compute + fire ───────────────────────────────────────────────────

    async def _run_rule(self, rule: SyncRule, frames: Frames, flow: _Flow) -> None:
        ctx = SyncContext(engine=self, flow=flow.id, rule=rule.name)
        if self.level is Logging.VERBOSE:
            log.info("sync_matched", rule=rule.name, frames=len(frames))

        results = Frames()
        for frame in frames:
            if rule.where is None:
                results.append(frame)
                continue
            try:
                computed = rule.where(ctx, Frames([frame]))
                if inspect.isawaitable(computed):
                    computed = await computed
            except Exception as e:
                log.warning("sync_compute_failed", rule=rule.name, error=str(e))
                await self._on_error(ctx, rule, frame, e)
                continue
            results.extend(computed or ())

        for frame in results:
            for template in rule.then:
                try:
                    args = template.instantiate(frame)
                    if self.level is Logging.VERBOSE:
                        log.info(
                            "sync_fired",
                            rule=rule.name,
                            action=f"{template.unit}.{template.operation}",
                        )
                    await self.invoke(template.unit, template.operation, *args)
                except Exception as e:
                    log.warning(
                        "sync_fire_failed",
                        rule=rule.name,
                        action=f"{template.unit}.{template.operation}",
                        error=str(e),
                    )

    async def _on_error(
        self, ctx: SyncContext, rule: SyncRule, frame: Frame, error: Exception
    ) -> None:
        if rule.on_error is None:
            return
        try:
            await rule.on_error(ctx, frame, error)
        except Exception as e:
            log.error("sync_error_hook_failed", rule=rule.name, error=str(e))


def _extend(
    patterns: Sequence[ActionPattern],
    frame: Frame,
    ids: tuple[str, ...],
    candidates: Sequence[ActionRecord],
) -> Iterator[tuple[Frame, tuple[str, ...]]]:
    if not patterns:
        yield frame, ids
        return
    head, rest = patterns[0], patterns[1:]
    for candidate in candidates:
        if candidate.id in ids:
            continue
        bound = head.match(candidate, frame)
        if bound is not None:
            yield from _extend(rest, bound, ids + (candidate.id,), candidates)


__all__ = ["Logging", "SyncContext", "SyncEngine", "UnitProxy"]

"""
Fluent runner — sugar over nodnod.

Dependencies are discovered from the target node; inputs are injected by type.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node


type Injection = tuple[type[Any], Any]


# ═══════════════════════════════════════════════════════════════════════════════
# TypedScope
# ═══════════════════════════════════════════════════════════════════════════════

class TypedScope:
    """Type-safe wrapper around nodnod.Scope."""

    __slots__ = ("_scope",)

    def __init__(self, scope: Scope | None = None, detail: str = "scope") -> None:
        self._scope = scope if scope is not None else Scope(detail=detail)

    @property
    def inner(self) -> Scope:
        return self._scope

    def inject[T](self, typ: type[T], value: T) -> TypedScope:
        self._scope.push(Value(typ, value))
        return self

    def get[T](self, typ: type[T]) -> T:
        result = self._scope.get(typ)
        if result is None:
            raise KeyError(f"{typ.__name__} not found in scope")
        return cast(T, result.value)

    async def __aenter__(self) -> TypedScope:
        await self._scope.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._scope.__aexit__(*args)


# ═══════════════════════════════════════════════════════════════════════════════
# Agent helpers
# ═══════════════════════════════════════════════════════════════════════════════

def build_agent(target: type[Any]) -> EventLoopAgent:
    return EventLoopAgent.build({cast(type[Node[Any, Any]], target)})


def typed(values: tuple[object, ...]) -> tuple[Injection, ...]:
    """Pair each value with its runtime type."""
    return tuple((cast(type[Any], type(v)), v) for v in values)


async def drive[T](
    agent: EventLoopAgent,
    target: type[T],
    injections: tuple[Injection, ...],
    detail: str = "run",
) -> T:
    """
    Run ``agent`` in a fresh scope and return the target node.

    Exceptions raised inside a node's ``__compose__`` propagate unchanged.
    """
    async with TypedScope(detail=detail) as scope:
        for typ, value in injections:
            scope.inject(typ, value)

        run_method = cast(
            Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
            getattr(agent, "run"),
        )
        await run_method(scope.inner, {})

        return scope.get(target)


# ═══════════════════════════════════════════════════════════════════════════════
# Run: Fluent awaitable builder
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(slots=True, frozen=True)
class Run[T]:
    """
    Fluent runner for a node; the agent is built on await.

        preview = await run(TotalsNode).given(request, ctx)
        preview = await run(TotalsNode).inject_as(RateProvider, fake).given(request)
    """
    _target: type[T]
    _injections: tuple[Injection, ...]

    def inject_as[V](self, typ: type[V], value: V) -> Run[T]:
        return Run(self._target, (*self._injections, (typ, value)))

    def given(self, *values: object) -> Run[T]:
        return Run(self._target, (*self._injections, *typed(values)))

    def __await__(self) -> Any:
        return drive(build_agent(self._target), self._target, self._injections).__await__()


def run[T](target: type[T]) -> Run[T]:
    return Run(_target=target, _injections=())


async def compose[T](target: type[T], *inputs: object) -> T:
    """
    One-shot composition.

        totals = await compose(TotalsNode, request, ctx)
    """
    return await run(target).given(*inputs)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("TypedScope", "Injection", "build_agent", "typed", "drive", "Run", "run", "compose")

"""
Compiled graph — build the agent once, run it per request.
"""

from __future__ import annotations

from dataclasses import dataclass

from nodnod import EventLoopAgent

from storefront.graph._run import build_agent, drive, typed


@dataclass(slots=True, frozen=True)
class Compiled[T]:
    """
    Pre-compiled graph for repeated execution.

    Example:
        pipeline = graph(PlaceOrderNode)
        placed = await pipeline(request, ctx)
    """

    _target: type[T]
    _agent: EventLoopAgent

    @property
    def target(self) -> type[T]:
        return self._target

    async def __call__(self, *inputs: object) -> T:
        return await drive(self._agent, self._target, typed(inputs), detail="compiled_run")


def graph[T](target: type[T]) -> Compiled[T]:
    return Compiled(_target=target, _agent=build_agent(target))


__all__ = ("Compiled", "graph")

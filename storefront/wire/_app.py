from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Self

from kungfu import Result

from storefront.wire.codecs.raw import RawBodyCodec
from storefront.wire.codecs.rrc import RequestResponseCodec
from storefront.wire.triggers.http import HTTPRouteTrigger


type Handler[D, T, E] = Callable[[D], Awaitable[Result[T, E]]]

# a compiler picks the pairs it understands and skips the rest
type Trigger = HTTPRouteTrigger | Any
type Codec = RequestResponseCodec | RawBodyCodec | Any
type Exposure = tuple[Trigger, Codec]


# ═══════════════════════════════════════════════════════════════════════════════
# Endpoint
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Endpoint:
    """An async handler plus the ways it is exposed."""

    handler: Handler[Any, Any, Any]
    exposures: tuple[Exposure, ...] = ()

    def expose(self, trigger: Trigger, codec: Codec) -> Endpoint:
        return Endpoint(self.handler, (*self.exposures, (trigger, codec)))

    def http_routes(self) -> Iterator[tuple[str, str]]:
        for trigger, _ in self.exposures:
            if isinstance(trigger, HTTPRouteTrigger):
                yield trigger.method.upper(), trigger.path


def endpoint[D, T, E](handler: Handler[D, T, E]) -> Endpoint:
    return Endpoint(handler)


# ═══════════════════════════════════════════════════════════════════════════════
# Application
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class Application:
    endpoints: list[Endpoint] = field(default_factory=list[Endpoint])
    _routes: set[tuple[str, str]] = field(default_factory=set[tuple[str, str]])

    def mount(self, *endps: Endpoint) -> Self:
        """Add endpoints. Two handlers on one method and path is a wiring bug."""
        for endp in endps:
            for route in endp.http_routes():
                if route in self._routes:
                    raise ValueError(f"route {route[0]} {route[1]} is mounted twice")
                self._routes.add(route)
            self.endpoints.append(endp)
        return self

    @property
    def routes(self) -> frozenset[tuple[str, str]]:
        return frozenset(self._routes)


def application() -> Application:
    return Application()


__all__ = (
    "Handler",
    "Trigger",
    "Codec",
    "Exposure",
    "Endpoint",
    "endpoint",
    "Application",
    "application",
)

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from kungfu import Result

from storefront.wire.codecs.rrc import FromDomain


DomainT_co = TypeVar("DomainT_co", covariant=True)


class FromRaw(Protocol[DomainT_co]):
    @classmethod
    def from_raw(cls, body: bytes, headers: Mapping[str, str]) -> DomainT_co: ...


@dataclass(frozen=True, slots=True)
class RawBodyCodec:
    """Unparsed body and selected headers in, for signed payloads."""

    request: type[FromRaw[Any]]
    response: type[FromDomain[Result[Any, Any]]]

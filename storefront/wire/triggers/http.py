from dataclasses import dataclass, field
from typing import Literal


type Method = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]
type Path = str
type Header = str
type Headers = frozenset[str]


@dataclass(frozen=True, slots=True)
class HTTPRouteTrigger:
    """
    An HTTP route. ``headers`` names request headers handed to raw-body
    codecs, lower-cased.
    """

    method: Method
    path: Path
    headers: Headers = field(default_factory=lambda: frozenset[str]())

"""
storefront — checkout and order finalization.

    from storefront import saga as S   # compensated multi-step writes
    from storefront import cache as C  # TTL caches with invalidation
    from storefront import graph as G  # checkout dependency graph

    from storefront.service import Storefront
"""

from storefront import saga
from storefront import cache
from storefront import graph
from storefront._types import Clock, Now, Lazy

__version__ = "0.1.0"

__all__ = (
    "saga",
    "cache",
    "graph",
    "Clock",
    "Now",
    "Lazy",
)

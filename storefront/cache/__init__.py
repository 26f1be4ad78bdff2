"""
Cache — tiered caching with expiry and explicit invalidation.

    from storefront import cache as C

    coupons = C.cache(key_fn, fetch_fn).tier(C.LocalTier(ttl=timedelta(minutes=5))).build()
    result = await coupons.get(code)
    await coupons.invalidate(code)
"""

from __future__ import annotations

from storefront.cache._types import (
    Tier,
    LocalTier,
    CacheResult,
    CacheError,
    CacheErrorKind,
)
from storefront.cache._builder import cache, Cache, CacheExecutor, CacheStats

__all__ = (
    "Tier",
    "LocalTier",
    "CacheResult",
    "CacheError",
    "CacheErrorKind",
    "cache",
    "Cache",
    "CacheExecutor",
    "CacheStats",
)

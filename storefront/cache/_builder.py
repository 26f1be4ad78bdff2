"""
Cache builder and executor.

Reads walk the tiers in order. A miss calls the fetch function once per key
even when several callers miss at the same time, and only ``Ok`` values are
written back.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from collections.abc import Callable

import structlog
from kungfu import LazyCoroResult, Result, Ok, Error

from storefront.cache._types import (
    Tier,
    CacheResult,
    CacheError,
)

log = structlog.get_logger(__name__)

type KeyFn[K] = Callable[[K], str]
type Fetch[K, T, E] = Callable[[K], LazyCoroResult[T, E]]


# ═══════════════════════════════════════════════════════════════════════════════
# Builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Cache[K, T, E]:
    """
    Fluent builder; ``tier`` returns a new builder.

        coupon_cache = (
            C.cache(coupon_key, fetch_coupon)
            .tier(C.LocalTier(max_size=256, ttl=timedelta(minutes=5)))
            .build()
        )
    """

    key_fn: KeyFn[K]
    fetch: Fetch[K, T, E]
    tiers: tuple[Tier[T], ...] = ()

    def tier(self, t: Tier[T]) -> Cache[K, T, E]:
        return Cache(self.key_fn, self.fetch, (*self.tiers, t))

    def build(self) -> CacheExecutor[K, T, E]:
        return CacheExecutor(self.key_fn, self.fetch, self.tiers)


# ═══════════════════════════════════════════════════════════════════════════════
# Executor
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    tier_errors: int = 0


@dataclass(slots=True, frozen=True)
class CacheExecutor[K, T, E]:
    key_fn: KeyFn[K]
    fetch: Fetch[K, T, E]
    tiers: tuple[Tier[T], ...]
    stats: CacheStats = field(default_factory=CacheStats)
    _inflight: dict[str, asyncio.Future[Result[T, E]]] = field(default_factory=dict)

    def get(self, key: K) -> LazyCoroResult[CacheResult[T], E]:
        cache_key = self.key_fn(key)

        async def execute() -> Result[CacheResult[T], E]:
            cached = await self._read(cache_key)
            if cached is not None:
                self.stats.hits += 1
                return Ok(cached)

            self.stats.misses += 1
            match await self._load(key, cache_key):
                case Ok(value):
                    return Ok(CacheResult(value=value, hit=False, tier=None, ttl_remaining=None))
                case Error(e):
                    return Error(e)

        return LazyCoroResult(execute)

    async def _read(self, cache_key: str) -> CacheResult[T] | None:
        for t in self.tiers:
            try:
                value = await t.get(cache_key)
                if value is None:
                    continue
                return CacheResult(value=value, hit=True, tier=t.name, ttl_remaining=await t.ttl(cache_key))
            except Exception:
                self.stats.tier_errors += 1
                log.warning("cache_tier_read_failed", tier=t.name, key=cache_key, exc_info=True)
        return None

    async def _load(self, key: K, cache_key: str) -> Result[T, E]:
        pending = self._inflight.get(cache_key)
        if pending is not None:
            self.stats.coalesced += 1
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._fetch_and_store(key, cache_key))
        self._inflight[cache_key] = task
        try:
            return await asyncio.shield(task)
        finally:
            if self._inflight.get(cache_key) is task:
                del self._inflight[cache_key]

    async def _fetch_and_store(self, key: K, cache_key: str) -> Result[T, E]:
        result = await self.fetch(key)
        match result:
            case Ok(value):
                for t in self.tiers:
                    try:
                        await t.set(cache_key, value)
                    except Exception:
                        self.stats.tier_errors += 1
                        log.warning("cache_tier_write_failed", tier=t.name, key=cache_key, exc_info=True)
        return result

    async def invalidate(self, key: K) -> Result[bool, CacheError]:
        """Drop ``key`` from every tier. ``Ok(True)`` when any tier held it."""
        cache_key = self.key_fn(key)
        deleted = False
        for t in self.tiers:
            try:
                deleted = await t.delete(cache_key) or deleted
            except Exception:
                self.stats.tier_errors += 1
                log.warning("cache_invalidate_failed", tier=t.name, key=cache_key, exc_info=True)
        return Ok(deleted)

    async def invalidate_pattern(self, pattern: str) -> Result[int, CacheError]:
        total = 0
        for t in self.tiers:
            try:
                total += await t.delete_pattern(pattern)
            except Exception:
                self.stats.tier_errors += 1
                log.warning("cache_invalidate_failed", tier=t.name, pattern=pattern, exc_info=True)
        return Ok(total)


def cache[K, T, E](key: KeyFn[K], fetch: Fetch[K, T, E]) -> Cache[K, T, E]:
    """
    Start a cache over ``fetch``; ``key`` maps an input to its string key.

        quotes = (
            C.cache(quote_key, rates.estimate_for)
            .tier(C.LocalTier(ttl=timedelta(minutes=10)))
            .build()
        )
        result = await quotes.get(query)
    """
    return Cache(key, fetch)


__all__ = ("Cache", "CacheExecutor", "CacheStats", "cache")

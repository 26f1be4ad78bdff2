"""
Cache types.
"""

from __future__ import annotations

import fnmatch
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum, auto
from typing import Protocol

from storefront._types import Clock

# ═══════════════════════════════════════════════════════════════════════════════
# Tier Protocol: Users Implement This
# ═══════════════════════════════════════════════════════════════════════════════

class Tier[T](Protocol):
    """
    Cache tier protocol.

    Implement this for shared backends (Redis, Memcached, ...). A tier that
    does not track expiry returns None from ``ttl``.
    """

    @property
    def name(self) -> str:
        """Tier name for debugging."""
        ...

    async def get(self, key: str) -> T | None:
        """Get value. Returns None on miss or expiry."""
        ...

    async def set(self, key: str, value: T) -> None:
        ...

    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if existed."""
        ...

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob pattern. Returns count."""
        ...

    async def ttl(self, key: str) -> timedelta | None:
        """Time left before ``key`` expires."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Local Tier: In-Memory LRU with TTL
# ═══════════════════════════════════════════════════════════════════════════════

class LocalTier[T]:
    """
    In-memory LRU tier with an optional per-entry time to live.

    Expired entries read as misses and are dropped on access.

    Example:
        tier = LocalTier[ShippingQuote](max_size=500, ttl=timedelta(minutes=10))
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl: timedelta | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._max_size = max_size
        self._ttl = ttl.total_seconds() if ttl is not None else None
        self._clock = clock
        self._entries: OrderedDict[str, tuple[T, float | None]] = OrderedDict()

    @property
    def name(self) -> str:
        return "local"

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str) -> tuple[T, float | None] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> T | None:
        entry = self._live(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return entry[0]

    async def set(self, key: str, value: T) -> None:
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self._max_size:
            self._entries.popitem(last=False)
        expires_at = self._clock() + self._ttl if self._ttl is not None else None
        self._entries[key] = (value, expires_at)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        doomed = [k for k in self._entries if fnmatch.fnmatch(k, pattern)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    async def ttl(self, key: str) -> timedelta | None:
        entry = self._live(key)
        if entry is None or entry[1] is None:
            return None
        return timedelta(seconds=max(entry[1] - self._clock(), 0.0))


# ═══════════════════════════════════════════════════════════════════════════════
# Cache Result
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class CacheResult[T]:
    """Cache operation result with metadata."""
    value: T
    hit: bool
    tier: str | None
    ttl_remaining: timedelta | None


class CacheErrorKind(Enum):
    MISS = auto()
    CONNECTION = auto()
    SERIALIZATION = auto()
    TIMEOUT = auto()


@dataclass(frozen=True, slots=True)
class CacheError:
    kind: CacheErrorKind
    message: str


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Tier",
    "LocalTier",
    "CacheResult",
    "CacheError",
    "CacheErrorKind",
)

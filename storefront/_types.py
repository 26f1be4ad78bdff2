"""
Shared aliases.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from kungfu import LazyCoroResult

from storefront.domain import CheckoutError

type Clock = Callable[[], float]
"""Monotonic seconds, for cache expiry."""

type Now = Callable[[], datetime]
"""Aware UTC wall clock, for order timestamps and code expiry."""

type Lazy[T] = LazyCoroResult[T, CheckoutError]
"""Deferred checkout work."""

__all__ = ("Clock", "Now", "Lazy")

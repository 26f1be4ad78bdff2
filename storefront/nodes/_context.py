"""
Context — collaborators every checkout node can ask for.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront import cache as C
from storefront._types import Now
from storefront.domain import CheckoutError, Coupon
from storefront.notify import EmailChannel
from storefront.payments import PaymentProvider
from storefront.settings import Settings
from storefront.shipping import ShippingEstimator


@dataclass(frozen=True, slots=True)
class CheckoutContext:
    session_factory: async_sessionmaker[AsyncSession]
    settings: Settings
    shipping: ShippingEstimator
    coupons: C.CacheExecutor[str, Coupon, CheckoutError]
    provider: PaymentProvider
    email: EmailChannel
    now: Now


__all__ = ("CheckoutContext",)

"""
Shipping — weight model, carrier rate client and the cached estimator.

Chargeable weight is the larger of dead weight and volumetric weight
(L x B x H / 5000, in kg). Lines without dimensions fall back to a value
based estimate of ``max(500 g, 0.1 g per rupee)``.

Carrier quotes are cached by (pin, weight, method). A caller supplied
non-negative shipping price is trusted as is.
"""

from __future__ import annotations

import math
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Protocol

import httpx
import structlog
from combinators import RetryPolicy, fallback_with, retry
from combinators import lift as L
from kungfu import LazyCoroResult

from storefront import cache as C
from storefront._types import Clock, Lazy
from storefront.domain import (
    CheckoutError,
    CheckoutErrors,
    PaymentMethod,
    PricedLine,
    Product,
    ShippingDimensions,
    ShippingQuote,
)
from storefront.ingress import to_paise

log = structlog.get_logger(__name__)


VOLUMETRIC_DIVISOR = Decimal(5000)
MIN_ESTIMATED_WEIGHT_GRAMS = 500


# ═══════════════════════════════════════════════════════════════════════════════
# Weight
# ═══════════════════════════════════════════════════════════════════════════════


def volumetric_weight_grams(dims: ShippingDimensions) -> int:
    kg = dims.length_cm * dims.breadth_cm * dims.height_cm / VOLUMETRIC_DIVISOR
    return math.ceil(kg * 1000)


def chargeable_weight_grams(dims: ShippingDimensions) -> int:
    return max(dims.weight_grams, volumetric_weight_grams(dims))


def estimated_weight_grams(value_paise: int) -> int:
    return max(MIN_ESTIMATED_WEIGHT_GRAMS, math.ceil(value_paise / 1000))


def order_weight_grams(lines: Sequence[PricedLine], products: Mapping[str, Product]) -> int:
    """Sum chargeable weight per unit; value-estimate lines with no dimensions once."""
    weighed = 0
    unweighed_value = 0
    has_unweighed = False
    for priced in lines:
        product = products.get(priced.line.product_id)
        if product is not None and product.dimensions is not None:
            weighed += chargeable_weight_grams(product.dimensions) * priced.line.quantity
        else:
            has_unweighed = True
            unweighed_value += priced.line_total
    if has_unweighed:
        weighed += estimated_weight_grams(unweighed_value)
    return weighed


# ═══════════════════════════════════════════════════════════════════════════════
# Rate Provider
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class QuoteQuery:
    destination_pin: str
    weight_grams: int
    method: PaymentMethod


def quote_key(query: QuoteQuery) -> str:
    return f"quote:{query.destination_pin}:{query.weight_grams}:{query.method.value}"


class RateProvider(Protocol):
    def estimate(self, query: QuoteQuery) -> Lazy[int]:
        """Shipping charge in paise."""
        ...


@dataclass(frozen=True, slots=True)
class CarrierFailure:
    reason: str
    transient: bool


def _carrier_failure(exc: Exception) -> CarrierFailure:
    match exc:
        case httpx.HTTPStatusError(response=response):
            return CarrierFailure(f"carrier returned {response.status_code}", response.status_code >= 500)
        case httpx.TransportError():
            return CarrierFailure(f"carrier unreachable: {exc}", True)
        case _:
            return CarrierFailure(str(exc) or type(exc).__name__, False)


def _total_amount(body: Any) -> int:
    match body:
        case [{"total_amount": amount}, *_] | {"total_amount": amount}:
            paise = to_paise(amount)
        case _:
            raise ValueError("malformed rate response")
    if paise is None or paise <= 0:
        raise ValueError("carrier returned no charge")
    return paise


class CarrierRates:
    """Delhivery invoice-charges API over an ``httpx.AsyncClient``."""

    PATH = "/api/kinko/v1/invoice/charges/.json"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        token: str,
        origin_pin: str,
        base_url: str = "https://track.delhivery.com",
        attempts: int = 2,
        retry_delay: float = 0.2,
    ) -> None:
        self._client = client
        self._token = token
        self._origin_pin = origin_pin
        self._url = base_url.rstrip("/") + self.PATH
        self._policy = RetryPolicy.fixed(
            times=attempts,
            delay_seconds=retry_delay,
            retry_on=lambda f: f.transient,
        )

    async def _fetch(self, query: QuoteQuery) -> int:
        response = await self._client.get(
            self._url,
            params={
                "md": "E",
                "ss": "Delivered",
                "d_pin": query.destination_pin,
                "o_pin": self._origin_pin,
                "cgm": query.weight_grams,
                "pt": "COD" if query.method is PaymentMethod.COD else "Pre-paid",
            },
            headers={"Authorization": f"Token {self._token}", "Accept": "application/json"},
        )
        response.raise_for_status()
        return _total_amount(response.json())

    def estimate(self, query: QuoteQuery) -> Lazy[int]:
        attempt = L.catching_async(lambda: self._fetch(query), on_error=_carrier_failure)
        return retry(attempt, policy=self._policy).map_err(
            lambda f: CheckoutErrors.shipping_unavailable(f.reason)
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Estimator
# ═══════════════════════════════════════════════════════════════════════════════


class ShippingEstimator:
    """
    Shipping price for a checkout.

    ``fallback`` maps payment method to a flat charge used when the carrier
    cannot quote; without it the carrier error is returned.
    """

    def __init__(
        self,
        rates: RateProvider,
        *,
        ttl: timedelta,
        fallback: Mapping[PaymentMethod, int] | None = None,
        clock: Clock = time.monotonic,
        max_size: int = 512,
    ) -> None:
        self._fallback = dict(fallback) if fallback is not None else None
        self._quotes = (
            C.cache(quote_key, rates.estimate)
            .tier(C.LocalTier[int](max_size=max_size, ttl=ttl, clock=clock))
            .build()
        )

    def quote(self, query: QuoteQuery) -> Lazy[ShippingQuote]:
        return self._quotes.get(query).map(
            lambda hit: ShippingQuote(amount=hit.value, source="carrier", method=query.method)
        )

    def price(
        self, requested: int | None, query: QuoteQuery
    ) -> Lazy[ShippingQuote]:
        if requested is not None and requested >= 0:
            return LazyCoroResult.pure(
                ShippingQuote(amount=requested, source="caller", method=query.method)
            )
        if self._fallback is None:
            return self.quote(query)

        flat = self._fallback[query.method]

        def use_flat(error: CheckoutError) -> Lazy[ShippingQuote]:
            log.warning("shipping_fallback", reason=error.message, amount=flat, method=query.method.value)
            return LazyCoroResult.pure(ShippingQuote(amount=flat, source="fallback", method=query.method))

        return fallback_with(self.quote(query), secondary=use_flat)

    async def invalidate(self) -> int:
        result = await self._quotes.invalidate_pattern("quote:*")
        return result.unwrap()


__all__ = (
    "VOLUMETRIC_DIVISOR",
    "MIN_ESTIMATED_WEIGHT_GRAMS",
    "volumetric_weight_grams",
    "chargeable_weight_grams",
    "estimated_weight_grams",
    "order_weight_grams",
    "QuoteQuery",
    "quote_key",
    "RateProvider",
    "CarrierFailure",
    "CarrierRates",
    "ShippingEstimator",
)

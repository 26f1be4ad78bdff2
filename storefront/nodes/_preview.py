"""
Preview — totals for a cart without placing anything.

Reuses the checkout nodes up to ``TotalsNode``; nothing is written and no
provider is called.
"""

from dataclasses import dataclass
from typing import Any

import structlog
from kungfu import Ok, Error, Result

from storefront import graph as G
from storefront.domain import (
    CheckoutError,
    CheckoutErrors,
    CheckoutRequest,
    PricedLine,
    ShippingQuote,
    Totals,
    rupees,
)
from storefront.nodes._context import CheckoutContext
from storefront.nodes._pricing import DiscountNode, PricingNode
from storefront.nodes._totals import ShippingNode, TotalsNode

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CheckoutPreview:
    lines: tuple[PricedLine, ...]
    totals: Totals
    shipping: ShippingQuote
    coupon_code: str | None

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": True,
            "message": "Order preview",
            "items": [
                {
                    "product": p.line.product_id,
                    "name": p.line.name,
                    "size": p.line.size,
                    "quantity": p.line.quantity,
                    "price": rupees(p.selling_price),
                    "originalPrice": rupees(p.original_price),
                    "sizeAutoAssigned": p.line.size_auto_assigned,
                }
                for p in self.lines
            ],
            "couponCode": self.coupon_code,
            "shippingSource": self.shipping.source,
            **self.totals.to_payload(),
        }


@G.node
class PreviewNode:
    def __init__(self, data: CheckoutPreview) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        pricing: PricingNode,
        discount: DiscountNode,
        shipping: ShippingNode,
        totals: TotalsNode,
    ) -> "PreviewNode":
        return cls(
            CheckoutPreview(
                lines=pricing.data.lines,
                totals=totals.data,
                shipping=shipping.data,
                coupon_code=discount.coupon.code if discount.coupon is not None else None,
            )
        )

    @classmethod
    async def execute(
        cls, request: CheckoutRequest, ctx: CheckoutContext
    ) -> Result[CheckoutPreview, CheckoutError]:
        try:
            node = await G.compose(cls, request, ctx)
        except CheckoutError as e:
            return Error(e)
        except Exception as e:
            log.exception("preview_failed", user_id=request.user_id)
            return Error(CheckoutErrors.unexpected(str(e) or type(e).__name__))
        return Ok(node.data)


__all__ = ("CheckoutPreview", "PreviewNode")

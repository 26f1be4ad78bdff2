"""
Pricing — line prices and the coupon discount.
"""

from kungfu import Ok, Error

from storefront import graph as G
from storefront.domain import CheckoutErrors, CheckoutRequest, Coupon, PricedCart
from storefront.nodes._context import CheckoutContext
from storefront.nodes._input import UserNode
from storefront.nodes._stock import CatalogNode, StockNode
from storefront.pricing import coupon_active, coupon_discount, price_cart


@G.node
class PricingNode:
    def __init__(self, data: PricedCart) -> None:
        self.data = data

    @classmethod
    async def __compose__(cls, stock: StockNode, catalog: CatalogNode) -> "PricingNode":
        return cls(price_cart(stock.lines, catalog.products))


@G.node
class CouponNode:
    """Coupon lookup goes through the coupon cache."""

    def __init__(self, data: Coupon | None) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: CheckoutRequest,
        user: UserNode,
        ctx: CheckoutContext,
    ) -> "CouponNode":
        if not request.coupon_code:
            return cls(None)

        match await ctx.coupons.get(request.coupon_code)():
            case Ok(hit):
                coupon = hit.value
            case Error(e):
                raise e

        if not coupon_active(coupon, ctx.now()):
            raise CheckoutErrors.invalid_coupon()
        return cls(coupon)


@G.node
class DiscountNode:
    def __init__(self, amount: int, coupon: Coupon | None) -> None:
        self.amount = amount
        self.coupon = coupon

    @classmethod
    async def __compose__(cls, pricing: PricingNode, coupon: CouponNode) -> "DiscountNode":
        return cls(coupon_discount(pricing.data.items_price, coupon.data), coupon.data)


__all__ = ("PricingNode", "CouponNode", "DiscountNode")

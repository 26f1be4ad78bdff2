"""
Totals — shipping, GST and the order total.
"""

from kungfu import Ok, Error

from storefront import graph as G
from storefront.domain import CheckoutRequest, ShippingQuote, TaxBreakdown, Totals
from storefront.nodes._context import CheckoutContext
from storefront.nodes._pricing import DiscountNode, PricingNode
from storefront.nodes._stock import CatalogNode
from storefront.shipping import QuoteQuery, order_weight_grams
from storefront.tax import compute_gst


@G.node
class ShippingNode:
    """Caller price, carrier quote or flat fallback, in that order."""

    def __init__(self, data: ShippingQuote) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: CheckoutRequest,
        pricing: PricingNode,
        catalog: CatalogNode,
        ctx: CheckoutContext,
    ) -> "ShippingNode":
        query = QuoteQuery(
            destination_pin=request.shipping_address.zip_code,
            weight_grams=order_weight_grams(pricing.data.lines, catalog.products),
            method=request.payment_method,
        )
        match await ctx.shipping.price(request.shipping_price, query)():
            case Ok(quote):
                return cls(quote)
            case Error(e):
                raise e


@G.node
class TaxNode:
    """GST on the discounted items price. Shipping is not taxed."""

    def __init__(self, data: TaxBreakdown) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: CheckoutRequest,
        pricing: PricingNode,
        discount: DiscountNode,
        ctx: CheckoutContext,
    ) -> "TaxNode":
        return cls(
            compute_gst(
                pricing.data.items_price - discount.amount,
                request.shipping_address.state,
                ctx.settings.business_state,
                ctx.settings.gst_rate,
            )
        )


@G.node
class TotalsNode:
    def __init__(self, data: Totals) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        pricing: PricingNode,
        discount: DiscountNode,
        shipping: ShippingNode,
        tax: TaxNode,
    ) -> "TotalsNode":
        return cls(
            Totals(
                items_price=pricing.data.items_price,
                total_original_items_price=pricing.data.total_original_items_price,
                shipping_price=shipping.data.amount,
                discount_amount=discount.amount,
                tax=tax.data,
            )
        )


__all__ = ("ShippingNode", "TaxNode", "TotalsNode")

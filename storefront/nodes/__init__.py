"""
Checkout nodes.

- _context.py  — CheckoutContext, injected into every run
- _input.py    — UserNode, CartNode
- _stock.py    — CatalogNode (fresh snapshot), StockNode
- _pricing.py  — PricingNode, CouponNode (cached), DiscountNode
- _totals.py   — ShippingNode, TaxNode, TotalsNode
- _place.py    — PlaceOrderNode: persist + payment branch
- _preview.py  — PreviewNode: the same graph, stopping at totals

    result = await PlaceOrderNode.execute(request, ctx)
"""

from storefront.nodes._context import CheckoutContext
from storefront.nodes._input import UserNode, CartNode
from storefront.nodes._stock import CatalogNode, StockNode
from storefront.nodes._pricing import PricingNode, CouponNode, DiscountNode
from storefront.nodes._totals import ShippingNode, TaxNode, TotalsNode
from storefront.nodes._place import PlaceOrderNode, checkout_graph
from storefront.nodes._preview import CheckoutPreview, PreviewNode

__all__ = (
    "CheckoutContext",
    "UserNode",
    "CartNode",
    "CatalogNode",
    "StockNode",
    "PricingNode",
    "CouponNode",
    "DiscountNode",
    "ShippingNode",
    "TaxNode",
    "TotalsNode",
    "PlaceOrderNode",
    "checkout_graph",
    "CheckoutPreview",
    "PreviewNode",
)

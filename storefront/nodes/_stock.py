"""
Stock — fresh catalog snapshot and availability.

Snapshots are read per checkout and never cached.
"""

from kungfu import Ok, Error

from storefront import graph as G
from storefront.domain import CartLine, Product
from storefront.nodes._context import CheckoutContext
from storefront.nodes._input import CartNode
from storefront.repo import CatalogRepo
from storefront.stock import validate_stock


@G.node
class CatalogNode:
    def __init__(self, products: dict[str, Product]) -> None:
        self.products = products

    @classmethod
    async def __compose__(cls, cart: CartNode, ctx: CheckoutContext) -> "CatalogNode":
        async with ctx.session_factory() as session:
            products = await CatalogRepo(session).snapshot(line.product_id for line in cart.lines)
        return cls(products)


@G.node
class StockNode:
    """Cart lines with sizes resolved, all in stock at read time."""

    def __init__(self, lines: tuple[CartLine, ...]) -> None:
        self.lines = lines

    @classmethod
    async def __compose__(cls, cart: CartNode, catalog: CatalogNode) -> "StockNode":
        match validate_stock(cart.lines, catalog.products):
            case Ok(lines):
                return cls(lines)
            case Error(e):
                raise e


__all__ = ("CatalogNode", "StockNode")

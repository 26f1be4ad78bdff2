"""
Stock — validate requested quantities against a fresh snapshot.

Pure: reserves nothing. The persister repeats this inside the checkout
transaction and then decrements conditionally.
"""

from __future__ import annotations

import dataclasses
from collections import Counter
from collections.abc import Mapping, Sequence

import structlog
from kungfu import Result, Ok, Error

from storefront.domain import CartLine, CheckoutError, CheckoutErrors, Product

log = structlog.get_logger(__name__)


type StockKey = tuple[str, int, str]


def stock_key(line: CartLine) -> StockKey:
    return (line.product_id, line.variant, (line.size or "").strip().lower())


def assign_size(line: CartLine, product: Product) -> Result[CartLine, CheckoutError]:
    """Fill a missing size with the first size of the line's variant."""
    if line.size:
        return Ok(line)
    variant = product.variant(line.variant) or product.variant(0)
    if variant is None or not variant.sizes:
        return Error(CheckoutErrors.no_sizes(product.id, product.name))
    label = variant.sizes[0].label
    log.warning("size_auto_assigned", product_id=product.id, size=label)
    return Ok(dataclasses.replace(line, size=label, size_auto_assigned=True))


def validate_stock(
    lines: Sequence[CartLine],
    products: Mapping[str, Product],
) -> Result[tuple[CartLine, ...], CheckoutError]:
    """
    Check every line against ``products``; fail on the first problem.

    Returns the lines with sizes resolved. Quantities for the same
    product/variant/size are summed before comparing with stock.
    """
    missing = tuple(dict.fromkeys(line.product_id for line in lines if line.product_id not in products))
    if missing:
        names = tuple(dict.fromkeys(line.name for line in lines if line.product_id in missing))
        return Error(CheckoutErrors.product_unavailable(missing, names))

    resolved: list[CartLine] = []
    for line in lines:
        match assign_size(line, products[line.product_id]):
            case Ok(sized):
                resolved.append(sized)
            case Error(e):
                return Error(e)

    requested = Counter[StockKey]()
    for line in resolved:
        requested[stock_key(line)] += line.quantity

    for line in resolved:
        product = products[line.product_id]
        size = line.size or ""
        stock = product.find_size(line.variant, size)
        if stock is None:
            return Error(CheckoutErrors.size_not_found(product.id, product.name, size))
        wanted = requested[stock_key(line)]
        if stock.qty < wanted:
            log.info(
                "insufficient_stock",
                product_id=product.id,
                size=size,
                requested=wanted,
                available=stock.qty,
            )
            return Error(
                CheckoutErrors.insufficient_stock(product.id, product.name, size, wanted, stock.qty)
            )

    return Ok(tuple(resolved))


__all__ = ("StockKey", "stock_key", "assign_size", "validate_stock")

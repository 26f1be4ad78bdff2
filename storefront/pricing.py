"""
Pricing — per-line selling and original prices, cart aggregates.

Original price resolution, first positive value wins:

1. explicit original price on the cart line
2. derived from the line price and its discount percentage
3. matching variant size: original price, then price
4. variant: original price, then price
5. product: original price, then price
6. the line's own selling price
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from storefront.domain import CartLine, Coupon, PricedCart, PricedLine, Product


def _first_positive(*candidates: int | None) -> int | None:
    for value in candidates:
        if value is not None and value > 0:
            return value
    return None


def _from_discount(price: int, discount: Decimal | None) -> int | None:
    if discount is None or not (0 < discount < 100) or price <= 0:
        return None
    original = Decimal(price) / (1 - discount / 100)
    return int(original.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _catalog_candidates(line: CartLine, product: Product | None) -> tuple[int | None, ...]:
    if product is None:
        return ()
    variant = product.variant(line.variant)
    size = product.find_size(line.variant, line.size) if line.size else None
    return (
        size.original_price if size else None,
        size.price if size else None,
        variant.original_price if variant else None,
        variant.price if variant else None,
        product.original_price,
        product.price,
    )


def selling_price(line: CartLine, product: Product | None) -> int:
    """The line price; catalog price only when the line carries none."""
    if line.unit_price > 0:
        return line.unit_price
    if product is None:
        return 0
    variant = product.variant(line.variant)
    size = product.find_size(line.variant, line.size) if line.size else None
    return _first_positive(
        size.price if size else None,
        variant.price if variant else None,
        product.price,
    ) or 0


def original_price(line: CartLine, product: Product | None, selling: int) -> int:
    resolved = _first_positive(
        line.original_price,
        _from_discount(selling, line.discount_percent),
        *_catalog_candidates(line, product),
    )
    return resolved if resolved is not None else selling


def price_line(line: CartLine, product: Product | None) -> PricedLine:
    selling = selling_price(line, product)
    return PricedLine(
        line=line,
        selling_price=selling,
        original_price=original_price(line, product, selling),
    )


def price_cart(lines: Sequence[CartLine], products: Mapping[str, Product]) -> PricedCart:
    priced = tuple(price_line(line, products.get(line.product_id)) for line in lines)
    return PricedCart(
        lines=priced,
        items_price=sum(p.selling_price * p.line.quantity for p in priced),
        total_original_items_price=sum(p.original_price * p.line.quantity for p in priced),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════


def coupon_active(coupon: Coupon, now: datetime) -> bool:
    if coupon.starts_at is not None and now < coupon.starts_at:
        return False
    return coupon.ends_at is None or now <= coupon.ends_at


def coupon_discount(items_price: int, coupon: Coupon | None) -> int:
    """Percentage of the items price, half-up, never more than the items price."""
    if coupon is None or coupon.discount_percent <= 0:
        return 0
    amount = Decimal(items_price) * coupon.discount_percent / 100
    return min(items_price, int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))


__all__ = (
    "selling_price",
    "original_price",
    "price_line",
    "price_cart",
    "coupon_active",
    "coupon_discount",
)

# tests/test_pricing.py
from datetime import UTC, datetime
from decimal import Decimal

from storefront.domain import CartLine, Coupon, Product, SizeStock, Variant
from storefront.pricing import (
    coupon_active,
    coupon_discount,
    original_price,
    price_cart,
    price_line,
    selling_price,
)


def product(**overrides):
    base = dict(
        id="P1",
        name="Linen Shirt",
        category=None,
        price=60000,
        original_price=None,
        discount_percent=None,
        variants=(
            Variant(
                sku="P1-0",
                sizes=(SizeStock("M", 5, price=55000, original_price=90000), SizeStock("L", 2)),
                price=58000,
                original_price=85000,
            ),
        ),
    )
    base.update(overrides)
    return Product(**base)


def line(**overrides):
    base = dict(product_id="P1", name="Linen Shirt", unit_price=50000, quantity=2, size="M")
    base.update(overrides)
    return CartLine(**base)


def test_line_price_is_trusted_over_catalog():
    assert selling_price(line(), product()) == 50000


def test_selling_price_falls_back_to_size_then_variant_then_product():
    assert selling_price(line(unit_price=0), product()) == 55000
    assert selling_price(line(unit_price=0, size="L"), product()) == 58000
    bare = product(variants=(Variant(sku="P1-0", sizes=(SizeStock("L", 2),)),))
    assert selling_price(line(unit_price=0, size="L"), bare) == 60000
    assert selling_price(line(unit_price=0), None) == 0


def test_explicit_original_price_wins():
    assert original_price(line(original_price=70000), product(), 50000) == 70000


def test_original_price_derived_from_discount():
    # 500 / (1 - 0.2) = 625
    assert original_price(line(discount_percent=Decimal("20")), product(), 50000) == 62500


def test_discount_outside_open_range_is_ignored():
    assert original_price(line(discount_percent=Decimal("100")), None, 50000) == 50000
    assert original_price(line(discount_percent=Decimal("0")), None, 50000) == 50000


def test_original_price_catalog_order():
    assert original_price(line(), product(), 50000) == 90000
    assert original_price(line(size="L"), product(), 50000) == 85000
    plain = product(variants=(Variant(sku="P1-0", sizes=(SizeStock("L", 2),)),), original_price=75000)
    assert original_price(line(size="L"), plain, 50000) == 75000


def test_original_price_defaults_to_selling_price():
    assert original_price(line(), None, 50000) == 50000


def test_price_cart_sums_lines():
    cart = price_cart(
        [line(), line(product_id="P2", unit_price=12345, quantity=3, original_price=20000)],
        {"P1": product()},
    )
    assert cart.items_price == 2 * 50000 + 3 * 12345
    assert cart.total_original_items_price == 2 * 90000 + 3 * 20000
    assert [p.line_total for p in cart.lines] == [100000, 37035]


def test_price_line_keeps_the_cart_line():
    priced = price_line(line(), product())
    assert priced.line.product_id == "P1"
    assert (priced.selling_price, priced.original_price) == (50000, 90000)


def test_coupon_discount_half_up_and_capped():
    assert coupon_discount(100000, Coupon("SAVE10", Decimal("10"))) == 10000
    # 12.5% of 333 = 41.625
    assert coupon_discount(333, Coupon("ODD", Decimal("12.5"))) == 42
    assert coupon_discount(5000, Coupon("ALL", Decimal("150"))) == 5000
    assert coupon_discount(5000, Coupon("ZERO", Decimal("0"))) == 0
    assert coupon_discount(5000, None) == 0


def test_coupon_active_window():
    coupon = Coupon(
        "WINTER",
        Decimal("5"),
        starts_at=datetime(2026, 1, 1, tzinfo=UTC),
        ends_at=datetime(2026, 1, 31, tzinfo=UTC),
    )
    assert coupon_active(coupon, datetime(2026, 1, 15, tzinfo=UTC))
    assert not coupon_active(coupon, datetime(2025, 12, 31, tzinfo=UTC))
    assert not coupon_active(coupon, datetime(2026, 2, 1, tzinfo=UTC))
    assert coupon_active(Coupon("OPEN", Decimal("5")), datetime(2030, 1, 1, tzinfo=UTC))

"""
Ingress — normalize loosely-shaped payloads into canonical records.

Cart items and product documents arrive in several historical encodings.
Each encoding is matched once here; everything downstream sees only
``CartLine``, ``Product`` and ``CheckoutRequest``.

Product documents parse into a tagged union first:

    doc = parse_product_document(raw)     # VariantDocument | FlatDocument
    product = normalize_product(doc)      # Product
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from kungfu import Result, Ok, Error

from storefront.domain import (
    Address,
    CartLine,
    CheckoutError,
    CheckoutErrors,
    CheckoutRequest,
    GstInfo,
    PaymentMethod,
    Product,
    ShippingDimensions,
    SizeStock,
    Variant,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Scalars
# ═══════════════════════════════════════════════════════════════════════════════


def to_decimal(value: object) -> Decimal | None:
    match value:
        case bool():
            return None
        case int() | Decimal():
            return Decimal(value)
        case float():
            return Decimal(str(value))
        case str() if value.strip():
            try:
                return Decimal(value.strip())
            except InvalidOperation:
                return None
        case _:
            return None


def to_paise(value: object) -> int | None:
    """Rupees (number or numeric string) to paise, half-up. Negative is None."""
    amount = to_decimal(value)
    if amount is None or amount < 0:
        return None
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_positive_int(value: object) -> int | None:
    amount = to_decimal(value)
    if amount is None or amount <= 0 or amount != amount.to_integral_value():
        return None
    return int(amount)


def parse_id(value: object) -> str | None:
    match value:
        case str() if value.strip():
            return value.strip()
        case int() if not isinstance(value, bool):
            return str(value)
        case {"$oid": str() as oid}:
            return oid
        case {"_id": inner}:
            return parse_id(inner)
        case {"id": inner}:
            return parse_id(inner)
        case _:
            return None


def parse_image(value: object) -> str:
    match value:
        case str():
            return value
        case [str() as first, *_]:
            return first
        case [{"url": str() as url}, *_]:
            return url
        case {"url": str() as url}:
            return url
        case _:
            return ""


def parse_category(value: object) -> str | None:
    match value:
        case str() if value:
            return value
        case {"name": str() as name}:
            return name
        case {"_id": _} | {"$oid": _}:
            return parse_id(value)
        case _:
            return None


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Items
# ═══════════════════════════════════════════════════════════════════════════════


def parse_quantity(raw: Mapping[str, Any]) -> int:
    """First positive integer of ``quantity`` then ``qty``; default 1."""
    for key in ("quantity", "qty"):
        qty = to_positive_int(raw.get(key))
        if qty is not None:
            return qty
    return 1


def parse_cart_item(index: int, raw: object) -> Result[CartLine, CheckoutError]:
    if not isinstance(raw, Mapping):
        return Error(CheckoutErrors.invalid_cart_item(index, "not an object"))

    product_id = parse_id(raw.get("product")) or parse_id(raw.get("productId"))
    if product_id is None:
        return Error(CheckoutErrors.invalid_cart_item(index, "missing product id"))

    size = raw.get("size")
    variant = raw.get("style", raw.get("variant", 0))
    product = raw.get("product")
    name = raw.get("name") or (product.get("name") if isinstance(product, Mapping) else None)

    return Ok(
        CartLine(
            product_id=product_id,
            name=str(name or product_id),
            unit_price=to_paise(raw.get("price")) or 0,
            quantity=parse_quantity(raw),
            size=str(size).strip() if size not in (None, "") else None,
            image=parse_image(raw.get("image", raw.get("images"))),
            original_price=to_paise(raw.get("originalPrice")),
            discount_percent=to_decimal(raw.get("discount")),
            variant=variant if isinstance(variant, int) and variant >= 0 else 0,
        )
    )


def parse_cart(raw_items: object) -> Result[tuple[CartLine, ...], CheckoutError]:
    if raw_items is None:
        return Ok(())
    if not isinstance(raw_items, Sequence) or isinstance(raw_items, str):
        return Error(CheckoutErrors.invalid_request("Cart items must be a list."))

    lines: list[CartLine] = []
    for index, raw in enumerate(raw_items):
        match parse_cart_item(index, raw):
            case Ok(line):
                lines.append(line)
            case Error(e):
                return Error(e)
    return Ok(tuple(lines))


# ═══════════════════════════════════════════════════════════════════════════════
# Address / Payment / Request
# ═══════════════════════════════════════════════════════════════════════════════


_ADDRESS_DEFAULTS = {
    "firstName": "Guest",
    "lastName": "User",
    "phoneNumber": "0000000000",
    "address1": "Default Address",
    "address2": "",
    "city": "Default City",
    "state": "Default State",
    "zipCode": "000000",
    "country": "Default Country",
}


def parse_address(raw: object) -> Address:
    """Fill required fields with placeholders; accept ``phone`` for ``phoneNumber``."""
    source: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    def pick(key: str, *aliases: str) -> str:
        for k in (key, *aliases):
            value = source.get(k)
            if value not in (None, ""):
                return str(value).strip()
        return _ADDRESS_DEFAULTS[key]

    return Address(
        first_name=pick("firstName"),
        last_name=pick("lastName"),
        phone_number=pick("phoneNumber", "phone"),
        address1=pick("address1"),
        address2=pick("address2"),
        city=pick("city"),
        state=pick("state"),
        zip_code=pick("zipCode", "pincode", "zip"),
        country=pick("country"),
    )


def parse_payment_method(value: object) -> Result[PaymentMethod, CheckoutError]:
    normalized = str(value).strip().lower() if value is not None else ""
    match normalized:
        case "cod" | "cash_on_delivery":
            return Ok(PaymentMethod.COD)
        case "razorpay" | "prepaid" | "online":
            return Ok(PaymentMethod.PREPAID)
        case _:
            return Error(CheckoutErrors.invalid_payment_method(value))


def parse_gst_info(raw: object) -> GstInfo | None:
    match raw:
        case {"gstin": str() as gstin, **rest} if gstin.strip():
            return GstInfo(gstin=gstin.strip().upper(), business_name=str(rest.get("businessName", "")))
        case _:
            return None


def parse_checkout(payload: Mapping[str, Any]) -> Result[CheckoutRequest, CheckoutError]:
    user_id = parse_id(payload.get("userId", payload.get("user")))
    if user_id is None:
        return Error(CheckoutErrors.user_not_found())

    match parse_payment_method(payload.get("paymentMethod")):
        case Error(e):
            return Error(e)
        case Ok(method):
            pass

    match parse_cart(payload.get("cartItems", payload.get("products"))):
        case Error(e):
            return Error(e)
        case Ok(items):
            pass

    raw_shipping = payload.get("shippingPrice")
    coupon = payload.get("couponCode", payload.get("coupon"))

    return Ok(
        CheckoutRequest(
            user_id=user_id,
            items=items,
            shipping_address=parse_address(payload.get("shippingAddress")),
            payment_method=method,
            shipping_price=to_paise(raw_shipping) if raw_shipping is not None else None,
            coupon_code=str(coupon).strip() if coupon else None,
            gst_info=parse_gst_info(payload.get("gstInfo")),
        )
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Product Documents: tagged union
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class VariantDocument:
    """Product with ``subProducts[]`` each carrying ``sizes[]``."""

    id: str
    name: str
    category: str | None
    price: int | None
    original_price: int | None
    discount: Decimal | None
    sub_products: tuple[Mapping[str, Any], ...]
    dimensions: ShippingDimensions | None
    image: str


@dataclass(frozen=True, slots=True)
class FlatDocument:
    """Product without variants: top-level ``sizes[]`` or a single stock figure."""

    id: str
    name: str
    category: str | None
    price: int | None
    original_price: int | None
    discount: Decimal | None
    sizes: tuple[Mapping[str, Any], ...]
    stock: int
    dimensions: ShippingDimensions | None
    image: str


type ProductDocument = VariantDocument | FlatDocument


def parse_dimensions(raw: object) -> ShippingDimensions | None:
    match raw:
        case {"length": length, "breadth": breadth, "height": height, **rest}:
            dims = [to_decimal(length), to_decimal(breadth), to_decimal(height)]
            weight = to_decimal(rest.get("weight")) or Decimal(0)
            if any(d is None or d <= 0 for d in dims):
                return None
            grams = weight if rest.get("unit", "kg") == "g" else weight * 1000
            length_cm, breadth_cm, height_cm = (d for d in dims if d is not None)
            return ShippingDimensions(length_cm, breadth_cm, height_cm, int(grams.to_integral_value(ROUND_HALF_UP)))
        case _:
            return None


def parse_product_document(raw: Mapping[str, Any]) -> ProductDocument:
    product_id = parse_id(raw.get("_id", raw.get("id")))
    if product_id is None:
        raise ValueError("product document has no id")

    common: dict[str, Any] = {
        "id": product_id,
        "name": str(raw.get("name", product_id)),
        "category": parse_category(raw.get("category")),
        "price": to_paise(raw.get("price")),
        "original_price": to_paise(raw.get("originalPrice")),
        "discount": to_decimal(raw.get("discount")),
        "dimensions": parse_dimensions(raw.get("shippingDimensions")),
        "image": parse_image(raw.get("images", raw.get("image"))),
    }

    match raw.get("subProducts"):
        case [*subs] if subs:
            first_image = common["image"] or parse_image(subs[0].get("images"))
            return VariantDocument(
                sub_products=tuple(subs), **{**common, "image": first_image}
            )
        case _:
            sizes = raw.get("sizes")
            stock = raw.get("qty", raw.get("stock", 0))
            return FlatDocument(
                sizes=tuple(sizes) if isinstance(sizes, list) else (),
                stock=to_positive_int(stock) or 0,
                **common,
            )


def _size(raw: Mapping[str, Any]) -> SizeStock:
    return SizeStock(
        label=str(raw.get("size", "default")),
        qty=max(int(to_decimal(raw.get("qty", 0)) or 0), 0),
        price=to_paise(raw.get("price")),
        original_price=to_paise(raw.get("originalPrice")),
        sold=max(int(to_decimal(raw.get("sold", 0)) or 0), 0),
    )


def normalize_product(doc: ProductDocument) -> Product:
    match doc:
        case VariantDocument(sub_products=subs):
            variants = tuple(
                Variant(
                    sku=str(sub.get("sku", f"{doc.id}-{index}")),
                    sizes=tuple(_size(s) for s in sub.get("sizes") or ()),
                    price=to_paise(sub.get("price")),
                    original_price=to_paise(sub.get("originalPrice")),
                    discount_percent=to_decimal(sub.get("discount")),
                )
                for index, sub in enumerate(subs)
            )
        case FlatDocument(sizes=sizes, stock=stock):
            size_rows = (
                tuple(_size(s) for s in sizes)
                if sizes
                else (SizeStock(label="default", qty=stock),)
            )
            variants = (Variant(sku=doc.id, sizes=size_rows),)

    base_price = doc.price
    if base_price is None:
        base_price = next((v.price for v in variants if v.price is not None), 0)

    return Product(
        id=doc.id,
        name=doc.name,
        category=doc.category,
        price=base_price,
        original_price=doc.original_price,
        discount_percent=doc.discount,
        variants=variants,
        dimensions=doc.dimensions,
        image=doc.image,
    )


def product_from_document(raw: Mapping[str, Any]) -> Product:
    return normalize_product(parse_product_document(raw))


__all__ = (
    "to_decimal",
    "to_paise",
    "to_positive_int",
    "parse_id",
    "parse_image",
    "parse_category",
    "parse_quantity",
    "parse_cart_item",
    "parse_cart",
    "parse_address",
    "parse_payment_method",
    "parse_gst_info",
    "parse_checkout",
    "VariantDocument",
    "FlatDocument",
    "ProductDocument",
    "parse_dimensions",
    "parse_product_document",
    "normalize_product",
    "product_from_document",
)

"""
Domain — checkout and order records.

Money is integer paise throughout; rupee values exist only at the ingress
and payload edges. Records are frozen; state changes go through
``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol

from kungfu import Result, Ok, Error


# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentMethod(Enum):
    PREPAID = "razorpay"
    COD = "cod"


class OrderStatus(Enum):
    PENDING_COD_VERIFICATION = "pending_cod_verification"
    PENDING = "pending"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


def rupees(paise: int) -> float:
    return paise / 100


# ═══════════════════════════════════════════════════════════════════════════════
# Customer
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class User:
    id: str
    name: str
    email: str


@dataclass(frozen=True, slots=True)
class Address:
    first_name: str
    last_name: str
    phone_number: str
    address1: str
    address2: str
    city: str
    state: str
    zip_code: str
    country: str

    def to_payload(self) -> dict[str, str]:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phoneNumber": self.phone_number,
            "address1": self.address1,
            "address2": self.address2,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
            "country": self.country,
        }


@dataclass(frozen=True, slots=True)
class GstInfo:
    gstin: str
    business_name: str


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SizeStock:
    label: str
    qty: int
    price: int | None = None
    original_price: int | None = None
    sold: int = 0


@dataclass(frozen=True, slots=True)
class Variant:
    sku: str
    sizes: tuple[SizeStock, ...]
    price: int | None = None
    original_price: int | None = None
    discount_percent: Decimal | None = None


@dataclass(frozen=True, slots=True)
class ShippingDimensions:
    length_cm: Decimal
    breadth_cm: Decimal
    height_cm: Decimal
    weight_grams: int


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    name: str
    category: str | None
    price: int
    original_price: int | None
    discount_percent: Decimal | None
    variants: tuple[Variant, ...]
    dimensions: ShippingDimensions | None = None
    image: str = ""

    def variant(self, index: int) -> Variant | None:
        if 0 <= index < len(self.variants):
            return self.variants[index]
        return None

    def find_size(self, variant_index: int, label: str) -> SizeStock | None:
        variant = self.variant(variant_index)
        if variant is None:
            return None
        wanted = label.strip().lower()
        for size in variant.sizes:
            if size.label.strip().lower() == wanted:
                return size
        return None


# ═══════════════════════════════════════════════════════════════════════════════
# Cart & Pricing
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLine:
    product_id: str
    name: str
    unit_price: int
    quantity: int
    size: str | None = None
    image: str = ""
    original_price: int | None = None
    discount_percent: Decimal | None = None
    variant: int = 0
    size_auto_assigned: bool = False


@dataclass(frozen=True, slots=True)
class PricedLine:
    line: CartLine
    selling_price: int
    original_price: int

    @property
    def line_total(self) -> int:
        return self.selling_price * self.line.quantity


@dataclass(frozen=True, slots=True)
class PricedCart:
    lines: tuple[PricedLine, ...]
    items_price: int
    total_original_items_price: int


@dataclass(frozen=True, slots=True)
class Coupon:
    code: str
    discount_percent: Decimal
    starts_at: datetime | None = None
    ends_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ShippingQuote:
    amount: int
    source: str  # caller | carrier | fallback
    method: PaymentMethod


@dataclass(frozen=True, slots=True)
class TaxBreakdown:
    cgst: int
    sgst: int
    igst: int

    @property
    def total(self) -> int:
        return self.cgst + self.sgst + self.igst

    def to_payload(self) -> dict[str, float]:
        return {
            "cgst": rupees(self.cgst),
            "sgst": rupees(self.sgst),
            "igst": rupees(self.igst),
            "totalTax": rupees(self.total),
        }


@dataclass(frozen=True, slots=True)
class Totals:
    items_price: int
    total_original_items_price: int
    shipping_price: int
    discount_amount: int
    tax: TaxBreakdown

    @property
    def total_amount(self) -> int:
        return self.items_price + self.shipping_price + self.tax.total - self.discount_amount

    def to_payload(self) -> dict[str, Any]:
        return {
            "itemsPrice": rupees(self.items_price),
            "totalOriginalItemsPrice": rupees(self.total_original_items_price),
            "shippingPrice": rupees(self.shipping_price),
            "discountAmount": rupees(self.discount_amount),
            "taxPrice": rupees(self.tax.total),
            "taxBreakdown": self.tax.to_payload(),
            "totalAmount": rupees(self.total_amount),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderLineItem:
    line_id: str
    product_id: str
    name: str
    quantity: int
    selling_price: int
    original_price: int
    size: str
    image: str
    status: OrderStatus
    variant: int = 0
    cancel_reason: str | None = None


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    user_id: str
    items: tuple[OrderLineItem, ...]
    shipping_address: Address
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    status: OrderStatus
    totals: Totals
    created_at: datetime
    coupon_code: str | None = None
    gst_info: GstInfo | None = None
    provider_order_id: str | None = None
    payment_result: dict[str, str] | None = None
    paid_at: datetime | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status is PaymentStatus.PAID


@dataclass(frozen=True, slots=True)
class PendingCodOrder:
    id: str
    user_id: str
    items: tuple[OrderLineItem, ...]
    shipping_address: Address
    totals: Totals
    code_hash: str
    code_expires_at: datetime
    purge_after: datetime
    created_at: datetime
    coupon_code: str | None = None
    gst_info: GstInfo | None = None

    @property
    def status(self) -> OrderStatus:
        return OrderStatus.PENDING_COD_VERIFICATION


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout Request / Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    user_id: str
    items: tuple[CartLine, ...]
    shipping_address: Address
    payment_method: PaymentMethod
    shipping_price: int | None = None
    coupon_code: str | None = None
    gst_info: GstInfo | None = None


@dataclass(frozen=True, slots=True)
class CheckoutOutcome:
    order_id: str
    payment_method: PaymentMethod
    totals: Totals
    message: str
    requires_cod_verification: bool = False
    provider_order_id: str | None = None
    provider_key: str | None = None
    currency: str = "INR"

    def to_payload(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": True,
            "message": self.message,
            "orderId": self.order_id,
            "paymentMethod": self.payment_method.value,
            **self.totals.to_payload(),
        }
        if self.requires_cod_verification:
            body["requiresCodVerification"] = True
        if self.provider_order_id is not None:
            body["razorpayOrderId"] = self.provider_order_id
            body["razorpayKey"] = self.provider_key
            body["amount"] = self.totals.total_amount
            body["currency"] = self.currency
        return body


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutError(Exception):
    def __init__(
        self,
        code: str,
        message: str,
        *,
        http_status: int = 400,
        product_id: str | None = None,
        size: str | None = None,
        unavailable_product_ids: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.product_id = product_id
        self.size = size
        self.unavailable_product_ids = unavailable_product_ids

    def to_payload(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": False,
            "message": self.message,
            "code": self.code,
        }
        if self.product_id is not None:
            body["productId"] = self.product_id
        if self.size is not None:
            body["size"] = self.size
        if self.unavailable_product_ids:
            body["unavailableProductIds"] = list(self.unavailable_product_ids)
        return body


class CheckoutErrors:
    @staticmethod
    def user_not_found() -> CheckoutError:
        return CheckoutError("USER_NOT_FOUND", "User not found.", http_status=404)

    @staticmethod
    def empty_cart() -> CheckoutError:
        return CheckoutError("EMPTY_CART", "Cannot place order with an empty cart.")

    @staticmethod
    def invalid_cart_item(index: int, reason: str) -> CheckoutError:
        return CheckoutError("INVALID_CART_ITEM", f"Cart item {index} is invalid: {reason}.")

    @staticmethod
    def invalid_request(reason: str) -> CheckoutError:
        return CheckoutError("INVALID_REQUEST", reason)

    @staticmethod
    def invalid_payment_method(value: object) -> CheckoutError:
        return CheckoutError("INVALID_PAYMENT_METHOD", f"Unsupported payment method: {value!r}.")

    @staticmethod
    def product_unavailable(missing: tuple[str, ...], names: tuple[str, ...]) -> CheckoutError:
        label = ", ".join(names) if names else ", ".join(missing)
        return CheckoutError(
            "PRODUCT_UNAVAILABLE",
            f"Some products in your cart are no longer available: {label}.",
            http_status=409,
            unavailable_product_ids=missing,
        )

    @staticmethod
    def no_sizes(product_id: str, name: str) -> CheckoutError:
        return CheckoutError(
            "NO_SIZES",
            f'No sizes available for product "{name}".',
            http_status=409,
            product_id=product_id,
        )

    @staticmethod
    def size_not_found(product_id: str, name: str, size: str) -> CheckoutError:
        return CheckoutError(
            "SIZE_NOT_FOUND",
            f'Sorry, "{name}" (Size: {size}) is unavailable.',
            http_status=409,
            product_id=product_id,
            size=size,
        )

    @staticmethod
    def insufficient_stock(
        product_id: str, name: str, size: str, requested: int, available: int | None
    ) -> CheckoutError:
        detail = (
            f"Requested: {requested}, Available: {available}"
            if available is not None
            else f"Requested: {requested}"
        )
        return CheckoutError(
            "INSUFFICIENT_STOCK",
            f'Sorry, "{name}" (Size: {size}) has insufficient stock ({detail}).',
            http_status=409,
            product_id=product_id,
            size=size,
        )

    @staticmethod
    def invalid_coupon() -> CheckoutError:
        return CheckoutError("INVALID_COUPON", "Invalid Coupon")

    @staticmethod
    def shipping_unavailable(reason: str) -> CheckoutError:
        return CheckoutError(
            "SHIPPING_UNAVAILABLE",
            f"Unable to calculate shipping cost: {reason}",
            http_status=502,
        )

    @staticmethod
    def payment_provider(reason: str) -> CheckoutError:
        return CheckoutError(
            "PAYMENT_PROVIDER_ERROR",
            f"Could not create payment order: {reason}",
            http_status=502,
        )

    @staticmethod
    def order_not_found() -> CheckoutError:
        return CheckoutError("ORDER_NOT_FOUND", "Order not found.", http_status=404)

    @staticmethod
    def item_not_found(line_id: str) -> CheckoutError:
        return CheckoutError("ITEM_NOT_FOUND", f"Order item {line_id} not found.", http_status=404)

    @staticmethod
    def not_cod_order() -> CheckoutError:
        return CheckoutError("NOT_COD_ORDER", "Not a COD order.")

    @staticmethod
    def invalid_code() -> CheckoutError:
        return CheckoutError("INVALID_CODE", "Invalid verification code.")

    @staticmethod
    def code_expired() -> CheckoutError:
        return CheckoutError("CODE_EXPIRED", "Verification code has expired.")

    @staticmethod
    def invalid_signature() -> CheckoutError:
        return CheckoutError(
            "INVALID_SIGNATURE", "Payment verification failed. Invalid signature."
        )

    @staticmethod
    def invalid_transition(current: OrderStatus, target: OrderStatus) -> CheckoutError:
        return CheckoutError(
            "INVALID_TRANSITION",
            f"Cannot change status from {current.value} to {target.value}.",
            http_status=409,
        )

    @staticmethod
    def not_cancellable(reason: str) -> CheckoutError:
        return CheckoutError("NOT_CANCELLABLE", reason, http_status=409)

    @staticmethod
    def email_failed() -> CheckoutError:
        return CheckoutError(
            "EMAIL_FAILED", "Failed to send verification email", http_status=502
        )

    @staticmethod
    def unexpected(reason: str) -> CheckoutError:
        return CheckoutError(
            "UNEXPECTED", f"Something went wrong: {reason}", http_status=500
        )


def as_checkout_error(exc: Exception) -> CheckoutError:
    """Pass domain errors through, wrap anything else as UNEXPECTED."""
    if isinstance(exc, CheckoutError):
        return exc
    return CheckoutErrors.unexpected(str(exc) or type(exc).__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Payloads
# ═══════════════════════════════════════════════════════════════════════════════


class HasPayload(Protocol):
    def to_payload(self) -> dict[str, Any]: ...


@dataclass(frozen=True, slots=True)
class Message:
    """Plain success message with optional extra fields."""

    message: str
    extra: dict[str, Any] = field(default_factory=dict[str, Any])

    def to_payload(self) -> dict[str, Any]:
        return {"success": True, "message": self.message, **self.extra}


def payload(result: Result[HasPayload, CheckoutError]) -> dict[str, Any]:
    match result:
        case Ok(value):
            return value.to_payload()
        case Error(e):
            return e.to_payload()


__all__ = (
    "PaymentMethod",
    "OrderStatus",
    "PaymentStatus",
    "rupees",
    "User",
    "Address",
    "GstInfo",
    "SizeStock",
    "Variant",
    "ShippingDimensions",
    "Product",
    "CartLine",
    "PricedLine",
    "PricedCart",
    "Coupon",
    "ShippingQuote",
    "TaxBreakdown",
    "Totals",
    "OrderLineItem",
    "Order",
    "PendingCodOrder",
    "CheckoutRequest",
    "CheckoutOutcome",
    "CheckoutError",
    "CheckoutErrors",
    "as_checkout_error",
    "HasPayload",
    "Message",
    "payload",
)

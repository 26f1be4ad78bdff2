"""
HTTP surface — request bodies, the response envelope and route wiring.

    storefront = Storefront.from_settings(settings, session_factory, client)
    api = create_app(storefront)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import fastapi
from kungfu import Result, Ok, Error
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from storefront import wire as W
from storefront.domain import (
    CheckoutError,
    HasPayload,
    payload,
)
from storefront.ingress import parse_payment_method, to_positive_int
from storefront.service import Storefront
from storefront.wire.contrib import fastapi as wire_fastapi

SIGNATURE_HEADER = "x-razorpay-signature"


# ═══════════════════════════════════════════════════════════════════════════════
# Response
# ═══════════════════════════════════════════════════════════════════════════════


class Envelope(BaseModel):
    """``{success, message, ...}``; the status code follows the error code."""

    model_config = ConfigDict(extra="allow")

    success: bool
    message: str
    code: str | None = None

    _status: int = PrivateAttr(default=200)

    @property
    def status_code(self) -> int:
        return self._status

    @classmethod
    def from_domain(cls, dom: Result[HasPayload, CheckoutError]) -> Envelope:
        envelope = cls.model_validate(payload(dom))
        match dom:
            case Error(e):
                envelope._status = e.http_status
        return envelope

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class VerifyCod:
    order_id: str
    code: str


@dataclass(frozen=True, slots=True)
class ResendCod:
    order_id: str


@dataclass(frozen=True, slots=True)
class VerifyPayment:
    order_id: str
    provider_order_id: str
    payment_id: str
    signature: str


@dataclass(frozen=True, slots=True)
class PaymentWebhook:
    body: bytes
    signature: str


@dataclass(frozen=True, slots=True)
class ItemStatus:
    order_id: str
    line_id: str
    status: str


@dataclass(frozen=True, slots=True)
class CancelItem:
    order_id: str
    line_id: str
    reason: str
    user_id: str | None


@dataclass(frozen=True, slots=True)
class CancelOrder:
    order_id: str
    reason: str
    user_id: str | None


@dataclass(frozen=True, slots=True)
class ApplyCoupon:
    code: str
    user_id: str


@dataclass(frozen=True, slots=True)
class EstimateShipping:
    pincode: str
    weight_grams: int
    payment_method: object


# ═══════════════════════════════════════════════════════════════════════════════
# Request bodies
# ═══════════════════════════════════════════════════════════════════════════════


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CheckoutBody(_Body):
    """Raw checkout payload; item and address shapes are normalized downstream."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    user_id: Any = Field(default=None, alias="userId")
    payment_method: Any = Field(default=None, alias="paymentMethod")
    cart_items: list[Any] | None = Field(default=None, alias="cartItems")
    shipping_address: dict[str, Any] | None = Field(default=None, alias="shippingAddress")
    shipping_price: Any = Field(default=None, alias="shippingPrice")
    coupon_code: str | None = Field(default=None, alias="couponCode")
    gst_info: dict[str, Any] | None = Field(default=None, alias="gstInfo")

    def to_domain(self) -> Mapping[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class VerifyCodBody(_Body):
    order_id: str = Field(alias="orderId")
    verification_code: str = Field(alias="verificationCode")

    def to_domain(self) -> VerifyCod:
        return VerifyCod(self.order_id, self.verification_code)


class ResendCodBody(_Body):
    order_id: str = Field(alias="orderId")

    def to_domain(self) -> ResendCod:
        return ResendCod(self.order_id)


class VerifyPaymentBody(_Body):
    order_id: str = Field(alias="orderId")
    razorpay_order_id: str = Field(alias="razorpayOrderId")
    razorpay_payment_id: str = Field(alias="razorpayPaymentId")
    razorpay_signature: str = Field(alias="razorpaySignature")

    def to_domain(self) -> VerifyPayment:
        return VerifyPayment(
            order_id=self.order_id,
            provider_order_id=self.razorpay_order_id,
            payment_id=self.razorpay_payment_id,
            signature=self.razorpay_signature,
        )


class WebhookBody:
    @classmethod
    def from_raw(cls, body: bytes, headers: Mapping[str, str]) -> PaymentWebhook:
        return PaymentWebhook(body=body, signature=headers.get(SIGNATURE_HEADER, ""))


class ItemStatusBody(_Body):
    order_id: str = Field(alias="orderId")
    item_id: str = Field(alias="itemId")
    status: str

    def to_domain(self) -> ItemStatus:
        return ItemStatus(self.order_id, self.item_id, self.status)


class CancelItemBody(_Body):
    order_id: str = Field(alias="orderId")
    item_id: str = Field(alias="itemId")
    reason: str = "Cancelled by customer"
    user_id: str | None = Field(default=None, alias="userId")

    def to_domain(self) -> CancelItem:
        return CancelItem(self.order_id, self.item_id, self.reason, self.user_id)


class CancelOrderBody(_Body):
    order_id: str = Field(alias="orderId")
    reason: str = "Cancelled by customer"
    user_id: str | None = Field(default=None, alias="userId")

    def to_domain(self) -> CancelOrder:
        return CancelOrder(self.order_id, self.reason, self.user_id)


class ApplyCouponBody(_Body):
    coupon: str
    user_id: str = Field(alias="userId")

    def to_domain(self) -> ApplyCoupon:
        return ApplyCoupon(self.coupon, self.user_id)


class ShippingEstimateBody(_Body):
    pincode: str
    weight: Any = None
    payment_method: Any = Field(default="razorpay", alias="paymentMethod")

    def to_domain(self) -> EstimateShipping:
        return EstimateShipping(
            pincode=self.pincode,
            weight_grams=to_positive_int(self.weight) or 0,
            payment_method=self.payment_method,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Application
# ═══════════════════════════════════════════════════════════════════════════════


def application(storefront: Storefront) -> W.Application:
    async def verify_cod(cmd: VerifyCod) -> Result[HasPayload, CheckoutError]:
        return await storefront.verify_cod(cmd.order_id, cmd.code)

    async def resend_cod(cmd: ResendCod) -> Result[HasPayload, CheckoutError]:
        return await storefront.resend_cod_code(cmd.order_id)

    async def verify_payment(cmd: VerifyPayment) -> Result[HasPayload, CheckoutError]:
        return await storefront.verify_payment(
            cmd.order_id, cmd.provider_order_id, cmd.payment_id, cmd.signature
        )

    async def payment_webhook(cmd: PaymentWebhook) -> Result[HasPayload, CheckoutError]:
        return await storefront.handle_payment_webhook(cmd.body, cmd.signature)

    async def item_status(cmd: ItemStatus) -> Result[HasPayload, CheckoutError]:
        return await storefront.update_item_status(cmd.order_id, cmd.line_id, cmd.status)

    async def cancel_item(cmd: CancelItem) -> Result[HasPayload, CheckoutError]:
        return await storefront.cancel_item(
            cmd.order_id, cmd.line_id, reason=cmd.reason, user_id=cmd.user_id
        )

    async def cancel_order(cmd: CancelOrder) -> Result[HasPayload, CheckoutError]:
        return await storefront.cancel_order(cmd.order_id, reason=cmd.reason, user_id=cmd.user_id)

    async def apply_coupon(cmd: ApplyCoupon) -> Result[HasPayload, CheckoutError]:
        return await storefront.apply_coupon(cmd.code, cmd.user_id)

    async def estimate_shipping(cmd: EstimateShipping) -> Result[HasPayload, CheckoutError]:
        match parse_payment_method(cmd.payment_method):
            case Ok(method):
                return await storefront.estimate_shipping(cmd.pincode, cmd.weight_grams, method)
            case Error(e):
                return Error(e)

    def post(path: str, handler: W.Handler[Any, Any, Any], body: type[Any]) -> W.Endpoint:
        return W.endpoint(handler).expose(
            W.HTTPRouteTrigger("POST", path),
            W.RequestResponseCodec(body, Envelope),
        )

    return W.Application().mount(
        post("/checkout", storefront.checkout_payload, CheckoutBody),
        post("/orders/verify-cod", verify_cod, VerifyCodBody),
        post("/orders/resend-cod", resend_cod, ResendCodBody),
        post("/orders/verify-payment", verify_payment, VerifyPaymentBody),
        W.endpoint(payment_webhook).expose(
            W.HTTPRouteTrigger("POST", "/webhooks/payment", frozenset({SIGNATURE_HEADER})),
            W.RawBodyCodec(WebhookBody, Envelope),
        ),
        post("/orders/items/status", item_status, ItemStatusBody),
        post("/orders/items/cancel", cancel_item, CancelItemBody),
        post("/orders/cancel", cancel_order, CancelOrderBody),
        post("/coupons/apply", apply_coupon, ApplyCouponBody),
        post("/shipping/estimate", estimate_shipping, ShippingEstimateBody),
    )


def create_app(storefront: Storefront) -> fastapi.FastAPI:
    return wire_fastapi.from_application(application(storefront), title="storefront")


__all__ = (
    "SIGNATURE_HEADER",
    "Envelope",
    "CheckoutBody",
    "VerifyCodBody",
    "ResendCodBody",
    "VerifyPaymentBody",
    "WebhookBody",
    "ItemStatusBody",
    "CancelItemBody",
    "CancelOrderBody",
    "ApplyCouponBody",
    "ShippingEstimateBody",
    "application",
    "create_app",
)

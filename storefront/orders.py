"""
Orders — assembly, status machine and the legacy projection.

Line items are the single source of truth. The legacy ``products`` and
``orderItems`` arrays are derived from them by ``legacy_view`` and are
never stored, so their statuses cannot drift apart.

Status flow::

    pending_cod_verification ──(promotion)──> pending
    pending -> processing -> confirmed -> dispatched -> delivered
    pending | processing | confirmed -> cancelled

Forward moves may skip steps. The order status follows its items: the
least advanced active item wins, all items cancelled cancels the order.
"""

from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from kungfu import Result, Ok, Error

from storefront.domain import (
    Address,
    CheckoutError,
    CheckoutErrors,
    GstInfo,
    Order,
    OrderLineItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PendingCodOrder,
    PricedCart,
    Totals,
    rupees,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Status Machine
# ═══════════════════════════════════════════════════════════════════════════════

FLOW: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.CONFIRMED,
    OrderStatus.DISPATCHED,
    OrderStatus.DELIVERED,
)

CANCELLABLE: frozenset[OrderStatus] = frozenset(
    {OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.CONFIRMED}
)

_RANK = {status: rank for rank, status in enumerate(FLOW)}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Same-status updates are allowed and change nothing."""
    if current is target:
        return True
    if target is OrderStatus.CANCELLED:
        return current in CANCELLABLE
    if current is OrderStatus.PENDING_COD_VERIFICATION:
        return target is OrderStatus.PENDING
    if current in _RANK and target in _RANK:
        return _RANK[target] > _RANK[current]
    return False


def derive_status(items: Iterable[OrderLineItem]) -> OrderStatus:
    active = [item.status for item in items if item.status is not OrderStatus.CANCELLED]
    if not active:
        return OrderStatus.CANCELLED
    return min(active, key=lambda status: _RANK.get(status, 0))


# Admin panel labels. "Completed" and "shipped" are older spellings.
ADMIN_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PENDING_COD_VERIFICATION: "Pending COD Verification",
    OrderStatus.PENDING: "Not Processed",
    OrderStatus.PROCESSING: "Processing",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.DISPATCHED: "Dispatched",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
}

_FROM_LABEL: dict[str, OrderStatus] = {
    **{label.lower(): status for status, label in ADMIN_LABELS.items()},
    **{status.value: status for status in OrderStatus},
    "completed": OrderStatus.DELIVERED,
    "shipped": OrderStatus.DISPATCHED,
}


def admin_label(status: OrderStatus) -> str:
    return ADMIN_LABELS[status]


def parse_status(raw: object) -> Result[OrderStatus, CheckoutError]:
    """Accept an admin label or a status value, case-insensitively."""
    if isinstance(raw, str) and (status := _FROM_LABEL.get(raw.strip().lower())) is not None:
        return Ok(status)
    return Error(CheckoutErrors.invalid_request(f"Unknown status: {raw!r}."))


# ═══════════════════════════════════════════════════════════════════════════════
# Assembly
# ═══════════════════════════════════════════════════════════════════════════════


def new_id() -> str:
    return uuid.uuid4().hex


def line_items(priced: PricedCart, status: OrderStatus) -> tuple[OrderLineItem, ...]:
    return tuple(
        OrderLineItem(
            line_id=new_id(),
            product_id=p.line.product_id,
            name=p.line.name,
            quantity=p.line.quantity,
            selling_price=p.selling_price,
            original_price=p.original_price,
            size=p.line.size or "",
            image=p.line.image,
            status=status,
            variant=p.line.variant,
        )
        for p in priced.lines
    )


def assemble_order(
    *,
    order_id: str,
    user_id: str,
    priced: PricedCart,
    totals: Totals,
    address: Address,
    payment_method: PaymentMethod,
    created_at: datetime,
    coupon_code: str | None = None,
    gst_info: GstInfo | None = None,
) -> Order:
    return Order(
        id=order_id,
        user_id=user_id,
        items=line_items(priced, OrderStatus.PENDING),
        shipping_address=address,
        payment_method=payment_method,
        payment_status=PaymentStatus.PENDING,
        status=OrderStatus.PENDING,
        totals=totals,
        created_at=created_at,
        coupon_code=coupon_code,
        gst_info=gst_info,
    )


def assemble_pending(
    *,
    pending_id: str,
    user_id: str,
    priced: PricedCart,
    totals: Totals,
    address: Address,
    code_hash: str,
    code_expires_at: datetime,
    purge_after: datetime,
    created_at: datetime,
    coupon_code: str | None = None,
    gst_info: GstInfo | None = None,
) -> PendingCodOrder:
    return PendingCodOrder(
        id=pending_id,
        user_id=user_id,
        items=line_items(priced, OrderStatus.PENDING_COD_VERIFICATION),
        shipping_address=address,
        totals=totals,
        code_hash=code_hash,
        code_expires_at=code_expires_at,
        purge_after=purge_after,
        created_at=created_at,
        coupon_code=coupon_code,
        gst_info=gst_info,
    )


def promote(pending: PendingCodOrder, created_at: datetime) -> Order:
    """A verified COD order: same id, status pending, payment on delivery."""
    return Order(
        id=pending.id,
        user_id=pending.user_id,
        items=tuple(dataclasses.replace(i, status=OrderStatus.PENDING) for i in pending.items),
        shipping_address=pending.shipping_address,
        payment_method=PaymentMethod.COD,
        payment_status=PaymentStatus.PENDING,
        status=OrderStatus.PENDING,
        totals=pending.totals,
        created_at=created_at,
        coupon_code=pending.coupon_code,
        gst_info=pending.gst_info,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Payment
# ═══════════════════════════════════════════════════════════════════════════════


def mark_paid(order: Order, payment_result: dict[str, str], now: datetime) -> Order:
    items = tuple(
        dataclasses.replace(i, status=OrderStatus.PROCESSING)
        if i.status is OrderStatus.PENDING
        else i
        for i in order.items
    )
    return dataclasses.replace(
        order,
        items=items,
        status=derive_status(items),
        payment_status=PaymentStatus.PAID,
        payment_result=payment_result,
        paid_at=order.paid_at or now,
    )


def void_unpaid(order: Order, reason: str) -> Order:
    """Cancel every item of an order whose payment never started."""
    items = tuple(
        dataclasses.replace(i, status=OrderStatus.CANCELLED, cancel_reason=reason)
        for i in order.items
    )
    return dataclasses.replace(
        order,
        items=items,
        status=OrderStatus.CANCELLED,
        payment_status=PaymentStatus.FAILED,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Item Operations
# ═══════════════════════════════════════════════════════════════════════════════


def _find(order: Order, line_id: str) -> OrderLineItem | None:
    for item in order.items:
        if item.line_id == line_id:
            return item
    return None


def _with_items(order: Order, items: tuple[OrderLineItem, ...], now: datetime) -> Order:
    status = derive_status(items)
    if status is OrderStatus.DELIVERED:
        # COD is collected on delivery
        return dataclasses.replace(
            order,
            items=items,
            status=status,
            payment_status=PaymentStatus.PAID,
            paid_at=order.paid_at or now,
        )
    return dataclasses.replace(order, items=items, status=status)


def update_item_status(
    order: Order, line_id: str, target: OrderStatus, now: datetime
) -> Result[Order, CheckoutError]:
    item = _find(order, line_id)
    if item is None:
        return Error(CheckoutErrors.item_not_found(line_id))
    if target is OrderStatus.PENDING_COD_VERIFICATION or not can_transition(item.status, target):
        return Error(CheckoutErrors.invalid_transition(item.status, target))
    if item.status is target:
        return Ok(order)

    items = tuple(
        dataclasses.replace(i, status=target) if i.line_id == line_id else i
        for i in order.items
    )
    return Ok(_with_items(order, items, now))


def cancel_item(
    order: Order, line_id: str, reason: str, now: datetime
) -> Result[tuple[Order, OrderLineItem], CheckoutError]:
    """Cancel one line. Returns the updated order and the line to restock."""
    item = _find(order, line_id)
    if item is None:
        return Error(CheckoutErrors.item_not_found(line_id))
    if item.status not in CANCELLABLE:
        return Error(
            CheckoutErrors.not_cancellable(
                f"Product cannot be cancelled. Current status: {admin_label(item.status)}."
            )
        )

    cancelled = dataclasses.replace(item, status=OrderStatus.CANCELLED, cancel_reason=reason)
    items = tuple(cancelled if i.line_id == line_id else i for i in order.items)
    return Ok((_with_items(order, items, now), cancelled))


def cancel_order(
    order: Order, reason: str, now: datetime
) -> Result[tuple[Order, tuple[OrderLineItem, ...]], CheckoutError]:
    """Cancel all open lines. Returns the updated order and the lines to restock."""
    if order.status not in CANCELLABLE:
        return Error(
            CheckoutErrors.not_cancellable(
                f"Order cannot be cancelled. Current status: {admin_label(order.status)}."
            )
        )
    if any(i.status in (OrderStatus.DISPATCHED, OrderStatus.DELIVERED) for i in order.items):
        return Error(CheckoutErrors.not_cancellable("Some items have already been dispatched."))

    released = tuple(
        dataclasses.replace(i, status=OrderStatus.CANCELLED, cancel_reason=reason)
        for i in order.items
        if i.status is not OrderStatus.CANCELLED
    )
    by_id = {i.line_id: i for i in released}
    items = tuple(by_id.get(i.line_id, i) for i in order.items)
    return Ok((_with_items(order, items, now), released))


# ═══════════════════════════════════════════════════════════════════════════════
# Legacy Projection
# ═══════════════════════════════════════════════════════════════════════════════


def _legacy_line(item: OrderLineItem) -> dict[str, Any]:
    return {
        "_id": item.line_id,
        "product": item.product_id,
        "name": item.name,
        "image": item.image,
        "size": item.size,
        "style": item.variant,
        "quantity": item.quantity,
        "qty": item.quantity,
        "price": rupees(item.selling_price),
        "originalPrice": rupees(item.original_price),
        "status": admin_label(item.status),
        "cancelReason": item.cancel_reason,
    }


def legacy_view(order: Order | PendingCodOrder) -> dict[str, Any]:
    """The old document shape: ``products`` and ``orderItems`` from one item list."""
    is_order = isinstance(order, Order)
    return {
        "_id": order.id,
        "user": order.user_id,
        "products": [_legacy_line(i) for i in order.items],
        "orderItems": [_legacy_line(i) for i in order.items],
        "shippingAddress": order.shipping_address.to_payload(),
        "paymentMethod": order.payment_method.value if is_order else PaymentMethod.COD.value,
        "isPaid": order.is_paid if is_order else False,
        "paidAt": order.paid_at.isoformat() if is_order and order.paid_at else None,
        "status": order.status.value,
        "couponApplied": order.coupon_code,
        **order.totals.to_payload(),
        "total": rupees(order.totals.total_amount),
        "createdAt": order.created_at.isoformat(),
    }


__all__ = (
    "FLOW",
    "CANCELLABLE",
    "can_transition",
    "derive_status",
    "ADMIN_LABELS",
    "admin_label",
    "parse_status",
    "new_id",
    "line_items",
    "assemble_order",
    "assemble_pending",
    "promote",
    "mark_paid",
    "void_unpaid",
    "update_item_status",
    "cancel_item",
    "cancel_order",
    "legacy_view",
)

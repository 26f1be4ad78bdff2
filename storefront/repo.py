"""
Repositories — row <-> domain mapping over an ``AsyncSession``.

Repositories never commit; callers own the transaction:

    async with session_factory() as session, session.begin():
        orders = OrderRepo(session)
        ...
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db import (
    CartTable,
    CouponTable,
    OrderTable,
    PendingCodOrderTable,
    ProductTable,
    SizeTable,
    UserTable,
    VariantTable,
)
from storefront.domain import (
    Address,
    Coupon,
    GstInfo,
    Order,
    OrderLineItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PendingCodOrder,
    Product,
    ShippingDimensions,
    SizeStock,
    TaxBreakdown,
    Totals,
    User,
    Variant,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Encoding helpers
# ═══════════════════════════════════════════════════════════════════════════════


def to_db_time(value: datetime) -> datetime:
    return value.astimezone(UTC).replace(tzinfo=None) if value.tzinfo else value


def from_db_time(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def encode_item(item: OrderLineItem) -> dict[str, Any]:
    return {
        "lineId": item.line_id,
        "productId": item.product_id,
        "name": item.name,
        "quantity": item.quantity,
        "sellingPrice": item.selling_price,
        "originalPrice": item.original_price,
        "size": item.size,
        "image": item.image,
        "status": item.status.value,
        "variant": item.variant,
        "cancelReason": item.cancel_reason,
    }


def decode_item(raw: dict[str, Any]) -> OrderLineItem:
    return OrderLineItem(
        line_id=raw["lineId"],
        product_id=raw["productId"],
        name=raw["name"],
        quantity=raw["quantity"],
        selling_price=raw["sellingPrice"],
        original_price=raw["originalPrice"],
        size=raw["size"],
        image=raw.get("image", ""),
        status=OrderStatus(raw["status"]),
        variant=raw.get("variant", 0),
        cancel_reason=raw.get("cancelReason"),
    )


def encode_address(address: Address) -> dict[str, str]:
    return address.to_payload()


def decode_address(raw: dict[str, str]) -> Address:
    return Address(
        first_name=raw["firstName"],
        last_name=raw["lastName"],
        phone_number=raw["phoneNumber"],
        address1=raw["address1"],
        address2=raw.get("address2", ""),
        city=raw["city"],
        state=raw["state"],
        zip_code=raw["zipCode"],
        country=raw["country"],
    )


def encode_gst(info: GstInfo | None) -> dict[str, str] | None:
    if info is None:
        return None
    return {"gstin": info.gstin, "businessName": info.business_name}


def decode_gst(raw: dict[str, str] | None) -> GstInfo | None:
    if raw is None:
        return None
    return GstInfo(gstin=raw["gstin"], business_name=raw.get("businessName", ""))


def _totals_columns(totals: Totals) -> dict[str, int]:
    return {
        "items_price": totals.items_price,
        "total_original_items_price": totals.total_original_items_price,
        "shipping_price": totals.shipping_price,
        "discount_amount": totals.discount_amount,
        "cgst": totals.tax.cgst,
        "sgst": totals.tax.sgst,
        "igst": totals.tax.igst,
        "total_amount": totals.total_amount,
    }


def _totals(row: OrderTable | PendingCodOrderTable) -> Totals:
    return Totals(
        items_price=row.items_price,
        total_original_items_price=row.total_original_items_price,
        shipping_price=row.shipping_price,
        discount_amount=row.discount_amount,
        tax=TaxBreakdown(cgst=row.cgst, sgst=row.sgst, igst=row.igst),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Users / Carts / Coupons
# ═══════════════════════════════════════════════════════════════════════════════


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> User | None:
        row = await self._session.get(UserTable, user_id)
        if row is None:
            return None
        return User(id=row.id, name=row.name, email=row.email)

    async def add(self, user: User) -> None:
        self._session.add(UserTable(id=user.id, name=user.name, email=user.email))


class CartRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save(self, user_id: str, items: list[dict[str, Any]], cart_total: int) -> None:
        row = await self._session.get(CartTable, user_id)
        if row is None:
            self._session.add(CartTable(user_id=user_id, items=items, cart_total=cart_total))
        else:
            row.items = items
            row.cart_total = cart_total
            row.total_after_discount = None

    async def total(self, user_id: str) -> int | None:
        row = await self._session.get(CartTable, user_id)
        return row.cart_total if row is not None else None

    async def set_total_after_discount(self, user_id: str, amount: int) -> None:
        await self._session.execute(
            update(CartTable)
            .where(CartTable.user_id == user_id)
            .values(total_after_discount=amount)
            .execution_options(synchronize_session=False)
        )

    async def clear(self, user_id: str) -> int:
        result = await self._session.execute(
            delete(CartTable)
            .where(CartTable.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class CouponRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, code: str) -> Coupon | None:
        row = await self._session.get(CouponTable, code)
        if row is None:
            return None
        return Coupon(
            code=row.code,
            discount_percent=Decimal(row.discount_percent),
            starts_at=from_db_time(row.starts_at) if row.starts_at else None,
            ends_at=from_db_time(row.ends_at) if row.ends_at else None,
        )

    async def add(self, coupon: Coupon) -> None:
        self._session.add(
            CouponTable(
                code=coupon.code,
                discount_percent=coupon.discount_percent,
                starts_at=to_db_time(coupon.starts_at) if coupon.starts_at else None,
                ends_at=to_db_time(coupon.ends_at) if coupon.ends_at else None,
            )
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class CatalogRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, product: Product) -> None:
        """Replace the product with its variants and size rows."""
        for table in (SizeTable, VariantTable):
            await self._session.execute(delete(table).where(table.product_id == product.id))
        await self._session.execute(delete(ProductTable).where(ProductTable.id == product.id))

        dims = product.dimensions
        self._session.add(
            ProductTable(
                id=product.id,
                name=product.name,
                category=product.category,
                image=product.image,
                price=product.price,
                original_price=product.original_price,
                discount_percent=product.discount_percent,
                length_cm=dims.length_cm if dims else None,
                breadth_cm=dims.breadth_cm if dims else None,
                height_cm=dims.height_cm if dims else None,
                weight_grams=dims.weight_grams if dims else None,
            )
        )
        for index, variant in enumerate(product.variants):
            self._session.add(
                VariantTable(
                    product_id=product.id,
                    variant_index=index,
                    sku=variant.sku,
                    price=variant.price,
                    original_price=variant.original_price,
                    discount_percent=variant.discount_percent,
                )
            )
            for position, size in enumerate(variant.sizes):
                self._session.add(
                    SizeTable(
                        product_id=product.id,
                        variant_index=index,
                        position=position,
                        label=size.label,
                        qty=size.qty,
                        sold=size.sold,
                        price=size.price,
                        original_price=size.original_price,
                    )
                )
        await self._session.flush()

    async def snapshot(self, product_ids: Iterable[str]) -> dict[str, Product]:
        """Fresh products with stock for ``product_ids``. Unknown ids are absent."""
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}

        products = (
            await self._session.execute(select(ProductTable).where(ProductTable.id.in_(ids)))
        ).scalars().all()
        variants = (
            await self._session.execute(
                select(VariantTable)
                .where(VariantTable.product_id.in_(ids))
                .order_by(VariantTable.product_id, VariantTable.variant_index)
            )
        ).scalars().all()
        sizes = (
            await self._session.execute(
                select(SizeTable)
                .where(SizeTable.product_id.in_(ids))
                .order_by(SizeTable.product_id, SizeTable.variant_index, SizeTable.position)
            )
        ).scalars().all()

        sizes_by_variant: defaultdict[tuple[str, int], list[SizeStock]] = defaultdict(list)
        for s in sizes:
            sizes_by_variant[(s.product_id, s.variant_index)].append(
                SizeStock(
                    label=s.label,
                    qty=s.qty,
                    price=s.price,
                    original_price=s.original_price,
                    sold=s.sold,
                )
            )

        variants_by_product: defaultdict[str, list[Variant]] = defaultdict(list)
        for v in variants:
            variants_by_product[v.product_id].append(
                Variant(
                    sku=v.sku,
                    sizes=tuple(sizes_by_variant[(v.product_id, v.variant_index)]),
                    price=v.price,
                    original_price=v.original_price,
                    discount_percent=v.discount_percent,
                )
            )

        snapshot: dict[str, Product] = {}
        for p in products:
            dims = None
            if p.length_cm and p.breadth_cm and p.height_cm:
                dims = ShippingDimensions(
                    length_cm=Decimal(p.length_cm),
                    breadth_cm=Decimal(p.breadth_cm),
                    height_cm=Decimal(p.height_cm),
                    weight_grams=p.weight_grams or 0,
                )
            snapshot[p.id] = Product(
                id=p.id,
                name=p.name,
                category=p.category,
                price=p.price,
                original_price=p.original_price,
                discount_percent=p.discount_percent,
                variants=tuple(variants_by_product[p.id]),
                dimensions=dims,
                image=p.image,
            )
        return snapshot

    async def decrement(self, product_id: str, variant: int, size: str, qty: int) -> bool:
        """
        Take ``qty`` units if and only if that many remain.

        A single conditional UPDATE; False means nothing changed.
        """
        result = await self._session.execute(
            update(SizeTable)
            .where(
                SizeTable.product_id == product_id,
                SizeTable.variant_index == variant,
                func.lower(SizeTable.label) == size.strip().lower(),
                SizeTable.qty >= qty,
            )
            .values(qty=SizeTable.qty - qty, sold=SizeTable.sold + qty)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def restock(self, product_id: str, variant: int, size: str, qty: int) -> bool:
        result = await self._session.execute(
            update(SizeTable)
            .where(
                SizeTable.product_id == product_id,
                SizeTable.variant_index == variant,
                func.lower(SizeTable.label) == size.strip().lower(),
            )
            .values(
                qty=SizeTable.qty + qty,
                sold=case((SizeTable.sold > qty, SizeTable.sold - qty), else_=0),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def available(self, product_id: str, variant: int, size: str) -> int | None:
        return (
            await self._session.execute(
                select(SizeTable.qty).where(
                    SizeTable.product_id == product_id,
                    SizeTable.variant_index == variant,
                    func.lower(SizeTable.label) == size.strip().lower(),
                )
            )
        ).scalar_one_or_none()


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


def _order(row: OrderTable) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        items=tuple(decode_item(i) for i in row.items),
        shipping_address=decode_address(row.shipping_address),
        payment_method=PaymentMethod(row.payment_method),
        payment_status=PaymentStatus(row.payment_status),
        status=OrderStatus(row.status),
        totals=_totals(row),
        created_at=from_db_time(row.created_at),
        coupon_code=row.coupon_code,
        gst_info=decode_gst(row.gst_info),
        provider_order_id=row.provider_order_id,
        payment_result=row.payment_result,
        paid_at=from_db_time(row.paid_at) if row.paid_at else None,
    )


class OrderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, order: Order) -> None:
        if order.status is OrderStatus.PENDING_COD_VERIFICATION:
            raise ValueError("unverified COD orders belong in pending_cod_orders")
        self._session.add(
            OrderTable(
                id=order.id,
                user_id=order.user_id,
                items=[encode_item(i) for i in order.items],
                shipping_address=encode_address(order.shipping_address),
                payment_method=order.payment_method.value,
                payment_status=order.payment_status.value,
                status=order.status.value,
                coupon_code=order.coupon_code,
                gst_info=encode_gst(order.gst_info),
                provider_order_id=order.provider_order_id,
                payment_result=order.payment_result,
                paid_at=to_db_time(order.paid_at) if order.paid_at else None,
                created_at=to_db_time(order.created_at),
                **_totals_columns(order.totals),
            )
        )
        await self._session.flush()

    async def get(self, order_id: str, *, for_update: bool = False) -> Order | None:
        stmt = select(OrderTable).where(OrderTable.id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _order(row) if row is not None else None

    async def get_by_provider_order(self, provider_order_id: str) -> Order | None:
        row = (
            await self._session.execute(
                select(OrderTable).where(OrderTable.provider_order_id == provider_order_id)
            )
        ).scalar_one_or_none()
        return _order(row) if row is not None else None

    async def save(self, order: Order) -> None:
        """Write back the mutable parts of ``order``."""
        await self._session.execute(
            update(OrderTable)
            .where(OrderTable.id == order.id)
            .values(
                items=[encode_item(i) for i in order.items],
                payment_status=order.payment_status.value,
                status=order.status.value,
                provider_order_id=order.provider_order_id,
                payment_result=order.payment_result,
                paid_at=to_db_time(order.paid_at) if order.paid_at else None,
            )
            .execution_options(synchronize_session=False)
        )

    async def mark_payment_failed(self, order_id: str) -> bool:
        """Flag the payment failed unless it was paid meanwhile; only ``payment_status`` changes."""
        result = await self._session.execute(
            update(OrderTable)
            .where(
                OrderTable.id == order_id,
                OrderTable.payment_status != PaymentStatus.PAID.value,
            )
            .values(payment_status=PaymentStatus.FAILED.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


def _pending(row: PendingCodOrderTable) -> PendingCodOrder:
    return PendingCodOrder(
        id=row.id,
        user_id=row.user_id,
        items=tuple(decode_item(i) for i in row.items),
        shipping_address=decode_address(row.shipping_address),
        totals=_totals(row),
        code_hash=row.code_hash,
        code_expires_at=from_db_time(row.code_expires_at),
        purge_after=from_db_time(row.purge_after),
        created_at=from_db_time(row.created_at),
        coupon_code=row.coupon_code,
        gst_info=decode_gst(row.gst_info),
    )


class PendingCodRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, pending: PendingCodOrder) -> None:
        self._session.add(
            PendingCodOrderTable(
                id=pending.id,
                user_id=pending.user_id,
                items=[encode_item(i) for i in pending.items],
                shipping_address=encode_address(pending.shipping_address),
                coupon_code=pending.coupon_code,
                gst_info=encode_gst(pending.gst_info),
                code_hash=pending.code_hash,
                code_expires_at=to_db_time(pending.code_expires_at),
                purge_after=to_db_time(pending.purge_after),
                created_at=to_db_time(pending.created_at),
                **_totals_columns(pending.totals),
            )
        )
        await self._session.flush()

    async def get(self, pending_id: str) -> PendingCodOrder | None:
        row = await self._session.get(PendingCodOrderTable, pending_id)
        return _pending(row) if row is not None else None

    async def replace_code(self, pending_id: str, code_hash: str, expires_at: datetime) -> None:
        await self._session.execute(
            update(PendingCodOrderTable)
            .where(PendingCodOrderTable.id == pending_id)
            .values(code_hash=code_hash, code_expires_at=to_db_time(expires_at))
            .execution_options(synchronize_session=False)
        )

    async def delete(self, pending_id: str) -> bool:
        result = await self._session.execute(
            delete(PendingCodOrderTable)
            .where(PendingCodOrderTable.id == pending_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def purge_expired(self, now: datetime) -> int:
        result = await self._session.execute(
            delete(PendingCodOrderTable)
            .where(PendingCodOrderTable.purge_after <= to_db_time(now))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


__all__ = (
    "to_db_time",
    "from_db_time",
    "encode_item",
    "decode_item",
    "UserRepo",
    "CartRepo",
    "CouponRepo",
    "CatalogRepo",
    "OrderRepo",
    "PendingCodRepo",
)

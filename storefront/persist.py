"""
Persist — the checkout transaction.

One transaction covers the user check, a fresh stock re-validation, the
record insert and, for placed orders, the conditional stock decrement.
Raising inside the block rolls all of it back.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Sequence

import structlog
from kungfu import Error
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront import orders as O
from storefront.domain import (
    CartLine,
    CheckoutErrors,
    Order,
    OrderLineItem,
    OrderStatus,
    PendingCodOrder,
)
from storefront.repo import CatalogRepo, OrderRepo, PendingCodRepo, UserRepo
from storefront.stock import validate_stock

log = structlog.get_logger(__name__)


async def decrement_items(catalog: CatalogRepo, items: Iterable[OrderLineItem]) -> None:
    """Take stock for every line or raise ``INSUFFICIENT_STOCK``."""
    for item in items:
        if await catalog.decrement(item.product_id, item.variant, item.size, item.quantity):
            continue
        available = await catalog.available(item.product_id, item.variant, item.size)
        log.info(
            "stock_decrement_refused",
            product_id=item.product_id,
            size=item.size,
            requested=item.quantity,
            available=available,
        )
        raise CheckoutErrors.insufficient_stock(
            item.product_id, item.name, item.size, item.quantity, available
        )


async def restock_items(catalog: CatalogRepo, items: Iterable[OrderLineItem]) -> None:
    for item in items:
        if not await catalog.restock(item.product_id, item.variant, item.size, item.quantity):
            log.warning("restock_skipped", product_id=item.product_id, size=item.size)


async def persist_checkout(
    session_factory: async_sessionmaker[AsyncSession],
    record: Order | PendingCodOrder,
    lines: Sequence[CartLine],
) -> None:
    """
    Write ``record`` atomically.

    Orders take stock in the same transaction. Pending COD records leave
    stock alone until they are verified.
    """
    async with session_factory() as session, session.begin():
        if await UserRepo(session).get(record.user_id) is None:
            raise CheckoutErrors.user_not_found()

        catalog = CatalogRepo(session)
        snapshot = await catalog.snapshot(line.product_id for line in lines)
        match validate_stock(lines, snapshot):
            case Error(e):
                raise e

        match record:
            case Order():
                await OrderRepo(session).add(record)
                await decrement_items(catalog, record.items)
            case PendingCodOrder():
                await PendingCodRepo(session).add(record)

    log.info(
        "checkout_persisted",
        order_id=record.id,
        status=record.status.value,
        total=record.totals.total_amount,
    )


async def attach_provider_order(
    session_factory: async_sessionmaker[AsyncSession],
    order: Order,
    provider_order_id: str,
) -> Order:
    attached = dataclasses.replace(order, provider_order_id=provider_order_id)
    async with session_factory() as session, session.begin():
        await OrderRepo(session).save(attached)
    return attached


async def void_order(
    session_factory: async_sessionmaker[AsyncSession],
    order: Order,
    reason: str,
) -> None:
    """Cancel an unpaid order and give its stock back."""
    async with session_factory() as session, session.begin():
        repo = OrderRepo(session)
        current = await repo.get(order.id)
        if current is None:
            return
        await repo.save(O.void_unpaid(current, reason))
        await restock_items(
            CatalogRepo(session),
            (i for i in current.items if i.status is not OrderStatus.CANCELLED),
        )
    log.warning("order_voided", order_id=order.id, reason=reason)


__all__ = (
    "decrement_items",
    "restock_items",
    "persist_checkout",
    "attach_provider_order",
    "void_order",
)

"""
Storefront — the public service.

Every operation returns ``Result[..., CheckoutError]``; render it with
``storefront.domain.payload``. Unexpected exceptions are logged and come
back as ``UNEXPECTED``.

    storefront = Storefront(session_factory, settings, rates=..., provider=..., email=...)
    result = await storefront.checkout(request)
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import functools
import json
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

import httpx
import structlog
from kungfu import LazyCoroResult, Result, Ok, Error
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront import cache as C
from storefront import orders as O
from storefront._types import Clock, Lazy, Now
from storefront.db import create_database
from storefront.domain import (
    CheckoutError,
    CheckoutErrors,
    CheckoutOutcome,
    CheckoutRequest,
    Coupon,
    Message,
    Order,
    OrderStatus,
    PaymentMethod,
    rupees,
)
from storefront.ingress import parse_checkout, product_from_document
from storefront.nodes import CheckoutContext, CheckoutPreview, PlaceOrderNode, PreviewNode
from storefront.notify import EmailChannel, MailApiChannel
from storefront.payments import (
    PaymentProvider,
    ProviderClient,
    check_code,
    generate_code,
    hash_code,
    verify_payment_signature,
    verify_webhook_signature,
)
from storefront.persist import decrement_items, restock_items
from storefront.pricing import coupon_active, coupon_discount
from storefront.repo import (
    CartRepo,
    CatalogRepo,
    CouponRepo,
    OrderRepo,
    PendingCodRepo,
    UserRepo,
)
from storefront.settings import Settings
from storefront.shipping import CarrierRates, QuoteQuery, RateProvider, ShippingEstimator

log = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def coupon_key(code: str) -> str:
    return f"coupon:{code.strip()}"


def boundary[**P, T](
    fn: Callable[P, Awaitable[Result[T, CheckoutError]]],
) -> Callable[P, Awaitable[Result[T, CheckoutError]]]:
    """Raised ``CheckoutError`` becomes ``Error``; anything else is logged as UNEXPECTED."""

    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T, CheckoutError]:
        try:
            return await fn(*args, **kwargs)
        except CheckoutError as e:
            return Error(e)
        except Exception as e:
            log.exception("operation_failed", operation=fn.__name__)
            return Error(CheckoutErrors.unexpected(str(e) or type(e).__name__))

    return wrapper


class Storefront:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        *,
        rates: RateProvider,
        provider: PaymentProvider,
        email: EmailChannel,
        now: Now = utcnow,
        clock: Clock = time.monotonic,
    ) -> None:
        self._sessions = session_factory
        self.settings = settings
        self._email = email
        self._now = now

        fallback = (
            {
                PaymentMethod.PREPAID: settings.shipping_fallback_prepaid,
                PaymentMethod.COD: settings.shipping_fallback_cod,
            }
            if settings.shipping_fallback_enabled
            else None
        )
        self.shipping = ShippingEstimator(
            rates, ttl=settings.shipping_quote_ttl, fallback=fallback, clock=clock
        )
        self.coupons = (
            C.cache(coupon_key, self._fetch_coupon)
            .tier(C.LocalTier[Coupon](max_size=256, ttl=settings.coupon_cache_ttl, clock=clock))
            .build()
        )
        self.context = CheckoutContext(
            session_factory=session_factory,
            settings=settings,
            shipping=self.shipping,
            coupons=self.coupons,
            provider=provider,
            email=email,
            now=now,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        client: httpx.AsyncClient,
    ) -> Storefront:
        """Wire the HTTP collaborators from settings over one shared client."""
        return cls(
            session_factory,
            settings,
            rates=CarrierRates(
                client,
                token=settings.carrier_token,
                origin_pin=settings.warehouse_pincode,
                base_url=settings.carrier_base_url,
            ),
            provider=ProviderClient(
                client,
                key_id=settings.payment_key_id,
                key_secret=settings.payment_key_secret,
                base_url=settings.payment_base_url,
            ),
            email=MailApiChannel(
                client,
                url=settings.mail_api_url,
                api_key=settings.mail_api_key,
                sender=settings.mail_sender,
                app_url=settings.app_url,
            ),
        )

    @classmethod
    @contextlib.asynccontextmanager
    async def open(cls, settings: Settings) -> AsyncIterator[Storefront]:
        """
        Create the database and HTTP client from settings and close both on exit.

            async with Storefront.open(Settings.from_env(os.environ)) as storefront:
                api = create_app(storefront)
        """
        session_factory, engine = await create_database(settings.database_url)
        try:
            async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
                yield cls.from_settings(settings, session_factory, client)
        finally:
            await engine.dispose()

    # ═══════════════════════════════════════════════════════════════════════════
    # Checkout
    # ═══════════════════════════════════════════════════════════════════════════

    async def checkout(self, request: CheckoutRequest) -> Result[CheckoutOutcome, CheckoutError]:
        return await PlaceOrderNode.execute(request, self.context)

    async def checkout_payload(
        self, payload: Mapping[str, Any]
    ) -> Result[CheckoutOutcome, CheckoutError]:
        """Checkout from a raw request body."""
        match parse_checkout(payload):
            case Ok(request):
                return await self.checkout(request)
            case Error(e):
                return Error(e)

    async def preview(self, request: CheckoutRequest) -> Result[CheckoutPreview, CheckoutError]:
        return await PreviewNode.execute(request, self.context)

    # ═══════════════════════════════════════════════════════════════════════════
    # COD verification
    # ═══════════════════════════════════════════════════════════════════════════

    @boundary
    async def verify_cod(self, pending_id: str, code: str) -> Result[Message, CheckoutError]:
        """Promote a pending COD order: insert, take stock, clear cart, drop pending."""
        async with self._sessions() as session:
            pending = await PendingCodRepo(session).get(pending_id)
        if pending is None:
            return Error(CheckoutErrors.order_not_found())
        if not await asyncio.to_thread(check_code, code, pending.code_hash):
            log.info("cod_code_rejected", order_id=pending_id)
            return Error(CheckoutErrors.invalid_code())

        now = self._now()
        if now > pending.code_expires_at:
            return Error(CheckoutErrors.code_expired())

        order = O.promote(pending, now)
        async with self._sessions() as session, session.begin():
            # deleting first makes a second concurrent verification a no-op
            if not await PendingCodRepo(session).delete(pending.id):
                raise CheckoutErrors.order_not_found()
            await OrderRepo(session).add(order)
            await decrement_items(CatalogRepo(session), order.items)
            await CartRepo(session).clear(order.user_id)

        log.info("cod_order_verified", order_id=order.id, total=order.totals.total_amount)
        await self._send_confirmation(order)
        return Ok(
            Message(
                "Order verified successfully.",
                {"orderId": order.id, "status": order.status.value},
            )
        )

    @boundary
    async def resend_cod_code(self, pending_id: str) -> Result[Message, CheckoutError]:
        async with self._sessions() as session:
            pending = await PendingCodRepo(session).get(pending_id)
            user = await UserRepo(session).get(pending.user_id) if pending else None
        if pending is None:
            return Error(CheckoutErrors.order_not_found())
        if user is None:
            return Error(CheckoutErrors.user_not_found())

        code = generate_code()
        code_hash = await asyncio.to_thread(hash_code, code)
        expires_at = self._now() + self.settings.cod_code_ttl
        async with self._sessions() as session, session.begin():
            await PendingCodRepo(session).replace_code(pending.id, code_hash, expires_at)
        refreshed = dataclasses.replace(pending, code_hash=code_hash, code_expires_at=expires_at)

        try:
            await self._email.send_cod_verification(user, refreshed, code)
        except Exception:
            log.exception("cod_code_email_failed", order_id=pending.id)
            return Error(CheckoutErrors.email_failed())

        return Ok(Message("A new verification code has been sent to your email."))

    @boundary
    async def purge_expired_pending(self, now: datetime | None = None) -> Result[Message, CheckoutError]:
        """Drop abandoned COD checkouts. Stock was never taken for them."""
        async with self._sessions() as session, session.begin():
            purged = await PendingCodRepo(session).purge_expired(now or self._now())
        if purged:
            log.info("pending_cod_purged", count=purged)
        return Ok(Message("Expired pending orders purged.", {"purged": purged}))

    # ═══════════════════════════════════════════════════════════════════════════
    # Prepaid verification
    # ═══════════════════════════════════════════════════════════════════════════

    async def _mark_paid(
        self, order: Order, payment_result: dict[str, str]
    ) -> tuple[Order, bool]:
        """Mark paid and clear the cart. Returns (order, changed)."""
        async with self._sessions() as session, session.begin():
            repo = OrderRepo(session)
            current = await repo.get(order.id, for_update=True)
            if current is None:
                raise CheckoutErrors.order_not_found()
            if current.is_paid:
                return current, False
            if current.status is OrderStatus.CANCELLED:
                raise CheckoutErrors.invalid_transition(current.status, OrderStatus.PROCESSING)
            paid = O.mark_paid(current, payment_result, self._now())
            await repo.save(paid)
            await CartRepo(session).clear(paid.user_id)
        log.info("order_paid", order_id=paid.id, total=paid.totals.total_amount)
        return paid, True

    @boundary
    async def verify_payment(
        self,
        order_id: str,
        provider_order_id: str,
        payment_id: str,
        signature: str,
    ) -> Result[Message, CheckoutError]:
        if not verify_payment_signature(
            self.settings.payment_key_secret, provider_order_id, payment_id, signature
        ):
            log.warning("payment_signature_rejected", order_id=order_id)
            return Error(CheckoutErrors.invalid_signature())

        async with self._sessions() as session:
            order = await OrderRepo(session).get(order_id)
        if order is None:
            return Error(CheckoutErrors.order_not_found())
        if order.provider_order_id != provider_order_id:
            return Error(CheckoutErrors.invalid_request("Payment does not belong to this order."))

        paid, changed = await self._mark_paid(
            order,
            {"id": payment_id, "providerOrderId": provider_order_id, "signature": signature},
        )
        if not changed:
            return Ok(Message("Payment already verified.", {"orderId": paid.id}))

        await self._send_confirmation(paid)
        return Ok(
            Message(
                "Payment verified successfully.",
                {"orderId": paid.id, "status": paid.status.value},
            )
        )

    @boundary
    async def handle_payment_webhook(self, body: bytes, signature: str) -> Result[Message, CheckoutError]:
        if not verify_webhook_signature(self.settings.payment_webhook_secret, body, signature):
            log.warning("webhook_signature_rejected")
            return Error(CheckoutErrors.invalid_signature())

        try:
            event = json.loads(body)
            kind = event["event"]
            entity = event["payload"]["payment"]["entity"]
            provider_order_id = str(entity["order_id"])
            payment_id = str(entity["id"])
        except (ValueError, KeyError, TypeError):
            return Error(CheckoutErrors.invalid_request("Malformed webhook payload."))

        if kind not in ("payment.captured", "payment.failed"):
            return Ok(Message("Event ignored.", {"event": kind}))

        async with self._sessions() as session:
            order = await OrderRepo(session).get_by_provider_order(provider_order_id)
        if order is None:
            log.warning("webhook_order_unknown", provider_order_id=provider_order_id, event=kind)
            return Ok(Message("No matching order.", {"event": kind}))

        match kind:
            case "payment.captured":
                paid, changed = await self._mark_paid(
                    order,
                    {"id": payment_id, "providerOrderId": provider_order_id, "source": "webhook"},
                )
                if changed:
                    await self._send_confirmation(paid)
            case _:
                async with self._sessions() as session, session.begin():
                    flagged = await OrderRepo(session).mark_payment_failed(order.id)
                if flagged:
                    log.info("payment_failed", order_id=order.id)
                else:
                    log.info("payment_failed_after_capture", order_id=order.id)

        return Ok(Message("Webhook processed.", {"event": kind, "orderId": order.id}))

    # ═══════════════════════════════════════════════════════════════════════════
    # Order maintenance
    # ═══════════════════════════════════════════════════════════════════════════

    @boundary
    async def update_item_status(
        self, order_id: str, line_id: str, status: OrderStatus | str
    ) -> Result[Message, CheckoutError]:
        match status:
            case OrderStatus():
                target = status
            case str():
                match O.parse_status(status):
                    case Ok(parsed):
                        target = parsed
                    case Error(e):
                        return Error(e)

        async with self._sessions() as session, session.begin():
            repo = OrderRepo(session)
            order = await repo.get(order_id, for_update=True)
            if order is None:
                raise CheckoutErrors.order_not_found()
            match O.update_item_status(order, line_id, target, self._now()):
                case Ok(updated):
                    await repo.save(updated)
                case Error(e):
                    raise e

        log.info("item_status_updated", order_id=order_id, line_id=line_id, status=target.value)
        return Ok(
            Message(
                "Order status updated successfully.",
                {"orderId": updated.id, "status": updated.status.value, "order": O.legacy_view(updated)},
            )
        )

    async def _owned(self, repo: OrderRepo, order_id: str, user_id: str | None) -> Order:
        order = await repo.get(order_id, for_update=True)
        if order is None or (user_id is not None and order.user_id != user_id):
            raise CheckoutErrors.order_not_found()
        return order

    @boundary
    async def cancel_item(
        self,
        order_id: str,
        line_id: str,
        *,
        reason: str = "Cancelled by customer",
        user_id: str | None = None,
    ) -> Result[Message, CheckoutError]:
        async with self._sessions() as session, session.begin():
            repo = OrderRepo(session)
            order = await self._owned(repo, order_id, user_id)
            match O.cancel_item(order, line_id, reason, self._now()):
                case Ok((updated, cancelled)):
                    await repo.save(updated)
                    await restock_items(CatalogRepo(session), (cancelled,))
                case Error(e):
                    raise e

        log.info("item_cancelled", order_id=order_id, line_id=line_id, quantity=cancelled.quantity)
        return Ok(
            Message(
                "Product cancelled successfully.",
                {"orderId": updated.id, "status": updated.status.value, "order": O.legacy_view(updated)},
            )
        )

    @boundary
    async def cancel_order(
        self,
        order_id: str,
        *,
        reason: str = "Cancelled by customer",
        user_id: str | None = None,
    ) -> Result[Message, CheckoutError]:
        async with self._sessions() as session, session.begin():
            repo = OrderRepo(session)
            order = await self._owned(repo, order_id, user_id)
            match O.cancel_order(order, reason, self._now()):
                case Ok((updated, released)):
                    await repo.save(updated)
                    await restock_items(CatalogRepo(session), released)
                case Error(e):
                    raise e

        log.info("order_cancelled", order_id=order_id, lines=len(released))
        return Ok(Message("Order cancelled successfully.", {"orderId": updated.id}))

    # ═══════════════════════════════════════════════════════════════════════════
    # Coupons / Shipping
    # ═══════════════════════════════════════════════════════════════════════════

    def _fetch_coupon(self, code: str) -> Lazy[Coupon]:
        async def fetch() -> Result[Coupon, CheckoutError]:
            async with self._sessions() as session:
                coupon = await CouponRepo(session).get(code.strip())
            return Ok(coupon) if coupon is not None else Error(CheckoutErrors.invalid_coupon())

        return LazyCoroResult(fetch)

    @boundary
    async def apply_coupon(self, code: str, user_id: str) -> Result[Message, CheckoutError]:
        async with self._sessions() as session:
            user = await UserRepo(session).get(user_id)
            cart_total = await CartRepo(session).total(user_id)
        if user is None:
            return Error(CheckoutErrors.user_not_found())
        if not cart_total:
            return Error(CheckoutErrors.empty_cart())

        match await self.coupons.get(code)():
            case Ok(hit):
                coupon = hit.value
            case Error(e):
                return Error(e)
        if not coupon_active(coupon, self._now()):
            return Error(CheckoutErrors.invalid_coupon())

        after = cart_total - coupon_discount(cart_total, coupon)
        async with self._sessions() as session, session.begin():
            await CartRepo(session).set_total_after_discount(user_id, after)

        return Ok(
            Message(
                "Coupon applied.",
                {
                    "discount": float(coupon.discount_percent),
                    "totalAfterDiscount": rupees(after),
                },
            )
        )

    async def invalidate_coupon(self, code: str) -> bool:
        return (await self.coupons.invalidate(code)).unwrap()

    async def invalidate_shipping_quotes(self) -> int:
        return await self.shipping.invalidate()

    @boundary
    async def estimate_shipping(
        self, pincode: str, weight_grams: int, method: PaymentMethod
    ) -> Result[Message, CheckoutError]:
        if not pincode.strip().isdigit() or weight_grams <= 0:
            return Error(CheckoutErrors.invalid_request("A pincode and a positive weight are required."))

        query = QuoteQuery(destination_pin=pincode.strip(), weight_grams=weight_grams, method=method)
        match await self.shipping.price(None, query)():
            case Ok(quote):
                return Ok(
                    Message(
                        "Shipping cost calculated.",
                        {
                            "shippingCost": rupees(quote.amount),
                            "source": quote.source,
                            "weightGrams": weight_grams,
                        },
                    )
                )
            case Error(e):
                return Error(e)

    # ═══════════════════════════════════════════════════════════════════════════
    # Catalog import
    # ═══════════════════════════════════════════════════════════════════════════

    @boundary
    async def import_products(self, documents: Iterable[Mapping[str, Any]]) -> Result[Message, CheckoutError]:
        """Upsert raw product documents of any supported shape."""
        try:
            products = [product_from_document(doc) for doc in documents]
        except ValueError as e:
            return Error(CheckoutErrors.invalid_request(str(e)))

        async with self._sessions() as session, session.begin():
            catalog = CatalogRepo(session)
            for product in products:
                await catalog.upsert(product)

        log.info("products_imported", count=len(products))
        return Ok(Message("Products imported.", {"count": len(products)}))

    # ═══════════════════════════════════════════════════════════════════════════

    async def _send_confirmation(self, order: Order) -> None:
        async with self._sessions() as session:
            user = await UserRepo(session).get(order.user_id)
        if user is None:
            return
        try:
            await self._email.send_order_confirmation(user, order)
        except Exception:
            log.exception("order_confirmation_email_failed", order_id=order.id)


__all__ = ("Storefront", "boundary", "coupon_key", "utcnow")

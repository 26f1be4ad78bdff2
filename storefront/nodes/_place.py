"""
Place order — persist, then branch on payment method.

Prepaid runs as a saga: the order is committed with stock taken, then a
provider order is created for it. If the provider fails the committed order
is voided and its stock returned.

COD commits a pending record only. Stock is taken when the emailed code is
verified.
"""

import asyncio
import time

import structlog
from kungfu import Ok, Error, Result

from storefront import graph as G
from storefront import orders as O
from storefront import saga as S
from storefront.domain import (
    CartLine,
    CheckoutError,
    CheckoutErrors,
    CheckoutOutcome,
    CheckoutRequest,
    Order,
    PaymentMethod,
    PricedCart,
    Totals,
    User,
    as_checkout_error,
)
from storefront.log import checkout_context
from storefront.nodes._context import CheckoutContext
from storefront.nodes._input import UserNode
from storefront.nodes._pricing import DiscountNode, PricingNode
from storefront.nodes._stock import StockNode
from storefront.nodes._totals import TotalsNode
from storefront.payments import ProviderOrder, generate_code, hash_code
from storefront.persist import attach_provider_order, persist_checkout, void_order

log = structlog.get_logger(__name__)


def _persist_error(exc: Exception) -> CheckoutError:
    if not isinstance(exc, CheckoutError):
        log.error("persist_failed", exc_info=exc)
    return as_checkout_error(exc)


async def _place_prepaid(
    request: CheckoutRequest,
    lines: tuple[CartLine, ...],
    priced: PricedCart,
    totals: Totals,
    coupon_code: str | None,
    ctx: CheckoutContext,
) -> CheckoutOutcome:
    draft = O.assemble_order(
        order_id=O.new_id(),
        user_id=request.user_id,
        priced=priced,
        totals=totals,
        address=request.shipping_address,
        payment_method=PaymentMethod.PREPAID,
        created_at=ctx.now(),
        coupon_code=coupon_code,
        gst_info=request.gst_info,
    )

    async def persist() -> Order:
        await persist_checkout(ctx.session_factory, draft, lines)
        return draft

    async def void(order: Order) -> None:
        await void_order(ctx.session_factory, order, "payment order could not be created")

    def create_provider_order(order: Order) -> S.SagaStep[ProviderOrder, CheckoutError]:
        return S.step(
            ctx.provider.create_order(
                amount=order.totals.total_amount,
                currency=ctx.settings.currency,
                receipt=order.id,
                notes={"userId": order.user_id},
            ),
            name="provider_order",
        )

    def attach(provider_order: ProviderOrder) -> S.SagaStep[Order, CheckoutError]:
        return S.from_async(
            lambda: attach_provider_order(ctx.session_factory, draft, provider_order.id),
            on_error=_persist_error,
            name="attach_provider_order",
        )

    saga = (
        S.from_async(persist, on_error=_persist_error, compensate=void, name="persist")
        .then(create_provider_order)
        .then(attach)
    )

    match await S.run(saga):
        case Ok(done):
            order = done.value
        case Error(failed):
            if not failed.rollback_complete:
                log.error("saga_rollback_incomplete", order_id=draft.id, step=failed.step_failed)
            raise failed.error

    log.info("provider_order_created", order_id=order.id, provider_order_id=order.provider_order_id)
    return CheckoutOutcome(
        order_id=order.id,
        payment_method=PaymentMethod.PREPAID,
        totals=totals,
        message="Order created. Complete the payment to confirm it.",
        provider_order_id=order.provider_order_id,
        provider_key=ctx.provider.key_id,
        currency=ctx.settings.currency,
    )


async def _place_cod(
    request: CheckoutRequest,
    user: User,
    lines: tuple[CartLine, ...],
    priced: PricedCart,
    totals: Totals,
    coupon_code: str | None,
    ctx: CheckoutContext,
) -> CheckoutOutcome:
    code = generate_code()
    now = ctx.now()
    pending = O.assemble_pending(
        pending_id=O.new_id(),
        user_id=request.user_id,
        priced=priced,
        totals=totals,
        address=request.shipping_address,
        code_hash=await asyncio.to_thread(hash_code, code),
        code_expires_at=now + ctx.settings.cod_code_ttl,
        purge_after=now + ctx.settings.pending_cod_retention,
        created_at=now,
        coupon_code=coupon_code,
        gst_info=request.gst_info,
    )
    await persist_checkout(ctx.session_factory, pending, lines)

    message = "Order placed. Enter the verification code sent to your email."
    try:
        await ctx.email.send_cod_verification(user, pending, code)
    except Exception:
        log.exception("cod_code_email_failed", order_id=pending.id)
        message = "Order placed, but the verification email could not be sent. Request a new code."

    return CheckoutOutcome(
        order_id=pending.id,
        payment_method=PaymentMethod.COD,
        totals=totals,
        message=message,
        requires_cod_verification=True,
        currency=ctx.settings.currency,
    )


@G.node
class PlaceOrderNode:
    """Terminal checkout node. Depends on every read."""

    def __init__(self, data: CheckoutOutcome) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: CheckoutRequest,
        user: UserNode,
        stock: StockNode,
        pricing: PricingNode,
        discount: DiscountNode,
        totals: TotalsNode,
        ctx: CheckoutContext,
    ) -> "PlaceOrderNode":
        coupon_code = discount.coupon.code if discount.coupon is not None else None
        match request.payment_method:
            case PaymentMethod.PREPAID:
                outcome = await _place_prepaid(
                    request, stock.lines, pricing.data, totals.data, coupon_code, ctx
                )
            case PaymentMethod.COD:
                outcome = await _place_cod(
                    request, user.data, stock.lines, pricing.data, totals.data, coupon_code, ctx
                )
        return cls(outcome)

    @classmethod
    async def execute(
        cls, request: CheckoutRequest, ctx: CheckoutContext
    ) -> Result[CheckoutOutcome, CheckoutError]:
        """
        Run the checkout graph.

        User, catalog and coupon reads run concurrently where they do not
        depend on each other; shipping and tax follow pricing. Domain
        failures come back as ``Error``; anything else is logged and
        reported as ``UNEXPECTED``.
        """
        with checkout_context(
            checkout_id=O.new_id(),
            user_id=request.user_id,
            payment_method=request.payment_method.value,
        ):
            start = time.perf_counter()
            try:
                placed = await checkout_graph(request, ctx)
            except CheckoutError as e:
                log.info("checkout_rejected", code=e.code, elapsed_ms=_elapsed(start))
                return Error(e)
            except Exception as e:
                log.exception("checkout_failed", elapsed_ms=_elapsed(start))
                return Error(CheckoutErrors.unexpected(str(e) or type(e).__name__))

            log.info(
                "checkout_completed",
                order_id=placed.data.order_id,
                total=placed.data.totals.total_amount,
                elapsed_ms=_elapsed(start),
            )
            return Ok(placed.data)


def _elapsed(start: float) -> int:
    return round((time.perf_counter() - start) * 1000)


checkout_graph = G.graph(PlaceOrderNode)


__all__ = ("PlaceOrderNode", "checkout_graph")

# tests/test_payment_verification.py
import json

from storefront.domain import OrderStatus, PaymentMethod, PaymentStatus
from storefront.payments import sign
from storefront.repo import CartRepo, OrderRepo


async def place_prepaid(storefront, make_request):
    return (await storefront.checkout(make_request(PaymentMethod.PREPAID))).unwrap()


def payment_signature(provider_order_id, payment_id, secret="key-secret"):
    return sign(secret, f"{provider_order_id}|{payment_id}".encode())


def webhook(event, provider_order_id, payment_id="pay_1", secret="hook-secret"):
    body = json.dumps(
        {"event": event, "payload": {"payment": {"entity": {"id": payment_id, "order_id": provider_order_id}}}}
    ).encode()
    return body, sign(secret, body)


async def load(sessions, order_id):
    async with sessions() as session:
        return await OrderRepo(session).get(order_id)


async def test_verified_payment_marks_order_paid(storefront, make_request, email, sessions, clock):
    placed = await place_prepaid(storefront, make_request)

    result = await storefront.verify_payment(
        placed.order_id, placed.provider_order_id, "pay_1", payment_signature(placed.provider_order_id, "pay_1")
    )
    assert result.unwrap().to_payload()["status"] == "processing"

    order = await load(sessions, placed.order_id)
    assert order.payment_status is PaymentStatus.PAID
    assert order.paid_at == clock()
    assert order.payment_result["id"] == "pay_1"
    assert all(i.status is OrderStatus.PROCESSING for i in order.items)
    assert email.confirmations == [placed.order_id]
    async with sessions() as session:
        assert await CartRepo(session).total("u1") is None


async def test_repeated_verification_is_idempotent(storefront, make_request, email):
    placed = await place_prepaid(storefront, make_request)
    signature = payment_signature(placed.provider_order_id, "pay_1")

    await storefront.verify_payment(placed.order_id, placed.provider_order_id, "pay_1", signature)
    again = await storefront.verify_payment(placed.order_id, placed.provider_order_id, "pay_1", signature)
    assert again.unwrap().message == "Payment already verified."
    assert email.confirmations == [placed.order_id]


async def test_bad_signature_changes_nothing(storefront, make_request, sessions):
    placed = await place_prepaid(storefront, make_request)
    forged = payment_signature(placed.provider_order_id, "pay_1", secret="guess")

    result = await storefront.verify_payment(placed.order_id, placed.provider_order_id, "pay_1", forged)
    assert result.error.code == "INVALID_SIGNATURE"
    assert not (await load(sessions, placed.order_id)).is_paid


async def test_payment_for_another_order_is_rejected(storefront, make_request):
    first = await place_prepaid(storefront, make_request)
    second = (await storefront.checkout(make_request(PaymentMethod.PREPAID, quantity=1))).unwrap()
    signature = payment_signature(second.provider_order_id, "pay_2")

    result = await storefront.verify_payment(first.order_id, second.provider_order_id, "pay_2", signature)
    assert result.error.code == "INVALID_REQUEST"


async def test_unknown_order(storefront):
    result = await storefront.verify_payment("nope", "order_x", "pay_1", payment_signature("order_x", "pay_1"))
    assert result.error.code == "ORDER_NOT_FOUND"


async def test_captured_webhook_marks_paid(storefront, make_request, sessions, email):
    placed = await place_prepaid(storefront, make_request)
    body, signature = webhook("payment.captured", placed.provider_order_id)

    result = await storefront.handle_payment_webhook(body, signature)
    assert result.unwrap().to_payload()["orderId"] == placed.order_id
    order = await load(sessions, placed.order_id)
    assert order.is_paid
    assert order.payment_result["source"] == "webhook"

    # a late client callback after the webhook is a no-op
    late = await storefront.verify_payment(
        placed.order_id, placed.provider_order_id, "pay_1", payment_signature(placed.provider_order_id, "pay_1")
    )
    assert late.unwrap().message == "Payment already verified."
    assert email.confirmations == [placed.order_id]


async def test_failed_webhook_marks_payment_failed(storefront, make_request, sessions):
    placed = await place_prepaid(storefront, make_request)
    body, signature = webhook("payment.failed", placed.provider_order_id)

    assert (await storefront.handle_payment_webhook(body, signature)).unwrap()
    order = await load(sessions, placed.order_id)
    assert order.payment_status is PaymentStatus.FAILED
    assert order.status is OrderStatus.PENDING


async def test_webhook_edge_cases(storefront):
    body, signature = webhook("refund.created", "order_x")
    assert (await storefront.handle_payment_webhook(body, signature)).unwrap().message == "Event ignored."

    body, signature = webhook("payment.captured", "order_unknown")
    assert (await storefront.handle_payment_webhook(body, signature)).unwrap().message == "No matching order."

    body, _ = webhook("payment.captured", "order_x")
    assert (await storefront.handle_payment_webhook(body, "bad")).error.code == "INVALID_SIGNATURE"

    garbage = b"not json"
    result = await storefront.handle_payment_webhook(garbage, sign("hook-secret", garbage))
    assert result.error.code == "INVALID_REQUEST"


async def test_cancelled_order_cannot_be_paid(storefront, make_request):
    placed = await place_prepaid(storefront, make_request)
    (await storefront.cancel_order(placed.order_id, reason="changed mind")).unwrap()

    result = await storefront.verify_payment(
        placed.order_id, placed.provider_order_id, "pay_1", payment_signature(placed.provider_order_id, "pay_1")
    )
    assert result.error.code == "INVALID_TRANSITION"


async def test_failed_webhook_keeps_a_payment_that_landed_meanwhile(storefront, make_request, sessions, clock, monkeypatch):
    placed = await place_prepaid(storefront, make_request)
    lookup = OrderRepo.get_by_provider_order

    async def lookup_then_pay(self, provider_order_id):
        order = await lookup(self, provider_order_id)
        paid = await storefront.verify_payment(
            placed.order_id, placed.provider_order_id, "pay_1", payment_signature(placed.provider_order_id, "pay_1")
        )
        assert paid.unwrap()
        return order

    monkeypatch.setattr(OrderRepo, "get_by_provider_order", lookup_then_pay)
    body, signature = webhook("payment.failed", placed.provider_order_id)
    assert (await storefront.handle_payment_webhook(body, signature)).unwrap()

    order = await load(sessions, placed.order_id)
    assert order.payment_status is PaymentStatus.PAID
    assert order.status is OrderStatus.PROCESSING
    assert order.paid_at == clock()
    assert order.payment_result["id"] == "pay_1"

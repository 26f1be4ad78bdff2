# tests/test_notify.py
import json
from datetime import UTC, datetime

import httpx
import pytest

from conftest import ADDRESS
from storefront.domain import (
    Order,
    OrderLineItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PendingCodOrder,
    TaxBreakdown,
    Totals,
    User,
)
from storefront.notify import MailApiChannel

USER = User(id="u1", name="Asha", email="asha@example.com")
CREATED = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
TOTALS = Totals(
    items_price=100000,
    total_original_items_price=160000,
    shipping_price=4500,
    discount_amount=0,
    tax=TaxBreakdown(cgst=9000, sgst=9000, igst=0),
)
LINE = OrderLineItem(
    line_id="l1",
    product_id="P1",
    name="Linen Shirt",
    quantity=2,
    selling_price=50000,
    original_price=80000,
    size="M",
    image="",
    status=OrderStatus.PENDING,
)


def channel(requests, status=200):
    def handler(request):
        requests.append(request)
        return httpx.Response(status, json={"id": "mail_1"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MailApiChannel(
        client,
        url="https://mail.test/v1/send",
        api_key="mail-key",
        sender="orders@shop.test",
        app_url="https://shop.test/",
    )


async def test_cod_mail_carries_the_code():
    requests = []
    pending = PendingCodOrder(
        id="pend-1",
        user_id="u1",
        items=(LINE,),
        shipping_address=ADDRESS,
        totals=TOTALS,
        code_hash="unused",
        code_expires_at=datetime(2026, 3, 1, 10, 15, tzinfo=UTC),
        purge_after=datetime(2026, 3, 2, 10, 0, tzinfo=UTC),
        created_at=CREATED,
    )

    await channel(requests).send_cod_verification(USER, pending, "482913")

    (request,) = requests
    assert request.method == "POST"
    assert str(request.url) == "https://mail.test/v1/send"
    assert request.headers["authorization"] == "Bearer mail-key"
    body = json.loads(request.content)
    assert body["to"] == ["asha@example.com"]
    assert body["from"] == "orders@shop.test"
    assert body["subject"] == "Verify your Cash on Delivery order"
    assert "482913" in body["text"]
    assert "10:15 UTC" in body["text"]
    assert "https://shop.test/orders/verify-cod?orderId=pend-1" in body["text"]


async def test_confirmation_lists_the_lines():
    requests = []
    order = Order(
        id="ord-1",
        user_id="u1",
        items=(LINE,),
        shipping_address=ADDRESS,
        payment_method=PaymentMethod.COD,
        payment_status=PaymentStatus.PENDING,
        status=OrderStatus.PENDING,
        totals=TOTALS,
        created_at=CREATED,
    )

    await channel(requests).send_order_confirmation(USER, order)

    body = json.loads(requests[0].content)
    assert body["subject"] == "Order confirmation ord-1"
    assert "- Linen Shirt (M) x 2: Rs. 1000.00" in body["text"]
    assert "Total: Rs. 1225.00" in body["text"]


async def test_rejected_send_raises():
    requests = []
    pending = PendingCodOrder(
        id="pend-1",
        user_id="u1",
        items=(LINE,),
        shipping_address=ADDRESS,
        totals=TOTALS,
        code_hash="unused",
        code_expires_at=CREATED,
        purge_after=CREATED,
        created_at=CREATED,
    )
    with pytest.raises(httpx.HTTPStatusError):
        await channel(requests, status=503).send_cod_verification(USER, pending, "482913")
    assert len(requests) == 1

# tests/test_order_maintenance.py
from storefront.domain import CartLine, OrderStatus, PaymentMethod
from storefront.repo import OrderRepo


async def verified_cod(storefront, make_request, email, **kwargs):
    placed = (await storefront.checkout(make_request(PaymentMethod.COD, **kwargs))).unwrap()
    (await storefront.verify_cod(placed.order_id, email.codes[placed.order_id])).unwrap()
    return placed.order_id


async def load(sessions, order_id):
    async with sessions() as session:
        return await OrderRepo(session).get(order_id)


def two_lines():
    return (
        CartLine(product_id="P1", name="Linen Shirt", unit_price=50000, quantity=2, size="M"),
        CartLine(product_id="P1", name="Linen Shirt", unit_price=50000, quantity=1, size="L"),
    )


async def test_item_status_accepts_admin_labels(storefront, make_request, email, sessions):
    order_id = await verified_cod(storefront, make_request, email)
    line_id = (await load(sessions, order_id)).items[0].line_id

    result = await storefront.update_item_status(order_id, line_id, "Dispatched")
    body = result.unwrap().to_payload()
    assert body["status"] == "dispatched"
    assert body["order"]["products"][0]["status"] == "Dispatched"
    assert body["order"]["orderItems"][0]["status"] == "Dispatched"


async def test_delivery_collects_cod_payment(storefront, make_request, email, sessions, clock):
    order_id = await verified_cod(storefront, make_request, email)
    line_id = (await load(sessions, order_id)).items[0].line_id

    (await storefront.update_item_status(order_id, line_id, OrderStatus.DELIVERED)).unwrap()
    order = await load(sessions, order_id)
    assert order.status is OrderStatus.DELIVERED
    assert order.is_paid
    assert order.paid_at == clock()


async def test_backward_status_change_is_rejected(storefront, make_request, email, sessions):
    order_id = await verified_cod(storefront, make_request, email)
    line_id = (await load(sessions, order_id)).items[0].line_id
    (await storefront.update_item_status(order_id, line_id, "Confirmed")).unwrap()

    result = await storefront.update_item_status(order_id, line_id, "Processing")
    assert result.error.code == "INVALID_TRANSITION"
    assert result.error.http_status == 409
    assert (await load(sessions, order_id)).status is OrderStatus.CONFIRMED


async def test_status_update_errors(storefront, make_request, email):
    order_id = await verified_cod(storefront, make_request, email)
    assert (await storefront.update_item_status(order_id, "nope", "Confirmed")).error.code == "ITEM_NOT_FOUND"
    assert (await storefront.update_item_status("nope", "nope", "Confirmed")).error.code == "ORDER_NOT_FOUND"
    assert (await storefront.update_item_status(order_id, "nope", "Lost")).error.code == "INVALID_REQUEST"


async def test_cancel_item_restocks(storefront, make_request, email, sessions, stock_of):
    order_id = await verified_cod(storefront, make_request, email, lines=two_lines())
    assert (await stock_of(), await stock_of(size="L")) == (3, 0)
    order = await load(sessions, order_id)

    result = await storefront.cancel_item(order_id, order.items[1].line_id, reason="size", user_id="u1")
    assert result.unwrap().to_payload()["status"] == "pending"
    assert await stock_of(size="L") == 1
    assert await stock_of() == 3

    updated = await load(sessions, order_id)
    assert updated.items[1].status is OrderStatus.CANCELLED
    assert updated.items[1].cancel_reason == "size"


async def test_cancel_order_restocks_everything(storefront, make_request, email, sessions, stock_of):
    order_id = await verified_cod(storefront, make_request, email, lines=two_lines())

    (await storefront.cancel_order(order_id, reason="changed mind")).unwrap()
    assert (await stock_of(), await stock_of(size="L")) == (5, 1)
    assert (await load(sessions, order_id)).status is OrderStatus.CANCELLED


async def test_cancel_is_refused_after_dispatch(storefront, make_request, email, sessions, stock_of):
    order_id = await verified_cod(storefront, make_request, email)
    line_id = (await load(sessions, order_id)).items[0].line_id
    (await storefront.update_item_status(order_id, line_id, "Dispatched")).unwrap()

    assert (await storefront.cancel_item(order_id, line_id)).error.code == "NOT_CANCELLABLE"
    assert (await storefront.cancel_order(order_id)).error.code == "NOT_CANCELLABLE"
    assert await stock_of() == 3


async def test_cancel_checks_ownership(storefront, make_request, email, stock_of):
    order_id = await verified_cod(storefront, make_request, email)
    result = await storefront.cancel_order(order_id, user_id="u2")
    assert result.error.code == "ORDER_NOT_FOUND"
    assert await stock_of() == 3

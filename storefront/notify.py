"""
Notify — transactional email.

Sending happens after commit. Callers decide whether a failed send fails
the operation.
"""

from __future__ import annotations

from typing import Protocol

import httpx
import structlog

from storefront.domain import Order, PendingCodOrder, User, rupees

log = structlog.get_logger(__name__)


class EmailChannel(Protocol):
    async def send_cod_verification(self, user: User, pending: PendingCodOrder, code: str) -> None: ...

    async def send_order_confirmation(self, user: User, order: Order) -> None: ...


class MailApiChannel:
    """JSON mail API (``POST {url}`` with a bearer key)."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        url: str,
        api_key: str,
        sender: str,
        app_url: str,
    ) -> None:
        self._client = client
        self._url = url
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._sender = sender
        self._app_url = app_url.rstrip("/")

    async def _send(self, to: str, subject: str, text: str) -> None:
        response = await self._client.post(
            self._url,
            json={"from": self._sender, "to": [to], "subject": subject, "text": text},
            headers=self._headers,
        )
        response.raise_for_status()

    async def send_cod_verification(self, user: User, pending: PendingCodOrder, code: str) -> None:
        text = (
            f"Hi {user.name},\n\n"
            f"Your verification code for order {pending.id} is {code}.\n"
            f"Order total: Rs. {rupees(pending.totals.total_amount):.2f}\n"
            f"The code expires at {pending.code_expires_at:%H:%M} UTC.\n\n"
            f"{self._app_url}/orders/verify-cod?orderId={pending.id}\n"
        )
        await self._send(user.email, "Verify your Cash on Delivery order", text)
        log.info("cod_code_sent", order_id=pending.id)

    async def send_order_confirmation(self, user: User, order: Order) -> None:
        lines = "\n".join(
            f"- {item.name} ({item.size}) x {item.quantity}: Rs. {rupees(item.selling_price * item.quantity):.2f}"
            for item in order.items
        )
        text = (
            f"Hi {user.name},\n\n"
            f"Thank you for your order {order.id}.\n\n{lines}\n\n"
            f"Total: Rs. {rupees(order.totals.total_amount):.2f}\n"
            f"{self._app_url}/order/{order.id}\n"
        )
        await self._send(user.email, f"Order confirmation {order.id}", text)
        log.info("order_confirmation_sent", order_id=order.id)


__all__ = ("EmailChannel", "MailApiChannel")

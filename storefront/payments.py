"""
Payments — provider orders, signatures and COD verification codes.

The provider is Razorpay-compatible: orders are created with
``POST /v1/orders`` (amount in paise) and client callbacks are signed with
HMAC-SHA256 over ``"<provider_order_id>|<payment_id>"``.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog
from combinators import lift as L

from storefront._types import Lazy
from storefront.domain import CheckoutError, CheckoutErrors

log = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Provider Orders
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ProviderOrder:
    id: str
    amount: int
    currency: str
    receipt: str


class PaymentProvider(Protocol):
    key_id: str

    def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> Lazy[ProviderOrder]: ...


def _provider_error(exc: Exception) -> CheckoutError:
    match exc:
        case httpx.HTTPStatusError(response=response):
            return CheckoutErrors.payment_provider(f"provider returned {response.status_code}")
        case httpx.TransportError():
            return CheckoutErrors.payment_provider("provider unreachable")
        case _:
            return CheckoutErrors.payment_provider(str(exc) or type(exc).__name__)


class ProviderClient:
    """Orders API over an ``httpx.AsyncClient`` with basic auth."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com",
    ) -> None:
        self._client = client
        self.key_id = key_id
        self._auth = httpx.BasicAuth(key_id, key_secret)
        self._url = base_url.rstrip("/") + "/v1/orders"

    async def _create(self, body: dict[str, Any]) -> ProviderOrder:
        response = await self._client.post(self._url, json=body, auth=self._auth)
        response.raise_for_status()
        data = response.json()
        return ProviderOrder(
            id=str(data["id"]),
            amount=int(data.get("amount", body["amount"])),
            currency=str(data.get("currency", body["currency"])),
            receipt=str(data.get("receipt", body["receipt"])),
        )

    def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> Lazy[ProviderOrder]:
        body: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        return L.catching_async(lambda: self._create(body), on_error=_provider_error)


# ═══════════════════════════════════════════════════════════════════════════════
# Signatures
# ═══════════════════════════════════════════════════════════════════════════════


def sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_payment_signature(
    secret: str, provider_order_id: str, payment_id: str, signature: str
) -> bool:
    expected = sign(secret, f"{provider_order_id}|{payment_id}".encode())
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(secret: str, body: bytes, signature: str) -> bool:
    return hmac.compare_digest(sign(secret, body), signature)


# ═══════════════════════════════════════════════════════════════════════════════
# COD Verification Codes
# ═══════════════════════════════════════════════════════════════════════════════

CODE_HASH_ITERATIONS = 100_000


def generate_code() -> str:
    """Six digits, 100000-999999."""
    return str(secrets.randbelow(900_000) + 100_000)


def hash_code(code: str, *, salt: bytes | None = None) -> str:
    salt = salt if salt is not None else secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", code.encode(), salt, CODE_HASH_ITERATIONS)
    return f"{salt.hex()}${digest.hex()}"


def check_code(code: str, stored: str) -> bool:
    salt_hex, _, digest_hex = stored.partition("$")
    try:
        salt = bytes.fromhex(salt_hex)
    except ValueError:
        log.warning("malformed_code_hash")
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", code.strip().encode(), salt, CODE_HASH_ITERATIONS)
    return hmac.compare_digest(candidate.hex(), digest_hex)


__all__ = (
    "ProviderOrder",
    "PaymentProvider",
    "ProviderClient",
    "sign",
    "verify_payment_signature",
    "verify_webhook_signature",
    "CODE_HASH_ITERATIONS",
    "generate_code",
    "hash_code",
    "check_code",
)

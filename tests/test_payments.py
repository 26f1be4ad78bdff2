# tests/test_payments.py
import base64
import json

import httpx

from storefront.payments import (
    ProviderClient,
    check_code,
    generate_code,
    hash_code,
    sign,
    verify_payment_signature,
    verify_webhook_signature,
)


def test_payment_signature_round_trip():
    signature = sign("key-secret", b"order_1|pay_1")
    assert verify_payment_signature("key-secret", "order_1", "pay_1", signature)
    assert not verify_payment_signature("key-secret", "order_1", "pay_2", signature)
    assert not verify_payment_signature("other-secret", "order_1", "pay_1", signature)


def test_webhook_signature_covers_raw_body():
    body = b'{"event":"payment.captured"}'
    signature = sign("hook-secret", body)
    assert verify_webhook_signature("hook-secret", body, signature)
    assert not verify_webhook_signature("hook-secret", body + b" ", signature)
    assert not verify_webhook_signature("hook-secret", body, "")


def test_generated_codes_are_six_digits():
    codes = {generate_code() for _ in range(50)}
    assert all(len(c) == 6 and c.isdigit() and not c.startswith("0") for c in codes)


def test_code_hash_is_salted():
    first = hash_code("123456")
    second = hash_code("123456")
    assert first != second
    assert check_code("123456", first)
    assert check_code(" 123456 ", second)
    assert not check_code("654321", first)


def test_fixed_salt_is_deterministic():
    assert hash_code("123456", salt=b"s" * 16) == hash_code("123456", salt=b"s" * 16)


def test_malformed_hash_never_matches():
    assert not check_code("123456", "zz$abc")
    assert not check_code("123456", "")


async def test_provider_client_creates_order_with_basic_auth():
    seen = []

    def handler(request):
        seen.append(request)
        body = json.loads(request.content)
        return httpx.Response(200, json={"id": "order_9", **body})

    client = ProviderClient(
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        key_id="rzp_key",
        key_secret="rzp_secret",
        base_url="https://provider.test/",
    )
    created = (await client.create_order(152200, "INR", "o1", {"userId": "u1"})()).unwrap()

    assert (created.id, created.amount, created.currency, created.receipt) == ("order_9", 152200, "INR", "o1")
    request = seen[0]
    assert str(request.url) == "https://provider.test/v1/orders"
    assert request.headers["Authorization"] == "Basic " + base64.b64encode(b"rzp_key:rzp_secret").decode()
    assert json.loads(request.content)["notes"] == {"userId": "u1"}


async def test_provider_failure_becomes_checkout_error():
    client = ProviderClient(
        httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500))),
        key_id="rzp_key",
        key_secret="rzp_secret",
    )
    result = await client.create_order(100, "INR", "o1")()
    assert result.error.code == "PAYMENT_PROVIDER_ERROR"
    assert result.error.http_status == 502
    assert "500" in result.error.message

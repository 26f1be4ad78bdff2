# tests/test_storefront.py
# Coupon application, shipping estimates, catalog import and settings.
from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from storefront.domain import CheckoutErrors, PaymentMethod
from storefront.repo import CatalogRepo
from storefront.service import Storefront
from storefront.settings import Settings


async def test_apply_coupon_stores_discounted_total(storefront):
    result = await storefront.apply_coupon("SAVE10", "u1")
    body = result.unwrap().to_payload()
    assert body["discount"] == 10.0
    assert body["totalAfterDiscount"] == 900.0


async def test_apply_coupon_errors(storefront):
    assert (await storefront.apply_coupon("NOPE", "u1")).error.code == "INVALID_COUPON"
    assert (await storefront.apply_coupon("OLD20", "u1")).error.code == "INVALID_COUPON"
    assert (await storefront.apply_coupon("SAVE10", "ghost")).error.code == "USER_NOT_FOUND"
    assert (await storefront.apply_coupon("SAVE10", "u2")).error.code == "EMPTY_CART"


async def test_coupon_codes_are_trimmed_but_case_sensitive(storefront):
    assert (await storefront.apply_coupon(" SAVE10 ", "u1")).unwrap()
    assert (await storefront.apply_coupon("save10", "u1")).error.code == "INVALID_COUPON"


async def test_estimate_shipping(storefront, rates):
    body = (await storefront.estimate_shipping("560001", 1200, PaymentMethod.COD)).unwrap().to_payload()
    assert body["shippingCost"] == 45.0
    assert body["source"] == "carrier"
    assert body["weightGrams"] == 1200
    assert rates.queries[0].method is PaymentMethod.COD


async def test_estimate_shipping_validates_input(storefront):
    assert (await storefront.estimate_shipping("abc", 500, PaymentMethod.COD)).error.code == "INVALID_REQUEST"
    assert (await storefront.estimate_shipping("560001", 0, PaymentMethod.COD)).error.code == "INVALID_REQUEST"


async def test_estimate_falls_back_and_quotes_can_be_dropped(storefront, rates):
    await storefront.estimate_shipping("560001", 1200, PaymentMethod.PREPAID)
    assert await storefront.invalidate_shipping_quotes() == 1

    rates.error = CheckoutErrors.shipping_unavailable("carrier returned 500")
    body = (await storefront.estimate_shipping("560001", 1200, PaymentMethod.PREPAID)).unwrap().to_payload()
    assert (body["shippingCost"], body["source"]) == (50.0, "fallback")


async def test_estimate_without_fallback_reports_carrier_error(sessions, rates, provider, email, clock):
    strict = Storefront(
        sessions,
        Settings(shipping_fallback_enabled=False),
        rates=rates,
        provider=provider,
        email=email,
        now=clock,
        clock=clock.monotonic,
    )
    rates.error = CheckoutErrors.shipping_unavailable("carrier returned 500")
    result = await strict.estimate_shipping("560001", 1200, PaymentMethod.PREPAID)
    assert result.error.code == "SHIPPING_UNAVAILABLE"
    assert result.error.http_status == 502


async def test_import_products_of_both_shapes(storefront, sessions):
    documents = [
        {
            "_id": "K1",
            "name": "Kurta",
            "subProducts": [{"sku": "K1-RED", "price": 1299, "sizes": [{"size": "S", "qty": 4}]}],
            "shippingDimensions": {"length": 30, "breadth": 20, "height": 5, "weight": 0.4},
        },
        {"id": "M1", "name": "Mug", "price": 349, "qty": 12},
    ]
    assert (await storefront.import_products(documents)).unwrap().to_payload()["count"] == 2

    async with sessions() as session:
        catalog = await CatalogRepo(session).snapshot(["K1", "M1"])
    assert catalog["K1"].find_size(0, "s").qty == 4
    assert catalog["K1"].dimensions.weight_grams == 400
    assert catalog["M1"].variants[0].sizes[0].qty == 12


async def test_import_rejects_documents_without_id(storefront):
    result = await storefront.import_products([{"name": "Nameless"}])
    assert result.error.code == "INVALID_REQUEST"


async def test_import_replaces_existing_stock(storefront, stock_of):
    await storefront.import_products([{"id": "P1", "name": "Linen Shirt", "price": 500, "sizes": [{"size": "M", "qty": 9}]}])
    assert await stock_of() == 9
    assert await stock_of(size="L") is None


def test_settings_from_env():
    settings = Settings.from_env(
        {
            "STOREFRONT_BUSINESS_STATE": "Karnataka",
            "STOREFRONT_GST_RATE": "0.12",
            "STOREFRONT_COD_CODE_TTL": "PT10M",
            "STOREFRONT_SHIPPING_FALLBACK_ENABLED": "false",
            "STOREFRONT_SHIPPING_FALLBACK_COD": "9000",
            "UNRELATED": "ignored",
        }
    )
    assert settings.business_state == "Karnataka"
    assert settings.gst_rate == Decimal("0.12")
    assert settings.cod_code_ttl == timedelta(minutes=10)
    assert settings.shipping_fallback_enabled is False
    assert settings.shipping_fallback_cod == 9000
    assert settings.currency == "INR"


def test_settings_reject_negative_fallback():
    with pytest.raises(ValidationError):
        Settings(shipping_fallback_prepaid=-1)


async def test_open_builds_database_from_settings(tmp_path):
    settings = Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}", http_timeout=3.5)
    async with Storefront.open(settings) as storefront:
        imported = await storefront.import_products([{"id": "M1", "name": "Mug", "price": 349, "qty": 12}])
        assert imported.unwrap().to_payload()["count"] == 1
        assert (await storefront.verify_cod("missing", "123456")).error.code == "ORDER_NOT_FOUND"
    assert (tmp_path / "shop.db").exists()

    async with Storefront.open(settings) as reopened:
        again = await reopened.import_products([{"id": "M1", "name": "Mug", "price": 349, "qty": 3}])
        assert again.unwrap()

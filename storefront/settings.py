"""
Settings — deployment configuration.

All money values are integer paise. Durations are timedeltas.

    settings = Settings.from_env(os.environ)
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


ENV_PREFIX = "STOREFRONT_"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Tax
    business_state: str = "Maharashtra"
    gst_rate: Decimal = Decimal("0.18")
    currency: str = "INR"

    # COD verification
    cod_code_ttl: timedelta = timedelta(minutes=15)
    pending_cod_retention: timedelta = timedelta(hours=24)

    # Shipping
    shipping_fallback_enabled: bool = True
    shipping_fallback_prepaid: int = Field(default=5000, ge=0)
    shipping_fallback_cod: int = Field(default=7000, ge=0)
    warehouse_pincode: str = "700001"
    carrier_base_url: str = "https://track.delhivery.com"
    carrier_token: str = ""
    shipping_quote_ttl: timedelta = timedelta(minutes=10)

    # Coupons
    coupon_cache_ttl: timedelta = timedelta(minutes=5)

    # Payment provider
    payment_base_url: str = "https://api.razorpay.com"
    payment_key_id: str = ""
    payment_key_secret: str = ""
    payment_webhook_secret: str = ""

    # Mail
    mail_api_url: str = ""
    mail_api_key: str = ""
    mail_sender: str = "orders@localhost"
    app_url: str = "http://localhost:3000"

    database_url: str = "sqlite+aiosqlite:///storefront.db"
    http_timeout: float = 10.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str], prefix: str = ENV_PREFIX) -> Settings:
        """
        Build settings from STOREFRONT_* variables.

        Unset variables keep their defaults; pydantic coerces the strings.
        Durations accept seconds or ISO 8601 (``PT15M``).
        """
        values: dict[str, str] = {}
        for name in cls.model_fields:
            raw = environ.get(f"{prefix}{name.upper()}")
            if raw is not None:
                values[name] = raw
        return cls.model_validate(values)


__all__ = ("Settings", "ENV_PREFIX")

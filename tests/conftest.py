# tests/conftest.py
# Shared fixtures: a file-backed SQLite store seeded with one customer, one
# product and a coupon, plus recording fakes for the outside collaborators.
import dataclasses
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from kungfu import Error, LazyCoroResult, Ok, Result
from sqlalchemy import func, select

from storefront.db import OrderTable, PendingCodOrderTable, create_database
from storefront.domain import (
    Address,
    CartLine,
    CheckoutError,
    CheckoutErrors,
    CheckoutRequest,
    Coupon,
    Order,
    PaymentMethod,
    PendingCodOrder,
    Product,
    SizeStock,
    User,
    Variant,
)
from storefront.payments import ProviderOrder
from storefront.repo import CartRepo, CatalogRepo, CouponRepo, UserRepo
from storefront.service import Storefront
from storefront.settings import Settings
from storefront.shipping import QuoteQuery


SHIRT = Product(
    id="P1",
    name="Linen Shirt",
    category="shirts",
    price=50000,
    original_price=80000,
    discount_percent=None,
    variants=(
        Variant(sku="P1-0", sizes=(SizeStock("M", 5), SizeStock("L", 1))),
    ),
)

ADDRESS = Address(
    first_name="Asha",
    last_name="Rao",
    phone_number="9800000000",
    address1="12 MG Road",
    address2="",
    city="Pune",
    state="Maharashtra",
    zip_code="411001",
    country="India",
)


class Clock:
    """Wall clock and monotonic clock that only move when told to."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.current.timestamp()

    def advance(self, delta: timedelta) -> None:
        self.current += delta


class FakeRates:
    def __init__(self, amount: int = 4500) -> None:
        self.amount = amount
        self.error: CheckoutError | None = None
        self.queries: list[QuoteQuery] = []

    def estimate(self, query: QuoteQuery) -> LazyCoroResult[int, CheckoutError]:
        async def fetch() -> Result[int, CheckoutError]:
            self.queries.append(query)
            if self.error is not None:
                return Error(self.error)
            return Ok(self.amount)

        return LazyCoroResult(fetch)


class FakeProvider:
    key_id = "rzp_test_key"

    def __init__(self) -> None:
        self.fail = False
        self.orders: list[ProviderOrder] = []

    def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> LazyCoroResult[ProviderOrder, CheckoutError]:
        async def create() -> Result[ProviderOrder, CheckoutError]:
            if self.fail:
                return Error(CheckoutErrors.payment_provider("provider returned 503"))
            order = ProviderOrder(f"order_{len(self.orders) + 1}", amount, currency, receipt)
            self.orders.append(order)
            return Ok(order)

        return LazyCoroResult(create)


@dataclass
class FakeEmail:
    fail: bool = False
    codes: dict[str, str] = field(default_factory=dict)
    confirmations: list[str] = field(default_factory=list)

    async def send_cod_verification(self, user: User, pending: PendingCodOrder, code: str) -> None:
        if self.fail:
            raise ConnectionError("mail api down")
        self.codes[pending.id] = code

    async def send_order_confirmation(self, user: User, order: Order) -> None:
        if self.fail:
            raise ConnectionError("mail api down")
        self.confirmations.append(order.id)


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2026, 3, 1, 10, 0, tzinfo=UTC))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        payment_key_id=FakeProvider.key_id,
        payment_key_secret="key-secret",
        payment_webhook_secret="hook-secret",
    )


@pytest.fixture
def rates() -> FakeRates:
    return FakeRates()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def email() -> FakeEmail:
    return FakeEmail()


@pytest.fixture
async def sessions(tmp_path):
    session_factory, engine = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    async with session_factory() as session, session.begin():
        await UserRepo(session).add(User("u1", "Asha Rao", "asha@example.com"))
        await UserRepo(session).add(User("u2", "Ravi Iyer", "ravi@example.com"))
        await CatalogRepo(session).upsert(SHIRT)
        await CartRepo(session).save("u1", [{"product": "P1", "size": "M", "qty": 2}], 100000)
        await CouponRepo(session).add(Coupon("SAVE10", Decimal("10")))
        await CouponRepo(session).add(
            Coupon(
                "OLD20",
                Decimal("20"),
                starts_at=datetime(2025, 1, 1, tzinfo=UTC),
                ends_at=datetime(2025, 2, 1, tzinfo=UTC),
            )
        )
    yield session_factory
    await engine.dispose()


@pytest.fixture
def storefront(sessions, settings, rates, provider, email, clock) -> Storefront:
    return Storefront(
        sessions,
        settings,
        rates=rates,
        provider=provider,
        email=email,
        now=clock,
        clock=clock.monotonic,
    )


@pytest.fixture
def make_request() -> Callable[..., CheckoutRequest]:
    def build(
        method: PaymentMethod = PaymentMethod.PREPAID,
        *,
        quantity: int = 2,
        size: str | None = "M",
        user_id: str = "u1",
        state: str = "Maharashtra",
        shipping_price: int | None = None,
        coupon_code: str | None = None,
        lines: tuple[CartLine, ...] | None = None,
    ) -> CheckoutRequest:
        items = lines if lines is not None else (
            CartLine(
                product_id="P1",
                name="Linen Shirt",
                unit_price=50000,
                quantity=quantity,
                size=size,
            ),
        )
        return CheckoutRequest(
            user_id=user_id,
            items=items,
            shipping_address=dataclasses.replace(ADDRESS, state=state),
            payment_method=method,
            shipping_price=shipping_price,
            coupon_code=coupon_code,
        )

    return build


@pytest.fixture
def stock_of(sessions):
    async def read(product_id: str = "P1", size: str = "M", variant: int = 0) -> int | None:
        async with sessions() as session:
            return await CatalogRepo(session).available(product_id, variant, size)

    return read


@pytest.fixture
def count_orders(sessions):
    async def count() -> tuple[int, int]:
        """(orders, pending COD orders)"""
        async with sessions() as session:
            orders = (await session.execute(select(func.count()).select_from(OrderTable))).scalar_one()
            pending = (
                await session.execute(select(func.count()).select_from(PendingCodOrderTable))
            ).scalar_one()
        return orders, pending

    return count

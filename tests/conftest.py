"""
Shared fixtures: an in-memory sqlite database per test, the in-memory Stripe
fake and a VAT calculator stub that counts how often it is consulted.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from billable.core.cache import TTLMemoryCache
from billable.engine.strategies.base import ProrationConfig
from billable.main import init_db
from billable.payments.fake_provider import FakeStripeProvider
from billable.persistence.repo import AccountRepo, SubscriptionRepo
from billable.vat.calculator import VatCheckUnavailableError, ViesVatCalculator


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingVatCalculator:
    """Real rate table, scripted VIES answers, call counters."""

    def __init__(self, business_country_code, valid_numbers=(), unavailable=False):
        self.business_country_code = business_country_code
        self.valid_numbers = set(valid_numbers)
        self.unavailable = unavailable
        self.validations = 0
        self.rate_lookups = 0
        self._rates = ViesVatCalculator(business_country_code, vies_url="http://vies.invalid")

    async def is_valid_vat_number(self, vat_id):
        self.validations += 1
        if self.unavailable:
            raise VatCheckUnavailableError("VIES unavailable: MS_UNAVAILABLE")
        return vat_id in self.valid_numbers

    def tax_rate_for_location(self, country_code, postal_code, is_company):
        self.rate_lookups += 1
        return self._rates.tax_rate_for_location(country_code, postal_code, is_company)


class VatFactoryRecorder:
    """vat_factory that hands out calculators and remembers them."""

    def __init__(self, **options):
        self.options = options
        self.created = []

    def __call__(self, home_country):
        calc = CountingVatCalculator(home_country, **self.options)
        self.created.append(calc)
        return calc

    @property
    def validations(self):
        return sum(c.validations for c in self.created)

    @property
    def rate_lookups(self):
        return sum(c.rate_lookups for c in self.created)


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    Session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with Session() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def stripe():
    return FakeStripeProvider()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLMemoryCache(maxsize=100, timer=clock)


@pytest.fixture
def vat_factory():
    return VatFactoryRecorder()


@pytest.fixture
def no_prorate():
    return ProrationConfig(behavior=None, prorates_by_default=False)


@pytest_asyncio.fixture
async def account(db):
    row = await AccountRepo(db).create(
        email="owner@example.com",
        stripe_id="cus_test_1",
        billing_country="DE",
        billing_zip="10115",
    )
    await db.commit()
    return row


@pytest.fixture
def make_subscription(db, stripe):
    """Create a local subscription and its twin in the fake provider."""
    counter = {"n": 0}

    async def _make(account, *, quantity=1, name="default", plan="price_basic", grace=False, ends_at=None):
        counter["n"] += 1
        stripe_id = f"sub_test_{counter['n']}"
        if grace:
            ends_at = datetime.now(tz=timezone.utc) + timedelta(days=10)
        stripe.add_subscription(stripe_id, quantity=quantity, plan=plan)
        sub = await SubscriptionRepo(db).create(
            account_id=account.id,
            name=name,
            stripe_id=stripe_id,
            stripe_status="active",
            provider_plan=plan,
            quantity=quantity,
            ends_at=ends_at,
        )
        await db.commit()
        return sub

    return _make


def pct(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.0001"))

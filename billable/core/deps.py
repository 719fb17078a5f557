# billable/core/deps.py
from functools import lru_cache
from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from billable.core.cache import TTLMemoryCache
from billable.core.settings import settings
from billable.engine.engine import BillableEngine
from billable.engine.plans import PlanCatalog
from billable.engine.strategies.base import ProrationConfig
from billable.payments.stripe_provider import StripePaymentProvider
from billable.payments.fake_provider import FakeStripeProvider
from billable.vat.calculator import ViesVatCalculator

engine = create_async_engine(settings.DATABASE_URL, echo=settings.DB_ECHO, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session

@lru_cache(maxsize=1)
def _payments_singleton():
    if settings.PAYMENTS_BACKEND == "fake" or not settings.STRIPE_SECRET_KEY:
        return FakeStripeProvider()
    return StripePaymentProvider(api_key=settings.STRIPE_SECRET_KEY)

def get_stripe_provider():
    return _payments_singleton()

@lru_cache(maxsize=1)
def get_tax_cache() -> TTLMemoryCache:
    return TTLMemoryCache(maxsize=settings.TAX_CACHE_MAXSIZE)

@lru_cache(maxsize=1)
def get_plan_catalog() -> PlanCatalog:
    if not settings.PLANS_FILE:
        return PlanCatalog()
    return PlanCatalog.from_file(settings.PLANS_FILE)

def vies_calculator_for(home_country: str) -> ViesVatCalculator:
    return ViesVatCalculator(
        home_country,
        vies_url=settings.VIES_URL,
        timeout=settings.VIES_TIMEOUT_SECONDS,
    )

def get_engine(db: AsyncSession) -> BillableEngine:
    return BillableEngine(
        db,
        get_stripe_provider(),
        catalog=get_plan_catalog(),
        proration=ProrationConfig.from_settings(settings),
        cache=get_tax_cache(),
        vat_factory=vies_calculator_for,
        collects_vat=settings.COLLECTS_EUROPEAN_VAT,
        home_country=settings.HOME_COUNTRY,
        tax_ttl_seconds=settings.TAX_CACHE_TTL_SECONDS,
    )

from __future__ import annotations
from decimal import Decimal
from typing import Optional, List, Dict, Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from billable.core.cache import Cache
from billable.core.logger import account_context
from billable.engine.plans import PlanCatalog
from billable.engine.seats import SeatReconciler
from billable.engine.strategies.base import ProrationConfig
from billable.engine.tax import TAX_CACHE_TTL_SECONDS, TaxRateResolver, VatFactory
from billable.payments.types import PaymentProvider
from billable.persistence.models import Account, LocalInvoice, Subscription
from billable.persistence.repo import InvoiceRepo, SubscriptionRepo
from billable.schemas.plans import Plan

logger = structlog.get_logger(__name__)


class BillableEngine:
    """
    Billing operations for one account-like model:

    - subscription lookup by stream name, newest first
    - the catalog plan an account is on (falling back to the free plan)
    - seat changes (SeatReconciler) and VAT tax rates (TaxRateResolver)
    - local invoice listing and refreshing a subscription from the provider

    All collaborators are handed in; nothing is read from global settings here.
    """

    def __init__(
        self,
        db: AsyncSession,
        stripe: PaymentProvider,
        *,
        catalog: PlanCatalog,
        proration: ProrationConfig,
        cache: Cache,
        vat_factory: VatFactory,
        collects_vat: bool = False,
        home_country: str = "",
        tax_ttl_seconds: int = TAX_CACHE_TTL_SECONDS,
    ):
        self.db = db
        self.stripe = stripe
        self.catalog = catalog
        self.seats = SeatReconciler(db, stripe, proration)
        self.tax = TaxRateResolver(
            db,
            stripe,
            cache,
            vat_factory,
            collects_vat=collects_vat,
            home_country=home_country,
            ttl_seconds=tax_ttl_seconds,
        )

    # ---------------- account / subscriptions ----------------

    @staticmethod
    def has_billing_provider(account: Account) -> bool:
        return account.has_billing_provider()

    async def subscriptions(self, account: Account) -> List[Subscription]:
        return await SubscriptionRepo(self.db).list_for_account(account.id)

    async def subscription(self, account: Account, name: str = "default") -> Optional[Subscription]:
        return await SubscriptionRepo(self.db).find_for_account(account.id, name)

    async def has_ever_subscribed_to(
        self, account: Account, name: str = "default", plan: Optional[str] = None
    ) -> bool:
        sub = await self.subscription(account, name)
        if sub is None:
            return False
        return sub.provider_plan == plan if plan else True

    # ---------------- plans ----------------

    def available_plans(self, account: Account) -> List[Plan]:
        return self.catalog.available_plans(account)

    async def plan_for(self, account: Account, name: str = "default") -> Optional[Plan]:
        """
        The plan behind a valid subscription; otherwise the free plan if the
        catalog has one.
        """
        sub = await self.subscription(account, name)
        if sub is not None and sub.valid():
            return self.catalog.find(sub.provider_plan)
        return self.catalog.free_plan(account)

    # ---------------- seats ----------------

    async def add_seat(self, account: Account, count: int = 1, subscription: str = "default") -> Optional[Subscription]:
        with account_context(account.id):
            return await self.seats.add_seats(account, count, subscription)

    async def remove_seat(self, account: Account, count: int = 1, subscription: str = "default") -> Optional[Subscription]:
        with account_context(account.id):
            return await self.seats.remove_seats(account, count, subscription)

    async def update_seats(self, account: Account, count: int, subscription: str = "default") -> Optional[Subscription]:
        with account_context(account.id):
            return await self.seats.update_seats(account, count, subscription)

    async def sync_subscription(self, subscription: Subscription) -> Subscription:
        """Copy quantity, status and plan from the provider onto the local row."""
        remote: Dict[str, Any] = self.stripe.retrieve_subscription(subscription.stripe_id)
        subscription = await SubscriptionRepo(self.db).update_from_stripe(
            subscription,
            status=remote.get("status"),
            quantity=remote.get("quantity"),
            provider_plan=remote.get("plan"),
        )
        await self.db.commit()
        logger.info(
            "subscription_synced",
            subscription_id=subscription.stripe_id,
            quantity=subscription.quantity,
            status=subscription.stripe_status,
        )
        return subscription

    # ---------------- tax ----------------

    async def tax_percentage(self, account: Account) -> Decimal:
        with account_context(account.id):
            return await self.tax.tax_percentage(account)

    async def tax_rates(self, account: Account) -> Optional[List[str]]:
        with account_context(account.id):
            return await self.tax.tax_rates(account)

    # ---------------- invoices ----------------

    async def local_invoices(self, account: Account) -> List[LocalInvoice]:
        return await InvoiceRepo(self.db).list_for_account(account.id)

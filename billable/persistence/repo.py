from __future__ import annotations
from typing import Optional, List
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from billable.persistence.models import (
    Account,
    LocalInvoice,
    Subscription,
    TaxRate,
)

# -------------------- Accounts --------------------

class AccountRepo:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, **kwargs) -> Account:
        row = Account(**kwargs)
        self.db.add(row)
        await self.db.flush()
        await self.db.refresh(row)
        return row


# -------------------- Subscriptions --------------------

class SubscriptionRepo:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, **kwargs) -> Subscription:
        row = Subscription(**kwargs)
        self.db.add(row)
        await self.db.flush()
        await self.db.refresh(row)
        return row

    async def list_for_account(self, account_id: UUID) -> List[Subscription]:
        res = await self.db.execute(
            select(Subscription)
            .where(Subscription.account_id == account_id)
            .order_by(Subscription.created_at.desc())
        )
        return list(res.scalars().all())

    async def find_for_account(
        self, account_id: UUID, name: str = "default", *, for_update: bool = False
    ) -> Optional[Subscription]:
        """
        Newest subscription in the named stream. With for_update the row is
        locked until the surrounding transaction ends (no-op on sqlite).
        """
        stmt = (
            select(Subscription)
            .where(
                Subscription.account_id == account_id,
                Subscription.name == name,
            )
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update()
        res = await self.db.execute(stmt)
        return res.scalar_one_or_none()

    async def set_quantity(self, sub: Subscription, quantity: int) -> Subscription:
        sub.quantity = quantity
        await self.db.flush()
        await self.db.refresh(sub)
        return sub

    async def update_from_stripe(
        self,
        sub: Subscription,
        *,
        status: Optional[str] = None,
        quantity: Optional[int] = None,
        provider_plan: Optional[str] = None,
    ) -> Subscription:
        if status is not None:
            sub.stripe_status = status
        if quantity is not None:
            sub.quantity = quantity
        if provider_plan is not None:
            sub.provider_plan = provider_plan
        await self.db.flush()
        await self.db.refresh(sub)
        return sub


# -------------------- Tax Rates --------------------

class TaxRateRepo:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_percentage(self, percentage: Decimal) -> Optional[TaxRate]:
        res = await self.db.execute(
            select(TaxRate).where(TaxRate.percentage == percentage).limit(1)
        )
        return res.scalar_one_or_none()

    async def create(self, *, percentage: Decimal, stripe_id: str) -> TaxRate:
        """
        Insert a tax rate row. Raises sqlalchemy IntegrityError when another
        writer already recorded this percentage.
        """
        row = TaxRate(percentage=percentage, stripe_id=stripe_id)
        self.db.add(row)
        await self.db.flush()
        await self.db.refresh(row)
        return row

    async def count(self) -> int:
        res = await self.db.execute(select(func.count()).select_from(TaxRate))
        return int(res.scalar_one())


# -------------------- Local Invoices --------------------

class InvoiceRepo:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, **kwargs) -> LocalInvoice:
        row = LocalInvoice(**kwargs)
        self.db.add(row)
        await self.db.flush()
        await self.db.refresh(row)
        return row

    async def list_for_account(self, account_id: UUID, limit: int = 50, offset: int = 0) -> List[LocalInvoice]:
        res = await self.db.execute(
            select(LocalInvoice)
            .where(LocalInvoice.account_id == account_id)
            .order_by(LocalInvoice.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(res.scalars().all())

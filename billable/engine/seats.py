from __future__ import annotations
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from billable.engine.errors import EngineError
from billable.engine.locks import KeyedLocks
from billable.engine.strategies.base import ProrationConfig
from billable.engine.strategies.registry import build_proration
from billable.payments.types import PaymentProvider
from billable.persistence.models import Account, Subscription
from billable.persistence.repo import SubscriptionRepo

logger = structlog.get_logger(__name__)

_subscription_locks = KeyedLocks()


class SeatReconciler:
    """
    Moves a subscription's seat count.

    A subscription on its grace period is already ending, so its quantity is
    only adjusted locally. Everything else goes to the provider through the
    proration strategy picked from `proration` once, at construction, and the
    quantity the provider reports back is copied onto the local row.
    """

    def __init__(
        self,
        db: AsyncSession,
        stripe: PaymentProvider,
        proration: ProrationConfig,
        locks: Optional[KeyedLocks] = None,
    ):
        self.db = db
        self.stripe = stripe
        self.proration = proration
        self.strategy = build_proration(proration)
        self.locks = locks or _subscription_locks
        self.subs = SubscriptionRepo(db)

    @staticmethod
    def _check_count(count: int) -> None:
        if count < 0:
            raise EngineError("seat count must be >= 0")

    async def _find(self, account: Account, name: str) -> Optional[Subscription]:
        sub = await self.subs.find_for_account(account.id, name, for_update=True)
        if sub is None:
            logger.info("seats_no_subscription", account_id=str(account.id), subscription=name)
        return sub

    async def _set_local(self, sub: Subscription, quantity: int) -> None:
        previous = sub.quantity
        await self.subs.set_quantity(sub, quantity)
        logger.info(
            "seats_updated_on_grace_period",
            subscription_id=str(sub.id),
            previous=previous,
            quantity=quantity,
        )

    async def _mirror(self, sub: Subscription, remote: Dict[str, Any]) -> None:
        # copy the provider's answer; no arithmetic on the local row
        await self.subs.update_from_stripe(sub, status=remote.get("status"), quantity=remote.get("quantity"))

    async def _add_remote(self, sub: Subscription, count: int) -> None:
        logger.info("seats_increment", subscription_id=sub.stripe_id, count=count, strategy=self.strategy.key)
        await self._mirror(sub, self.strategy.add(self.stripe, sub.stripe_id, count))

    async def _remove_remote(self, sub: Subscription, count: int) -> None:
        logger.info("seats_decrement", subscription_id=sub.stripe_id, count=count, strategy=self.strategy.key)
        await self._mirror(sub, self.strategy.remove(self.stripe, sub.stripe_id, count))

    @asynccontextmanager
    async def _locked(self, account: Account, name: str) -> AsyncIterator[Optional[Subscription]]:
        """
        Hold the keyed lock and the row lock for one reconciliation. The
        transaction is committed on success and rolled back otherwise, so the
        row lock never outlives the call.
        """
        async with self.locks.hold((account.id, name)):
            try:
                yield await self._find(account, name)
            except BaseException:
                await self.db.rollback()
                raise
            await self.db.commit()

    # ---------------- public operations ----------------

    async def add_seats(self, account: Account, count: int = 1, subscription: str = "default") -> Optional[Subscription]:
        self._check_count(count)
        async with self._locked(account, subscription) as sub:
            if sub is None:
                return None

            if sub.on_grace_period():
                await self._set_local(sub, sub.quantity + count)
            else:
                await self._add_remote(sub, count)
            return sub

    async def remove_seats(self, account: Account, count: int = 1, subscription: str = "default") -> Optional[Subscription]:
        self._check_count(count)
        async with self._locked(account, subscription) as sub:
            if sub is None:
                return None

            if sub.on_grace_period():
                # never below one seat while the subscription runs out
                await self._set_local(sub, max(1, sub.quantity - count))
            else:
                await self._remove_remote(sub, count)
            return sub

    async def update_seats(self, account: Account, count: int, subscription: str = "default") -> Optional[Subscription]:
        self._check_count(count)
        async with self._locked(account, subscription) as sub:
            if sub is None:
                return None

            if sub.on_grace_period():
                await self._set_local(sub, count)
            elif count > sub.quantity:
                await self._add_remote(sub, count - sub.quantity)
            elif count < sub.quantity:
                await self._remove_remote(sub, sub.quantity - count)
            return sub

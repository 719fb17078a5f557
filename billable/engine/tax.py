from __future__ import annotations
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from billable.core.cache import Cache
from billable.engine.locks import KeyedLocks
from billable.payments.types import PaymentProvider
from billable.persistence.models import Account
from billable.persistence.repo import TaxRateRepo
from billable.vat.calculator import VatCalculator, VatCheckUnavailableError

logger = structlog.get_logger(__name__)

# scoped to the seller's home country
VatFactory = Callable[[str], VatCalculator]

TAX_CACHE_TTL_SECONDS = 604800  # 7 days
_PERCENT_SCALE = Decimal("0.0001")

_tax_rate_locks = KeyedLocks()


def tax_cache_key(account: Account, home_country: str) -> Tuple[str, str, str, str, str]:
    # tagged for a shared cache; country is case-insensitive
    return (
        "tax_percentage",
        account.vat_id or "",
        (account.billing_country or "").upper(),
        home_country,
        account.billing_zip or "",
    )


class TaxRateResolver:
    """
    Works out the VAT percentage for an account and the provider tax-rate ids
    to attach to its subscription.

    Percentages are memoized per (vat id, country, home country, zip) for the
    cache TTL. Provider tax-rate objects are created once per percentage; the
    tax_rates table is the record of which ones exist.
    """

    def __init__(
        self,
        db: AsyncSession,
        stripe: PaymentProvider,
        cache: Cache,
        vat_factory: VatFactory,
        *,
        collects_vat: bool,
        home_country: str,
        ttl_seconds: int = TAX_CACHE_TTL_SECONDS,
        locks: Optional[KeyedLocks] = None,
    ):
        self.db = db
        self.stripe = stripe
        self.cache = cache
        self.vat_factory = vat_factory
        self.collects_vat = collects_vat
        self.home_country = (home_country or "").upper()
        self.ttl_seconds = ttl_seconds
        self.locks = locks or _tax_rate_locks
        self.rates = TaxRateRepo(db)

    async def _compute_percentage(self, account: Account) -> Decimal:
        vat = self.vat_factory(self.home_country)

        try:
            is_valid_vat = bool(account.vat_id) and await vat.is_valid_vat_number(account.vat_id)
        except VatCheckUnavailableError as e:
            logger.warning("vat_check_unavailable", account_id=str(account.id), error=str(e))
            is_valid_vat = False

        rate = vat.tax_rate_for_location(account.billing_country, account.billing_zip, is_valid_vat)
        percentage = (Decimal(rate) * 100).quantize(_PERCENT_SCALE)
        logger.info(
            "tax_percentage_computed",
            account_id=str(account.id),
            country=account.billing_country,
            valid_vat=is_valid_vat,
            percentage=str(percentage),
        )
        return percentage

    async def tax_percentage(self, account: Account) -> Decimal:
        if not self.collects_vat:
            return Decimal("0")

        key = tax_cache_key(account, self.home_country)
        return await self.cache.get_or_compute(
            key, self.ttl_seconds, lambda: self._compute_percentage(account)
        )

    async def tax_rates(self, account: Account) -> Optional[List[str]]:
        rate = await self.tax_percentage(account)
        if not rate:
            return None

        existing = await self.rates.find_by_percentage(rate)
        if existing:
            return [existing.stripe_id]

        async with self.locks.hold(("tax_rate", rate)):
            # another task may have created it while we waited
            existing = await self.rates.find_by_percentage(rate)
            if existing:
                return [existing.stripe_id]

            stripe_id = self.stripe.create_tax_rate(display_name="VAT", inclusive=False, percentage=rate)
            try:
                await self.rates.create(percentage=rate, stripe_id=stripe_id)
                await self.db.commit()
            except IntegrityError:
                # another process won the insert; use its row
                await self.db.rollback()
                winner = await self.rates.find_by_percentage(rate)
                if winner is None:
                    raise
                logger.warning(
                    "tax_rate_insert_conflict",
                    percentage=str(rate),
                    kept=winner.stripe_id,
                    orphaned=stripe_id,
                )
                return [winner.stripe_id]

        logger.info("tax_rate_recorded", percentage=str(rate), stripe_id=stripe_id)
        return [stripe_id]

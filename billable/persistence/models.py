from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Index,
    String,
    TIMESTAMP,
    Integer,
    ForeignKey,
    Numeric,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declared_attr
from .base import Base


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    # sqlite hands back naive timestamps; they are stored as UTC
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


# -------------------------
# Billable mixin
# -------------------------
class BillableMixin:
    """
    Billing columns for any account-like model.

    The tax resolver reads vat_id / billing_country / billing_zip; the
    provider customer id lives in stripe_id.
    """

    @declared_attr
    def stripe_id(cls):
        return Column(String, nullable=True, index=True)

    @declared_attr
    def vat_id(cls):
        return Column(String(50), nullable=True)

    @declared_attr
    def billing_address(cls):
        return Column(String, nullable=True)

    @declared_attr
    def billing_city(cls):
        return Column(String, nullable=True)

    @declared_attr
    def billing_zip(cls):
        return Column(String(25), nullable=True)

    @declared_attr
    def billing_country(cls):
        return Column(String(2), nullable=True)

    def has_billing_provider(self) -> bool:
        return bool(self.stripe_id)


# -------------------------
# Accounts
# -------------------------
class Account(BillableMixin, Base):
    __tablename__ = "accounts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, nullable=True, index=True)
    created_at = Column(TIMESTAMP(timezone=True), default=_utcnow, nullable=False)


# -------------------------
# Subscriptions
# -------------------------
class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True)

    # subscription stream, "default" unless the app bills several products
    name = Column(String, nullable=False, default="default")
    stripe_id = Column(String, nullable=True, unique=True)
    stripe_status = Column(String, nullable=False, default="active")
    provider_plan = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)

    trial_ends_at = Column(TIMESTAMP(timezone=True), nullable=True)
    ends_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_subs_account_name", "account_id", "name"),
    )

    def on_trial(self, now: Optional[datetime] = None) -> bool:
        trial_ends_at = _aware(self.trial_ends_at)
        return trial_ends_at is not None and trial_ends_at > (now or _utcnow())

    def on_grace_period(self, now: Optional[datetime] = None) -> bool:
        """Canceled, but still usable until ends_at."""
        ends_at = _aware(self.ends_at)
        return ends_at is not None and ends_at > (now or _utcnow())

    def active(self, now: Optional[datetime] = None) -> bool:
        if self.stripe_status in ("incomplete", "incomplete_expired", "unpaid"):
            return False
        return self.ends_at is None or self.on_grace_period(now)

    def valid(self, now: Optional[datetime] = None) -> bool:
        return self.active(now) or self.on_trial(now) or self.on_grace_period(now)


# -------------------------
# Tax Rates (one row per percentage ever charged)
# -------------------------
class TaxRate(Base):
    __tablename__ = "tax_rates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    stripe_id = Column(String, nullable=False)
    percentage = Column(Numeric(7, 4), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("percentage", name="uq_tax_rates_percentage"),
    )


# -------------------------
# Local Invoices (mirrored receipts)
# -------------------------
class LocalInvoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True)

    provider_id = Column(String, nullable=False, unique=True)
    total = Column(Numeric(12, 2), nullable=True)
    tax = Column(Numeric(12, 2), nullable=True)
    card_country = Column(String(2), nullable=True)
    billing_state = Column(String, nullable=True)
    billing_zip = Column(String(25), nullable=True)
    billing_country = Column(String(2), nullable=True)
    vat_id = Column(String(50), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), default=_utcnow, nullable=False)

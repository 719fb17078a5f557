from __future__ import annotations
from typing import Dict, Any
from billable.engine.strategies.base import ProrationStrategy, ProrationBehavior
from billable.payments.types import PaymentProvider


class ExplicitBehaviorProration(ProrationStrategy):
    key = "explicit"

    def __init__(self, behavior: ProrationBehavior):
        self.behavior = behavior

    def add(self, provider: PaymentProvider, subscription_id: str, count: int) -> Dict[str, Any]:
        return provider.increment_quantity(subscription_id, count, self.behavior)

    def remove(self, provider: PaymentProvider, subscription_id: str, count: int) -> Dict[str, Any]:
        return provider.decrement_quantity(subscription_id, count, self.behavior)


class DefaultProration(ProrationStrategy):
    """
    Increases are invoiced right away; decreases use the provider default and
    show up as a credit on the next regular invoice.
    """
    key = "prorate"

    def add(self, provider: PaymentProvider, subscription_id: str, count: int) -> Dict[str, Any]:
        return provider.increment_and_invoice(subscription_id, count)

    def remove(self, provider: PaymentProvider, subscription_id: str, count: int) -> Dict[str, Any]:
        return provider.decrement_quantity(subscription_id, count)


class NoProration(ProrationStrategy):
    key = "none"

    def add(self, provider: PaymentProvider, subscription_id: str, count: int) -> Dict[str, Any]:
        return provider.increment_quantity(subscription_id, count, "none")

    def remove(self, provider: PaymentProvider, subscription_id: str, count: int) -> Dict[str, Any]:
        return provider.decrement_quantity(subscription_id, count, "none")

from __future__ import annotations
from decimal import Decimal
from typing import Optional, Dict, Any
import stripe
import structlog

from billable.payments.types import PaymentProviderError

logger = structlog.get_logger(__name__)


class StripePaymentProvider:
    def __init__(self, api_key: str):
        self.api_key = api_key
        stripe.api_key = api_key

    # --- helpers ---
    @staticmethod
    def _shape(sub) -> Dict[str, Any]:
        items = sub["items"]["data"]
        return {
            "id": sub.id,
            "status": sub.status,
            "quantity": int(items[0]["quantity"]) if items else None,
            "plan": items[0]["price"]["id"] if items else None,
            "cancel_at_period_end": bool(getattr(sub, "cancel_at_period_end", False)),
            "current_period_end": int(sub.current_period_end) if getattr(sub, "current_period_end", None) else None,
            "customer": sub.customer,
        }

    def _update_quantity(
        self, subscription_id: str, delta: int, proration_behavior: Optional[str]
    ) -> Dict[str, Any]:
        try:
            sub = stripe.Subscription.retrieve(subscription_id)
            item = sub["items"]["data"][0]
            params: Dict[str, Any] = {
                "items": [{"id": item["id"], "quantity": int(item["quantity"]) + delta}],
            }
            if proration_behavior:
                params["proration_behavior"] = proration_behavior
            updated = stripe.Subscription.modify(subscription_id, **params)
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Stripe rejected quantity change for {subscription_id}: {e}") from e
        return self._shape(updated)

    # --- subscriptions ---
    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        try:
            sub = stripe.Subscription.retrieve(subscription_id)
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Could not retrieve subscription {subscription_id}: {e}") from e
        return self._shape(sub)

    # --- seats ---
    def increment_quantity(
        self, subscription_id: str, count: int, proration_behavior: Optional[str] = None
    ) -> Dict[str, Any]:
        return self._update_quantity(subscription_id, count, proration_behavior)

    def increment_and_invoice(self, subscription_id: str, count: int) -> Dict[str, Any]:
        # always_invoice bills the proration immediately instead of on the next cycle
        return self._update_quantity(subscription_id, count, "always_invoice")

    def decrement_quantity(
        self, subscription_id: str, count: int, proration_behavior: Optional[str] = None
    ) -> Dict[str, Any]:
        return self._update_quantity(subscription_id, -count, proration_behavior)

    # --- tax ---
    def create_tax_rate(self, *, display_name: str, inclusive: bool, percentage: Decimal) -> str:
        try:
            rate = stripe.TaxRate.create(
                display_name=display_name,
                inclusive=inclusive,
                percentage=float(percentage),
            )
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Could not create tax rate {percentage}%: {e}") from e
        logger.info("stripe_tax_rate_created", tax_rate_id=rate.id, percentage=str(percentage))
        return rate.id

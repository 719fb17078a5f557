# billable/payments/fake_provider.py
from __future__ import annotations
from decimal import Decimal
from typing import Optional, Dict, Any, List, Tuple
from datetime import datetime, timezone

from billable.payments.types import PaymentProviderError


class FakeStripeProvider:
    """
    In-memory, protocol-compliant fake for tests/local runs.
    Mirrors the signatures in billable.payments.types.PaymentProvider.

    - Subscriptions: seeded with add_subscription(); quantity changes apply immediately.
    - Invoices: increment_and_invoice appends to `invoices`.
    - Tax rates: create_tax_rate returns sequential ids and keeps the created objects.
    - Every mutating call is recorded in `calls` as (method, args) for assertions.
    """

    def __init__(self):
        # sub_id -> dict (Stripe-like shape where needed)
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        # txr_id -> {display_name, inclusive, percentage}
        self.tax_rates: Dict[str, Dict[str, Any]] = {}
        self.invoices: List[Dict[str, Any]] = []
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._tax_rate_counter: int = 0

    # ----------------------- helpers -----------------------

    @staticmethod
    def _now_ts() -> int:
        return int(datetime.now(tz=timezone.utc).timestamp())

    def add_subscription(
        self, subscription_id: str, *, quantity: int = 1, plan: str = "price_fake", status: str = "active"
    ) -> Dict[str, Any]:
        now = self._now_ts()
        sub = {
            "id": subscription_id,
            "status": status,
            "quantity": quantity,
            "plan": plan,
            "cancel_at_period_end": False,
            # naive 30-day period for fake
            "current_period_end": now + 30 * 24 * 3600,
            "customer": "cus_fake",
            "proration_behavior": None,
        }
        self.subscriptions[subscription_id] = sub
        return dict(sub)

    def _get(self, subscription_id: str) -> Dict[str, Any]:
        sub = self.subscriptions.get(subscription_id)
        if not sub:
            raise PaymentProviderError(f"No such subscription: '{subscription_id}'")
        return sub

    def _apply(self, subscription_id: str, delta: int, proration_behavior: Optional[str]) -> Dict[str, Any]:
        sub = self._get(subscription_id)
        new_quantity = sub["quantity"] + delta
        if new_quantity < 0:
            raise PaymentProviderError(f"Invalid quantity {new_quantity} for '{subscription_id}'")
        sub["quantity"] = new_quantity
        sub["proration_behavior"] = proration_behavior
        return dict(sub)

    # ------------------- subscriptions ---------------------

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return dict(self._get(subscription_id))

    # ----------------------- seats -------------------------

    def increment_quantity(
        self, subscription_id: str, count: int, proration_behavior: Optional[str] = None
    ) -> Dict[str, Any]:
        self.calls.append(("increment_quantity", {
            "subscription_id": subscription_id, "count": count, "proration_behavior": proration_behavior,
        }))
        return self._apply(subscription_id, count, proration_behavior)

    def increment_and_invoice(self, subscription_id: str, count: int) -> Dict[str, Any]:
        self.calls.append(("increment_and_invoice", {"subscription_id": subscription_id, "count": count}))
        updated = self._apply(subscription_id, count, "always_invoice")
        self.invoices.append({
            "id": f"in_test_{len(self.invoices) + 1}",
            "subscription": subscription_id,
            "created": self._now_ts(),
        })
        return updated

    def decrement_quantity(
        self, subscription_id: str, count: int, proration_behavior: Optional[str] = None
    ) -> Dict[str, Any]:
        self.calls.append(("decrement_quantity", {
            "subscription_id": subscription_id, "count": count, "proration_behavior": proration_behavior,
        }))
        return self._apply(subscription_id, -count, proration_behavior)

    # ------------------------ tax --------------------------

    def create_tax_rate(self, *, display_name: str, inclusive: bool, percentage: Decimal) -> str:
        self.calls.append(("create_tax_rate", {
            "display_name": display_name, "inclusive": inclusive, "percentage": percentage,
        }))
        self._tax_rate_counter += 1
        txr = f"txr_test_{self._tax_rate_counter}"
        self.tax_rates[txr] = {
            "display_name": display_name,
            "inclusive": inclusive,
            "percentage": percentage,
        }
        return txr

    def calls_to(self, method: str) -> List[Dict[str, Any]]:
        return [args for name, args in self.calls if name == method]

# billable/payments/types.py
from __future__ import annotations
from decimal import Decimal
from typing import Protocol, Optional, Dict, Any


class PaymentProviderError(RuntimeError):
    """A provider call failed or was rejected (unknown subscription, bad quantity, API error)."""


class PaymentProvider(Protocol):
    # --- core ---
    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]: ...

    # --- seats ---
    def increment_quantity(
        self, subscription_id: str, count: int, proration_behavior: Optional[str] = None
    ) -> Dict[str, Any]: ...

    def increment_and_invoice(self, subscription_id: str, count: int) -> Dict[str, Any]: ...

    def decrement_quantity(
        self, subscription_id: str, count: int, proration_behavior: Optional[str] = None
    ) -> Dict[str, Any]: ...

    # --- tax ---
    def create_tax_rate(self, *, display_name: str, inclusive: bool, percentage: Decimal) -> str: ...

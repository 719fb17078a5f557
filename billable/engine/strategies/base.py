from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any, Literal

from billable.payments.types import PaymentProvider

ProrationBehavior = Literal["create_prorations", "none", "always_invoice"]


# ---------- Config ----------

@dataclass(frozen=True)
class ProrationConfig:
    """
    How seat changes are billed.

    behavior: explicit Stripe proration directive; wins over the toggle when set.
    prorates_by_default: used only when behavior is None.
    """
    behavior: Optional[ProrationBehavior] = None
    prorates_by_default: bool = True

    @classmethod
    def from_settings(cls, settings) -> "ProrationConfig":
        return cls(behavior=settings.PRORATION_BEHAVIOR, prorates_by_default=settings.PRORATES)


# ---------- Proration ----------

class ProrationStrategy(ABC):
    key: str = ""

    @abstractmethod
    def add(self, provider: PaymentProvider, subscription_id: str, count: int) -> Dict[str, Any]:
        """Issue the provider call that raises quantity by `count`."""
        raise NotImplementedError

    @abstractmethod
    def remove(self, provider: PaymentProvider, subscription_id: str, count: int) -> Dict[str, Any]:
        """Issue the provider call that lowers quantity by `count`."""
        raise NotImplementedError

from __future__ import annotations
import json
from pathlib import Path
from typing import Iterable, List, Optional

import structlog

from billable.engine.errors import PlanConfigError
from billable.schemas.plans import Plan
from billable.schemas.validator import validate_plans

logger = structlog.get_logger(__name__)


class PlanCatalog:
    """Ordered, read-only list of purchasable plans shared by every account."""

    def __init__(self, plans: Iterable[Plan] = ()):
        self._plans: List[Plan] = list(plans)

    @classmethod
    def from_document(cls, doc: dict) -> "PlanCatalog":
        validate_plans(doc)
        plans = [Plan(**p) for p in doc["plans"]]
        ids = [p.id for p in plans]
        if len(ids) != len(set(ids)):
            raise PlanConfigError("Plan catalog invalid: plan ids must be unique")
        return cls(plans)

    @classmethod
    def from_file(cls, path: str | Path) -> "PlanCatalog":
        try:
            doc = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PlanConfigError(f"Could not read plan catalog {path}: {e}") from e
        catalog = cls.from_document(doc)
        logger.info("plan_catalog_loaded", path=str(path), plans=len(catalog))
        return catalog

    def available_plans(self, account=None) -> List[Plan]:
        # same catalog for every account
        return [p for p in self._plans if not p.archived]

    def find(self, plan_id: Optional[str]) -> Optional[Plan]:
        return next((p for p in self._plans if p.id == plan_id), None)

    def free_plan(self, account=None) -> Optional[Plan]:
        return next((p for p in self.available_plans(account) if p.is_free), None)

    def __len__(self) -> int:
        return len(self._plans)

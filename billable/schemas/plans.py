from __future__ import annotations

from typing import List, Literal
from pydantic import BaseModel, ConfigDict, Field


class Plan(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)          # provider price/plan id
    name: str = Field(..., min_length=1)
    price: float = Field(0, ge=0)               # 0 => free tier
    interval: Literal["monthly", "yearly"] = "monthly"
    trialDays: int = Field(0, ge=0)
    features: List[str] = Field(default_factory=list)
    archived: bool = False

    @property
    def is_free(self) -> bool:
        return self.price == 0

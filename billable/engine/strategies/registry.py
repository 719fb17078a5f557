from __future__ import annotations
from typing import Dict, Type
from billable.engine.strategies.base import ProrationConfig, ProrationStrategy
from billable.engine.strategies.proration import (
    DefaultProration,
    ExplicitBehaviorProration,
    NoProration,
)

PRORATION: Dict[str, Type[ProrationStrategy]] = {
    "explicit": ExplicitBehaviorProration,
    "prorate": DefaultProration,
    "none": NoProration,
}


def proration_key(config: ProrationConfig) -> str:
    """explicit behavior > prorate-by-default > no proration"""
    if config.behavior is not None:
        return "explicit"
    if config.prorates_by_default:
        return "prorate"
    return "none"


def build_proration(config: ProrationConfig) -> ProrationStrategy:
    key = proration_key(config)
    cls = PRORATION[key]
    if cls is ExplicitBehaviorProration:
        return cls(config.behavior)
    return cls()

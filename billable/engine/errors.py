from __future__ import annotations


class EngineError(ValueError):
    pass


class PlanConfigError(ValueError):
    """The plan catalog document is missing or does not match the schema."""

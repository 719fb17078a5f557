# billable/schemas/validator.py
from __future__ import annotations
import json
from pathlib import Path
from jsonschema import Draft202012Validator

from billable.engine.errors import PlanConfigError

_schema_cache: Draft202012Validator | None = None

def _load_schema() -> Draft202012Validator:
    global _schema_cache
    if _schema_cache is not None:
        return _schema_cache

    schema_path = Path(__file__).with_name("plans_schema.json")

    try:
        schema_text = schema_path.read_text(encoding="utf-8")
        schema_dict = json.loads(schema_text)
    except (OSError, ValueError) as e:
        raise RuntimeError(f"Failed to load schema: {e}") from e

    _schema_cache = Draft202012Validator(schema_dict)
    return _schema_cache

def validate_plans(body: dict) -> None:
    """
    body is the parsed plan catalog document. Raises PlanConfigError on the
    first schema violation, pointing at its location.
    """
    validator = _load_schema()
    errors = sorted(validator.iter_errors(body), key=lambda e: [str(p) for p in e.path])
    if errors:
        first = errors[0]
        loc = "/".join(str(p) for p in first.path) or "(root)"
        raise PlanConfigError(f"Plan catalog invalid at {loc}: {first.message}")

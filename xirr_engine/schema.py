from __future__ import annotations
from typing import Any, Dict

# Solver option schema: units, type, min/max ranges, and description.
SOLVER_SCHEMA: Dict[str, Dict[str, Any]] = {
    "period":          {"unit": "days",    "type": "float", "min": 1.0, "max": 1000.0,   "desc": "Day-count denominator used to annualize"},
    "iteration_limit": {"unit": "count",   "type": "int",   "min": 1,   "max": 100000,   "desc": "Maximum iterations per solver attempt"},
    "timeout":         {"unit": "seconds", "type": "float", "min": 0.0, "max": 3600.0,   "desc": "Wall-clock budget per solver attempt"},
    "raise_exception": {"unit": "flag",    "type": "bool",                               "desc": "Raise on an invalid cashflow instead of returning no result"},
    "fallback":        {"unit": "flag",    "type": "bool",                               "desc": "Retry with the other method when the default one fails"},
    "default_method":  {"unit": "name",    "type": "str",   "choices": ("newton_method", "bisection"), "desc": "Method used when none is given"},
}

# Columns understood by the tabular cashflow loader.
CASHFLOW_COLUMNS: Dict[str, Dict[str, Any]] = {
    "amount":   {"required": True,  "desc": "Signed amount; sign encodes direction"},
    "date":     {"required": True,  "desc": "Calendar date (YYYY-MM-DD)"},
    "category": {"required": False, "desc": "Movement label, e.g. 'Distribution'"},
}


def _within(x: float, lo: float, hi: float) -> bool:
    return (x >= lo) and (x <= hi)


def _coerce(name: str, value: Any, spec: Dict[str, Any], where: str) -> Any:
    kind = spec["type"]
    if kind == "bool":
        if not isinstance(value, bool):
            raise ValueError(f"{where}: {name} must be true or false, got {value!r}")
        return value
    if kind == "str":
        v = str(value)
        choices = spec.get("choices")
        if choices and v not in choices:
            raise ValueError(f"{where}: {name} must be one of {list(choices)}, got {v!r}")
        return v
    if isinstance(value, bool):
        raise ValueError(f"{where}: {name} must be a number, got {value!r}")
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{where}: {name} must be a number, got {value!r}") from None
    lo = float(spec.get("min", float("-inf")))
    hi = float(spec.get("max", float("inf")))
    if not _within(v, lo, hi):
        # same wording as the scenario validators: "outside allowed range"
        raise ValueError(f"{where}: {name} outside allowed range [{lo}, {hi}]: {v}")
    if kind == "int":
        if v != int(v):
            raise ValueError(f"{where}: {name} must be a whole number, got {value!r}")
        return int(v)
    return v


def check_options(
    options: Dict[str, Any], *, mode: str = "strict", where: str = "<mem>"
) -> Dict[str, Any]:
    """
    Validate solver options against SOLVER_SCHEMA and return the coerced values.
      - strict : unknown keys raise
      - relaxed: unknown keys are dropped
    A value of None means "not set" and is skipped.
    """
    unknown = sorted(k for k in options if k not in SOLVER_SCHEMA)
    if unknown and mode == "strict":
        raise ValueError(f"{where}: unknown solver options: {unknown}")

    validated: Dict[str, Any] = {}
    for k, v in options.items():
        if k not in SOLVER_SCHEMA or v is None:
            continue
        validated[k] = _coerce(k, v, SOLVER_SCHEMA[k], where)
    return validated


__all__ = ["SOLVER_SCHEMA", "CASHFLOW_COLUMNS", "check_options"]

# xirr_engine/finance/transaction.py
"""
A single dated cash movement. The sign of `amount` carries the direction;
which sign counts as "inflow" is decided by the owning Cashflow.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

INVESTMENT_CALL = "Investment Call"
DISTRIBUTION = "Distribution"
NET_ASSET_VALUE = "Net Asset Value"
COMPACT = "Compact"
GENERIC = "Generic"


def _as_date(value: Any) -> date:
    # datetime (and pandas.Timestamp) is a subclass of date; drop the time part
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"unsupported date value: {value!r}")


def _as_amount(value: Any) -> float:
    amount = float(value) if value is not None else 0.0
    if not math.isfinite(amount):
        raise ValueError(f"amount must be finite, got {value!r}")
    return amount


@dataclass(frozen=True)
class Transaction:
    amount: float
    date: date
    category: str = GENERIC

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _as_amount(self.amount))
        object.__setattr__(self, "date", _as_date(self.date))
        object.__setattr__(self, "category", str(self.category or GENERIC))

    def __repr__(self) -> str:
        return f"T({self.amount},{self.date.isoformat()},{self.category})"

    def as_dict(self) -> dict:
        return {"amount": self.amount, "date": self.date.isoformat(), "category": self.category}


__all__ = [
    "Transaction",
    "INVESTMENT_CALL",
    "DISTRIBUTION",
    "NET_ASSET_VALUE",
    "COMPACT",
    "GENERIC",
]

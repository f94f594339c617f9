"""
Cashflow reporting helpers: sums by category and multiples.

Design:
- XNPV/XIRR implementations live only in xirr_engine.finance.irr (singleton).
- This module must not *define* xnpv/xirr solvers.
- It re-exports xnpv for reports that show a present value next to the multiples.
"""
from __future__ import annotations

import math
from typing import Dict, Iterable, Optional

from .irr import xnpv as xnpv  # re-export only
from .transaction import DISTRIBUTION, INVESTMENT_CALL, NET_ASSET_VALUE, Transaction


def _sum_category(flow: Iterable[Transaction], category: str) -> float:
    return math.fsum(t.amount for t in flow if t.category == category)


def sum_called(flow: Iterable[Transaction]) -> float:
    """Capital called, as a positive number (calls are recorded negative)."""
    return -_sum_category(flow, INVESTMENT_CALL)


def sum_distributed(flow: Iterable[Transaction]) -> float:
    return _sum_category(flow, DISTRIBUTION)


def sum_nav(flow: Iterable[Transaction]) -> float:
    return _sum_category(flow, NET_ASSET_VALUE)


def sum_inflows(flow: Iterable[Transaction]) -> float:
    return math.fsum(t.amount for t in flow if t.amount > 0)


def sum_outflows(flow: Iterable[Transaction]) -> float:
    return -math.fsum(t.amount for t in flow if t.amount < 0)


def moic(flow: Iterable[Transaction]) -> Optional[float]:
    """(distributed + NAV) / called; None when nothing was called."""
    flow = list(flow)
    denom = sum_called(flow)
    if denom == 0:
        return None
    return (sum_distributed(flow) + sum_nav(flow)) / denom


def bounded_moic(flow: Iterable[Transaction], upper_bound: float = 10.0) -> Optional[float]:
    m = moic(flow)
    if m is None or m >= upper_bound:
        return None
    return m


def summarize(flow: Iterable[Transaction]) -> Dict[str, Optional[float]]:
    """Flat dict of the figures above, for CSV/JSONL reports."""
    flow = list(flow)
    return {
        "sum": math.fsum(t.amount for t in flow),
        "sum_inflows": sum_inflows(flow),
        "sum_outflows": sum_outflows(flow),
        "sum_called": sum_called(flow),
        "sum_distributed": sum_distributed(flow),
        "sum_nav": sum_nav(flow),
        "moic": moic(flow),
    }


__all__ = [
    "xnpv",
    "sum_called",
    "sum_distributed",
    "sum_nav",
    "sum_inflows",
    "sum_outflows",
    "moic",
    "bounded_moic",
    "summarize",
]

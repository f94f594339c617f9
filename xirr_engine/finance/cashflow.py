# xirr_engine/finance/cashflow.py
"""
Cashflow: a date-sorted series of Transaction objects.

The series is always kept in ascending date order (stable, so movements on the
same date keep insertion order). It only exposes vetted operations: appending,
date-range selection, compaction and aggregation. Every derived series is a
new, independent Cashflow carrying the same period and options.

Direction is decided by the earliest movement: a movement whose sign is
opposite to it is an "inflow", one with the same sign an "outflow". XIRR is
only defined when both sides are present.
"""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from ..config import DEFAULT_GUESS, PERIOD
from ..schema import check_options
from .transaction import COMPACT, INVESTMENT_CALL, NET_ASSET_VALUE, Transaction

# Sums smaller than this are treated as zero when merging movements.
ZERO_AMOUNT_EPS = 1e-12


class InvalidCashflowError(ValueError):
    """Raised when a series lacks either an inflow or an outflow."""


class Cashflow:
    def __init__(
        self,
        flow: Iterable[Transaction] = (),
        period: float = PERIOD,
        **options: Any,
    ) -> None:
        """
        flow:    initial transactions (any order)
        period:  day-count denominator used to annualize (default 365)
        options: per-series solver defaults (raise_exception, fallback,
                 iteration_limit, timeout, default_method)
        """
        if period is None:
            period = PERIOD
        self.period = float(check_options({"period": period})["period"])
        self.options: Dict[str, Any] = check_options(options)
        self._flow: List[Transaction] = []
        self.extend(flow)

    # ---------- container ----------
    def append(self, transaction: Transaction) -> "Cashflow":
        if not isinstance(transaction, Transaction):
            raise TypeError(f"expected a Transaction, got {type(transaction).__name__}")
        self._flow.append(transaction)
        self._flow.sort(key=lambda t: t.date)
        return self

    def extend(self, transactions: Iterable[Transaction]) -> "Cashflow":
        for t in transactions:
            if not isinstance(t, Transaction):
                raise TypeError(f"expected a Transaction, got {type(t).__name__}")
            self._flow.append(t)
        self._flow.sort(key=lambda t: t.date)
        return self

    def __lshift__(self, other: Union[Transaction, Iterable[Transaction]]) -> "Cashflow":
        if isinstance(other, Transaction):
            return self.append(other)
        return self.extend(other)

    def __len__(self) -> int:
        return len(self._flow)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(self._flow)

    def __getitem__(self, index: int) -> Transaction:
        if isinstance(index, slice):
            raise TypeError("use during/before/after/on to select a sub-series")
        return self._flow[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Cashflow):
            return NotImplemented
        return self._flow == other._flow and self.period == other.period

    def __repr__(self) -> str:
        return f"Cashflow({self._flow!r}, period={self.period:g})"

    @property
    def transactions(self) -> tuple:
        return tuple(self._flow)

    def _derive(self, flow: Iterable[Transaction]) -> "Cashflow":
        return Cashflow(flow, period=self.period, **self.options)

    # ---------- validity ----------
    def _direction(self) -> int:
        if not self._flow:
            return 0
        first = self._flow[0].amount
        return (first > 0) - (first < 0)

    def inflow(self) -> List[Transaction]:
        """Movements with the opposite sign to the first one."""
        d = self._direction()
        return [t for t in self._flow if t.amount * d < 0]

    def outflows(self) -> List[Transaction]:
        """Movements with the same sign as the first one."""
        d = self._direction()
        return [t for t in self._flow if t.amount * d > 0]

    def invalid(self) -> bool:
        return not self.inflow() or not self.outflows()

    def valid(self) -> bool:
        return not self.invalid()

    def invalid_message(self) -> Optional[str]:
        if not self.inflow():
            return "No positive transaction"
        if not self.outflows():
            return "No negative transaction"
        return None

    # ---------- simple queries ----------
    def sum(self) -> float:
        return math.fsum(t.amount for t in self._flow)

    @property
    def min_date(self) -> Optional[date]:
        return self._flow[0].date if self._flow else None

    @property
    def max_date(self) -> Optional[date]:
        return self._flow[-1].date if self._flow else None

    def during(self, start_date: date, end_date: date) -> "Cashflow":
        """Movements with start_date < date <= end_date."""
        return self._derive(t for t in self._flow if start_date < t.date <= end_date)

    def before(self, end_date: date) -> "Cashflow":
        return self._derive(t for t in self._flow if t.date <= end_date)

    def after(self, start_date: date) -> "Cashflow":
        return self._derive(t for t in self._flow if t.date > start_date)

    def on(self, on_date: date) -> "Cashflow":
        return self._derive(t for t in self._flow if t.date == on_date)

    def start_nav_on(self, on_date: date) -> Transaction:
        """Opening NAV on a date, expressed as a call (negative amount)."""
        navs = [t.amount for t in self._flow if t.date == on_date and t.category == NET_ASSET_VALUE]
        return Transaction(math.fsum(-abs(a) for a in navs), on_date, INVESTMENT_CALL)

    def end_nav_on(self, on_date: date) -> Transaction:
        """Closing NAV on a date (positive amount)."""
        navs = [t.amount for t in self._flow if t.date == on_date and t.category == NET_ASSET_VALUE]
        return Transaction(math.fsum(abs(a) for a in navs), on_date, NET_ASSET_VALUE)

    # ---------- compaction / aggregation ----------
    def compact_cf(self) -> "Cashflow":
        """
        One movement per date, amounts summed, category 'Compact'.
        Dates whose movements cancel out are dropped.
        """
        totals: Dict[date, List[float]] = {}
        for t in self._flow:
            if t.amount != 0:
                totals.setdefault(t.date, []).append(t.amount)
        merged = []
        for d, amounts in totals.items():
            total = math.fsum(amounts)
            if abs(total) >= ZERO_AMOUNT_EPS:
                merged.append(Transaction(total, d, COMPACT))
        return self._derive(merged)

    def aggregate_cf(self) -> "Cashflow":
        """One movement per (date, category); zero sums are dropped."""
        groups: Dict[tuple, List[float]] = {}
        for t in self._flow:
            groups.setdefault((t.date, t.category), []).append(t.amount)
        merged = []
        for (d, category), amounts in groups.items():
            total = math.fsum(amounts)
            if abs(total) >= ZERO_AMOUNT_EPS:
                merged.append(Transaction(total, d, category))
        return self._derive(merged)

    # ---------- XIRR ----------
    def _multiple(self) -> float:
        """
        Cash-on-cash multiple relative to the first movement's direction.
        [100, 100, -300] and [-100, -100, 300] both give 1.5.
        """
        return abs(math.fsum(t.amount for t in self.inflow())) / abs(
            math.fsum(t.amount for t in self.outflows())
        )

    def _periods_of_investment(self) -> float:
        if not self._flow:
            return 0.0
        return (self.max_date - self.min_date).days / self.period

    def irr_guess(self) -> float:
        """
        Rough annualized rate from the multiple and the holding period,
        rounded to 3 decimals. 0.0 when it cannot be estimated.
        """
        years = self._periods_of_investment()
        if years == 0 or self.invalid():
            return 0.0
        try:
            guess = round(self._multiple() ** (1.0 / years) - 1.0, 3)
        except (OverflowError, ZeroDivisionError):
            return 0.0
        return guess if math.isfinite(guess) else 0.0

    def xirr(self, guess: float = DEFAULT_GUESS, method: Optional[str] = None, **options: Any) -> Optional[float]:
        """
        Annualized XIRR, or None when it cannot be computed.
        See xirr_engine.finance.solve.solve for options and the full result.
        """
        from .solve import solve

        return solve(self, guess=guess, method=method, **options).rate

    def bounded_xirr(self, upper_bound: float = 1.0, **options: Any) -> Optional[float]:
        """XIRR, or None if missing, >= upper_bound, or exactly -100%."""
        x = self.xirr(**options)
        if x is None or x >= upper_bound or x == -1.0:
            return None
        return x


__all__ = ["Cashflow", "InvalidCashflowError", "ZERO_AMOUNT_EPS"]

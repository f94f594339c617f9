# xirr_engine/finance/irr.py
"""
Date-aware NPV and the two XIRR root finders.

    XNPV(r) = sum_i CF[i] / (1+r)^(days[i] / period)

days[i] counts from the earliest date in the series. Both solvers take a
compacted series (at most one movement per date) and return a SolverOutcome;
they never raise on numeric trouble. Overflow/underflow inside the power terms
is left to numpy, which yields inf/nan that the solvers report as failure.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Tuple

import numpy as np

from ..config import DEFAULT_GUESS, ITERATION_LIMIT, PERIOD

# Absolute tolerance on |XNPV|; bisection also stops once the bracket is narrower.
TOLERANCE = 1e-8
# Newton gives up when the tangent is this flat.
DERIVATIVE_EPS = 1e-12
# Bisection bracket seeds: lowest rate probed, and default upper bound.
BISECTION_FLOOR_EPS = 1e-8
BISECTION_CEILING = 10.0
# Number of times the upper bound may double while looking for a sign change.
BRACKET_SEARCH_LIMIT = 32
# Fallback lower seeds, tried in order when XNPV is nan at the floor.
_LOWER_SEEDS = (-1.0 + BISECTION_FLOOR_EPS, -0.9999, -0.99, -0.9, -0.5, 0.0)

NEWTON_METHOD = "newton_method"
BISECTION = "bisection"


class Status(str, Enum):
    CONVERGED = "converged"
    NOT_CONVERGED = "not_converged"
    FLAT_DERIVATIVE = "flat_derivative"
    DIVERGED = "diverged"
    NO_BRACKET = "no_bracket"
    TIMEOUT = "timeout"
    INVALID = "invalid"


@dataclass(frozen=True)
class SolverOutcome:
    """Result of one solver attempt. `rate` is set only when converged."""

    rate: Optional[float]
    status: Status
    iterations: int
    method: str

    @property
    def ok(self) -> bool:
        return self.status is Status.CONVERGED


class Deadline:
    """Cooperative wall-clock budget, polled once per solver iteration."""

    def __init__(self, seconds: Optional[float], clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.expires_at = None if seconds is None else clock() + float(seconds)

    def expired(self) -> bool:
        return self.expires_at is not None and self._clock() >= self.expires_at


# ---------- XNPV ----------
def _terms(cashflow: Iterable, period: Optional[float]) -> Tuple[np.ndarray, np.ndarray]:
    """Amounts and year-fraction exponents for each movement."""
    flows = list(cashflow)
    if period is None:
        period = getattr(cashflow, "period", PERIOD)
    if not flows:
        return np.zeros(0), np.zeros(0)
    d0 = min(t.date for t in flows)
    amounts = np.array([t.amount for t in flows], dtype=np.float64)
    days = np.array([(t.date - d0).days for t in flows], dtype=np.float64)
    return amounts, days / float(period)


def _npv(rate: float, amounts: np.ndarray, exponents: np.ndarray) -> float:
    with np.errstate(all="ignore"):
        return float(np.sum(amounts * np.power(1.0 + rate, -exponents)))


def _npv_derivative(rate: float, amounts: np.ndarray, exponents: np.ndarray) -> float:
    with np.errstate(all="ignore"):
        return float(np.sum(amounts * -exponents * np.power(1.0 + rate, -exponents - 1.0)))


def _check_rate(rate: float) -> float:
    r = float(rate)
    if not r > -1.0:
        raise ValueError(f"rate must be greater than -1, got {rate}")
    return r


def xnpv(rate: float, cashflow: Iterable, period: Optional[float] = None) -> float:
    """
    Net present value of a dated series at an annual `rate`.
    `cashflow` is any iterable of Transaction; `period` defaults to the
    series' own period (or 365).
    """
    amounts, exponents = _terms(cashflow, period)
    return _npv(_check_rate(rate), amounts, exponents)


def xnpv_derivative(rate: float, cashflow: Iterable, period: Optional[float] = None) -> float:
    """d XNPV / d rate, as used by the Newton solver."""
    amounts, exponents = _terms(cashflow, period)
    return _npv_derivative(_check_rate(rate), amounts, exponents)


# ---------- Newton-Raphson ----------
def newton_method(
    cashflow: Iterable,
    guess: float = DEFAULT_GUESS,
    *,
    period: Optional[float] = None,
    iteration_limit: int = ITERATION_LIMIT,
    deadline: Optional[Deadline] = None,
) -> SolverOutcome:
    amounts, exponents = _terms(cashflow, period)

    def _out(rate: Optional[float], status: Status, n: int) -> SolverOutcome:
        return SolverOutcome(rate, status, n, NEWTON_METHOD)

    estimate = float(guess)
    if not math.isfinite(estimate) or estimate <= -1.0:
        return _out(None, Status.DIVERGED, 0)

    for i in range(1, int(iteration_limit) + 1):
        if deadline is not None and deadline.expired():
            return _out(None, Status.TIMEOUT, i - 1)
        f = _npv(estimate, amounts, exponents)
        if not math.isfinite(f):
            return _out(None, Status.DIVERGED, i)
        if abs(f) < TOLERANCE:
            return _out(estimate, Status.CONVERGED, i)
        fp = _npv_derivative(estimate, amounts, exponents)
        if not math.isfinite(fp):
            return _out(None, Status.DIVERGED, i)
        if abs(fp) < DERIVATIVE_EPS:
            return _out(None, Status.FLAT_DERIVATIVE, i)
        estimate = estimate - f / fp
        # stop on the first diverged step; never iterate from a bad value
        if not math.isfinite(estimate) or estimate <= -1.0:
            return _out(None, Status.DIVERGED, i)

    return _out(None, Status.NOT_CONVERGED, int(iteration_limit))


# ---------- Bisection ----------
def _same_sign(a: float, b: float) -> bool:
    return (a > 0) == (b > 0)


def _find_bracket(
    amounts: np.ndarray,
    exponents: np.ndarray,
    guess: float,
    deadline: Optional[Deadline],
) -> Tuple[Status, float, float, float, float]:
    """
    Search for lo < hi with XNPV(lo), XNPV(hi) of opposite sign.
    Returns (status, lo, f_lo, hi, f_hi); status is CONVERGED when a bracket
    was found, NO_BRACKET or TIMEOUT otherwise.
    """
    lows = []
    for lo in _LOWER_SEEDS:
        f_lo = _npv(lo, amounts, exponents)
        if not math.isnan(f_lo):
            lows.append((lo, f_lo))
    if not lows:
        return Status.NO_BRACKET, 0.0, 0.0, 0.0, 0.0

    hi = BISECTION_CEILING
    if math.isfinite(guess):
        hi = max(hi, guess + 1.0)

    for _ in range(BRACKET_SEARCH_LIMIT + 1):
        if deadline is not None and deadline.expired():
            return Status.TIMEOUT, 0.0, 0.0, 0.0, 0.0
        f_hi = _npv(hi, amounts, exponents)
        if math.isnan(f_hi):
            break
        for lo, f_lo in lows:
            if lo < hi and (f_lo == 0.0 or f_hi == 0.0 or not _same_sign(f_lo, f_hi)):
                return Status.CONVERGED, lo, f_lo, hi, f_hi
        hi *= 2.0
    return Status.NO_BRACKET, 0.0, 0.0, 0.0, 0.0


def bisection(
    cashflow: Iterable,
    guess: float = DEFAULT_GUESS,
    *,
    period: Optional[float] = None,
    iteration_limit: int = ITERATION_LIMIT,
    deadline: Optional[Deadline] = None,
) -> SolverOutcome:
    amounts, exponents = _terms(cashflow, period)

    def _out(rate: Optional[float], status: Status, n: int) -> SolverOutcome:
        return SolverOutcome(rate, status, n, BISECTION)

    status, lo, f_lo, hi, f_hi = _find_bracket(amounts, exponents, float(guess), deadline)
    if status is not Status.CONVERGED:
        return _out(None, status, 0)
    if abs(f_lo) < TOLERANCE:
        return _out(lo, Status.CONVERGED, 0)
    if abs(f_hi) < TOLERANCE:
        return _out(hi, Status.CONVERGED, 0)

    for i in range(1, int(iteration_limit) + 1):
        if deadline is not None and deadline.expired():
            return _out(None, Status.TIMEOUT, i - 1)
        mid = (lo + hi) / 2.0
        f_mid = _npv(mid, amounts, exponents)
        if math.isnan(f_mid):
            return _out(None, Status.DIVERGED, i)
        if abs(f_mid) < TOLERANCE or (hi - lo) < TOLERANCE:
            return _out(mid, Status.CONVERGED, i)
        # keep the half whose endpoints still differ in sign
        if _same_sign(f_mid, f_lo):
            lo, f_lo = mid, f_mid
        else:
            hi, f_hi = mid, f_mid

    return _out(None, Status.NOT_CONVERGED, int(iteration_limit))


__all__ = [
    "TOLERANCE",
    "DERIVATIVE_EPS",
    "BISECTION_FLOOR_EPS",
    "BISECTION_CEILING",
    "BRACKET_SEARCH_LIMIT",
    "NEWTON_METHOD",
    "BISECTION",
    "Status",
    "SolverOutcome",
    "Deadline",
    "xnpv",
    "xnpv_derivative",
    "newton_method",
    "bisection",
]

# xirr_engine/finance/solve.py
"""
XIRR orchestration: pick a method, run it under a wall-clock budget, and fall
back to the other method once when the first attempt fails.

Option precedence (highest first): call options, Cashflow options, DEFAULTS.

Failure never raises, except an invalid series with raise_exception=True.
The result is an XirrResult whose `rate` is None when nothing was found;
`XirrResult.value` maps that to REPLACE_FOR_NIL (0.0) for callers that need a
float, at the cost of no longer telling "no result" from a real 0% return.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from ..config import DEFAULT_GUESS, DEFAULTS, REPLACE_FOR_NIL
from ..schema import check_options
from .cashflow import Cashflow, InvalidCashflowError
from .irr import Deadline, SolverOutcome, Status, bisection, newton_method

logger = logging.getLogger(__name__)


class Method(str, Enum):
    NEWTON_METHOD = "newton_method"
    BISECTION = "bisection"

    def other(self) -> "Method":
        if self is Method.NEWTON_METHOD:
            return Method.BISECTION
        return Method.NEWTON_METHOD

    @classmethod
    def parse(cls, value: Union["Method", str]) -> "Method":
        if isinstance(value, Method):
            return value
        try:
            return cls(str(value))
        except ValueError:
            raise ValueError(f"There is no method called {value}") from None

    def run(
        self,
        cashflow: Cashflow,
        guess: float,
        *,
        period: float,
        iteration_limit: int,
        deadline: Optional[Deadline] = None,
    ) -> SolverOutcome:
        solver = newton_method if self is Method.NEWTON_METHOD else bisection
        return solver(
            cashflow,
            guess,
            period=period,
            iteration_limit=iteration_limit,
            deadline=deadline,
        )


@dataclass(frozen=True)
class XirrResult:
    rate: Optional[float]
    status: Status
    method: Optional[Method] = None
    iterations: int = 0
    fell_back: bool = False
    attempts: Tuple[SolverOutcome, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status is Status.CONVERGED

    @property
    def value(self) -> float:
        return self.rate if self.rate is not None else REPLACE_FOR_NIL

    def as_dict(self) -> Dict[str, Any]:
        return {
            "xirr": self.rate,
            "status": self.status.value,
            "method": self.method.value if self.method else None,
            "iterations": self.iterations,
            "fell_back": self.fell_back,
        }


def resolve_options(cashflow: Cashflow, options: Dict[str, Any]) -> Dict[str, Any]:
    settings = dict(DEFAULTS)
    settings["period"] = cashflow.period
    settings.update(cashflow.options)
    settings.update(check_options(options))
    return settings


def _attempt(
    method: Method,
    compact: Cashflow,
    guess: float,
    settings: Dict[str, Any],
) -> SolverOutcome:
    outcome = method.run(
        compact,
        guess,
        period=settings["period"],
        iteration_limit=settings["iteration_limit"],
        deadline=Deadline(settings["timeout"]),
    )
    if outcome.status is Status.TIMEOUT:
        logger.warning(
            "%s timed out after %d iterations (budget %.3fs)",
            method.value, outcome.iterations, settings["timeout"],
        )
    else:
        logger.debug("%s -> %s after %d iterations", method.value, outcome.status.value, outcome.iterations)
    return outcome


def solve(
    cashflow: Cashflow,
    guess: float = DEFAULT_GUESS,
    method: Optional[Union[Method, str]] = None,
    **options: Any,
) -> XirrResult:
    """
    XIRR of `cashflow`.

    method:  'newton_method' or 'bisection'. Giving one explicitly disables
             fallback for this call; otherwise `default_method` is used and
             `fallback` decides whether the other method is tried.
    options: raise_exception, iteration_limit, period, timeout, fallback,
             default_method.
    """
    settings = resolve_options(cashflow, options)

    if cashflow.invalid():
        message = cashflow.invalid_message()
        if settings["raise_exception"]:
            raise InvalidCashflowError(message)
        logger.info("Cashflow rejected: %s", message)
        return XirrResult(rate=None, status=Status.INVALID)

    if method is not None:
        primary = Method.parse(method)
        fallback = False
    else:
        primary = Method.parse(settings["default_method"])
        fallback = bool(settings["fallback"])

    compact = cashflow.compact_cf()
    attempts = [_attempt(primary, compact, guess, settings)]
    if not attempts[0].ok and fallback:
        logger.warning(
            "%s failed (%s); falling back to %s",
            primary.value, attempts[0].status.value, primary.other().value,
        )
        attempts.append(_attempt(primary.other(), compact, guess, settings))

    final = attempts[-1]
    used = Method.parse(final.method)
    if not final.ok:
        logger.warning("No XIRR found: %s", ", ".join(f"{a.method}={a.status.value}" for a in attempts))
    return XirrResult(
        rate=final.rate if final.ok else None,
        status=final.status,
        method=used,
        iterations=sum(a.iterations for a in attempts),
        fell_back=len(attempts) > 1,
        attempts=tuple(attempts),
    )


__all__ = ["Method", "XirrResult", "resolve_options", "solve"]

# xirr_engine/cli.py
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict

from .config import DEFAULT_GUESS, load_solver_config
from .finance.cashflow import InvalidCashflowError
from .runner import run_dir
from .schema import check_options


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="xirr_engine",
        description="XIRR for irregularly dated cashflow files",
    )
    p.add_argument(
        "--input",
        required=True,
        help="Cashflow file (YAML/JSON/CSV) or a directory of them.",
    )
    p.add_argument(
        "--config",
        default=None,
        help="YAML file with solver settings (period, iteration_limit, timeout, ...).",
    )
    p.add_argument(
        "--method",
        default=None,
        choices=["newton_method", "bisection"],
        help="Force one method; disables fallback to the other.",
    )
    p.add_argument(
        "--guess",
        type=float,
        default=None,
        help=f"Initial rate guess (default: each series' irr_guess, or {DEFAULT_GUESS} when that is 0).",
    )
    p.add_argument("--period", type=float, default=None, help="Day-count denominator (default: 365).")
    p.add_argument("--iteration-limit", type=int, default=None, help="Max iterations per method.")
    p.add_argument("--timeout", type=float, default=None, help="Seconds allowed per method attempt.")
    p.add_argument(
        "--discount-rate",
        type=float,
        default=None,
        help="If set, also report XNPV at this annual rate.",
    )
    p.add_argument(
        "--outputs-dir",
        default="outputs",
        help="Directory to write result files (default: outputs). Will be created if missing.",
    )
    p.add_argument(
        "--format",
        dest="fmt",
        default="csv",
        choices=["csv", "jsonl"],
        help="Output format for the results file (default: csv).",
    )
    p.add_argument(
        "--save-flows",
        action="store_true",
        help="If set, write each compacted cashflow alongside the results.",
    )
    p.add_argument(
        "--raise-exception",
        action="store_true",
        help="Fail on a cashflow without both inflows and outflows instead of reporting it.",
    )
    p.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG.")
    v = p.add_mutually_exclusive_group()
    v.add_argument(
        "--strict",
        action="store_true",
        help="Enable strict validation (unknown keys raise).",
    )
    v.add_argument(
        "--relaxed",
        action="store_true",
        help="Enable relaxed validation (unknown keys ignored).",
    )
    return p.parse_args(argv)


def _apply_validation_mode(ns: argparse.Namespace) -> None:
    # Default: leave env as-is; flags override explicitly.
    if ns.strict:
        os.environ["VALIDATION_MODE"] = "strict"
    elif ns.relaxed:
        os.environ["VALIDATION_MODE"] = "relaxed"


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _solver_options(ns: argparse.Namespace) -> Dict[str, Any]:
    options: Dict[str, Any] = load_solver_config(ns.config) if ns.config else {}
    flags = {
        "period": ns.period,
        "iteration_limit": ns.iteration_limit,
        "timeout": ns.timeout,
        "raise_exception": True if ns.raise_exception else None,
    }
    options.update(check_options(flags, where="command line"))
    return options


def main(argv: list[str] | None = None) -> int:
    try:
        ns = _parse_args(argv)
    except SystemExit as e:
        return int(e.code) if isinstance(e.code, int) else 2
    _apply_validation_mode(ns)
    _configure_logging(ns.verbose)

    try:
        options = _solver_options(ns)
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    if ns.discount_rate is not None and not ns.discount_rate > -1.0:
        print("ERROR: --discount-rate must be greater than -1", file=sys.stderr)
        return 2

    outputs_dir = Path(ns.outputs_dir).resolve()
    outputs_dir.mkdir(parents=True, exist_ok=True)

    try:
        res = run_dir(
            Path(ns.input).resolve(),
            outputs_dir,
            fmt=ns.fmt,
            save_flows=ns.save_flows,
            guess=ns.guess,
            method=ns.method,
            discount_rate=ns.discount_rate,
            **options,
        )
    except SystemExit as e:
        # validation exits carry a message rather than a code
        if not isinstance(e.code, int):
            print(f"ERROR: {e}", file=sys.stderr)
            return 2
        return int(e.code)
    except InvalidCashflowError as e:
        print(f"INVALID: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        # Fail noisily with non-zero; keep traceback for debugging
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    s = res.summary
    print(f"Solved {s['converged']}/{s['files']} cashflows ({s['fell_back']} via fallback).")
    if len(res.rows or []) == 1 and res.rows[0].get("xirr") is not None:
        print(f"XIRR: {res.rows[0]['xirr'] * 100.0:.4f}%")
    return 0


__all__ = ["main"]

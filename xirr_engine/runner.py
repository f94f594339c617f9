# xirr_engine/runner.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, List, Optional
import json, csv
import logging
import warnings

import pandas as pd

from .config import DEFAULT_GUESS
from .finance.cashflow import Cashflow
from .finance.metrics import summarize, xnpv
from .finance.solve import solve
from .validate import iter_input_files, load_cashflow_from_file

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    summary: Dict[str, Any]
    summary_path: Path
    results_path: Optional[Path] = None
    rows: Optional[List[Dict[str, Any]]] = None


def _write_jsonl(path: Path, rows: List[Dict[str, Any]]) -> None:
    with path.open("w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row) + "\n")


def _write_csv(path: Path, rows: List[Dict[str, Any]]) -> None:
    if not rows:
        path.write_text("", encoding="utf-8")
        return
    hdr: List[str] = []
    for row in rows:
        for k in row.keys():
            if k not in hdr:
                hdr.append(k)
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=hdr)
        w.writeheader()
        for row in rows:
            w.writerow({k: row.get(k, "") for k in hdr})


def _write_flows(path: Path, cf: Cashflow) -> None:
    frame = pd.DataFrame([t.as_dict() for t in cf], columns=["date", "amount", "category"])
    frame.to_csv(path, index=False)


def evaluate_cashflow(
    cf: Cashflow,
    *,
    name: str = "<mem>",
    guess: Optional[float] = None,
    method: Optional[str] = None,
    discount_rate: Optional[float] = None,
    **options: Any,
) -> Dict[str, Any]:
    """
    One report row: XIRR outcome plus the simple cashflow figures.
    A `period` option re-bases the whole row (XIRR, irr_guess, xnpv).
    Without an explicit guess, the solver starts from irr_guess
    (or DEFAULT_GUESS when that is 0).
    """
    if options.get("period") is not None:
        cf = Cashflow(cf, period=options["period"], **cf.options)
    seed = cf.irr_guess()
    if guess is None:
        guess = seed or DEFAULT_GUESS
    result = solve(cf, guess=guess, method=method, **options)
    row: Dict[str, Any] = {"name": name}
    row.update(result.as_dict())
    row.update({
        "transactions": len(cf),
        "min_date": cf.min_date.isoformat() if cf.min_date else None,
        "max_date": cf.max_date.isoformat() if cf.max_date else None,
        "period": cf.period,
        "guess": guess,
        "irr_guess": seed,
    })
    row.update(summarize(cf))
    if discount_rate is not None:
        row["xnpv"] = xnpv(discount_rate, cf.compact_cf())
    return row


def run_dir(
    source: str | Path,
    out_dir: str | Path,
    *,
    fmt: str = "jsonl",
    save_flows: bool = False,
    guess: Optional[float] = None,
    method: Optional[str] = None,
    discount_rate: Optional[float] = None,
    mode: Optional[str] = None,
    **options: Any,
) -> RunResult:
    """
    Compute XIRR for one cashflow file or every YAML/JSON/CSV file in a
    directory. Writes summary.json and results.<fmt> into out_dir; with
    save_flows, also <name>_flows.csv holding the compacted series.

    Files that cannot be loaded are reported with status 'error' and a
    warning; they do not stop the run. InvalidCashflowError still
    propagates when raise_exception is set.
    """
    if fmt not in ("jsonl", "csv"):
        raise SystemExit(f"unknown fmt: {fmt}")

    src = Path(source)
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    files = [f for f in iter_input_files(src) if f.is_file()]
    if not files:
        raise SystemExit(f"{src}: no cashflow files found")

    rows: List[Dict[str, Any]] = []
    for f in files:
        try:
            cf = load_cashflow_from_file(f, mode=mode)
        except (SystemExit, ValueError, TypeError, KeyError) as e:
            warnings.warn(f"{f}: could not load cashflow: {e}")
            rows.append({"name": f.stem, "xirr": None, "status": "error", "error": str(e)})
            continue
        logger.info("Solving %s (%d transactions)", f, len(cf))
        rows.append(
            evaluate_cashflow(
                cf, name=f.stem, guess=guess, method=method,
                discount_rate=discount_rate, **options,
            )
        )
        if save_flows:
            _write_flows(out / f"{f.stem}_flows.csv", cf.compact_cf())

    summary = {
        "files": len(rows),
        "converged": sum(1 for r in rows if r["status"] == "converged"),
        "failed": sum(1 for r in rows if r["status"] != "converged"),
        "fell_back": sum(1 for r in rows if r.get("fell_back")),
    }

    summary_path = out / "summary.json"
    summary_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")

    results_path = out / f"results.{fmt}"
    if fmt == "jsonl":
        _write_jsonl(results_path, rows)
    else:
        _write_csv(results_path, rows)

    return RunResult(summary=summary, summary_path=summary_path, results_path=results_path, rows=rows)


__all__ = ["RunResult", "evaluate_cashflow", "run_dir"]

# xirr_engine/validate.py
from __future__ import annotations
import sys, json
from pathlib import Path
from typing import Any, Dict, Iterable, List

import pandas as pd
import yaml

from .config import PERIOD, mode_from_env_or_flag
from .finance.cashflow import Cashflow
from .finance.transaction import GENERIC, Transaction
from .schema import CASHFLOW_COLUMNS, check_options

TOP_LEVEL_KEYS = {"period", "options", "transactions"}


def validate_params_dict(data: Dict[str, Any], *, mode: str = "relaxed") -> None:
    """
    Guardrails for a YAML/JSON cashflow document:
      - both modes: require a non-empty 'transactions' list with amount + date
      - strict    : reject unknown top-level keys and unknown solver options
    """
    if not isinstance(data, dict):
        raise SystemExit("expected a mapping at top level")

    rows = data.get("transactions")
    if not isinstance(rows, list) or not rows:
        raise SystemExit("missing required key: 'transactions' (non-empty list)")

    if mode == "strict":
        unknown = sorted(k for k in data.keys() if k not in TOP_LEVEL_KEYS)
        if unknown:
            raise SystemExit(f"unknown top-level keys (strict mode): {unknown}")

    required = [c for c, spec in CASHFLOW_COLUMNS.items() if spec["required"]]
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            raise SystemExit(f"transactions[{i}] must be a mapping")
        missing = [c for c in required if row.get(c) is None]
        if missing:
            raise SystemExit(f"transactions[{i}] missing required keys: {missing}")

    try:
        check_options(data.get("options") or {}, mode=mode, where="options")
        if "period" in data:
            if data["period"] is None:
                raise SystemExit("period: must be a number, got null")
            check_options({"period": data["period"]}, where="period")
    except ValueError as e:
        raise SystemExit(str(e)) from None


def load_params_from_file(path: Path) -> Dict[str, Any]:
    p = Path(path)
    if p.is_dir():
        # the runner handles directories; keep this function file-only
        raise SystemExit(f"{p} is a directory (expected a file)")
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise SystemExit(f"{p}: invalid YAML: {e}") from None
    return json.loads(text or "{}")


def cashflow_from_frame(df: pd.DataFrame, *, period: float = PERIOD, **options: Any) -> Cashflow:
    """Build a Cashflow from a frame with amount/date[/category] columns."""
    missing = [c for c, spec in CASHFLOW_COLUMNS.items() if spec["required"] and c not in df.columns]
    if missing:
        raise SystemExit(f"missing required columns: {missing}")
    amounts = pd.to_numeric(df["amount"], errors="raise")
    dates = pd.to_datetime(df["date"], errors="raise")
    if amounts.isna().any() or dates.isna().any():
        raise SystemExit("amount and date must be set on every row")
    if "category" in df.columns:
        categories = df["category"].fillna(GENERIC).astype(str)
    else:
        categories = pd.Series([GENERIC] * len(df), index=df.index)
    flow = [
        Transaction(float(a), d.date(), c)
        for a, d, c in zip(amounts, dates, categories)
    ]
    return Cashflow(flow, period=period, **options)


def load_cashflow_from_file(path: Path, *, mode: str | None = None) -> Cashflow:
    """
    Load a Cashflow from YAML/JSON (validated document) or CSV
    (columns amount,date[,category]).
    """
    p = Path(path)
    resolved = mode_from_env_or_flag(mode)
    if p.suffix.lower() == ".csv":
        return cashflow_from_frame(pd.read_csv(p))

    data = load_params_from_file(p)
    validate_params_dict(data, mode=resolved)
    options = check_options(data.get("options") or {}, mode="relaxed")
    flow = [
        Transaction(row["amount"], row["date"], row.get("category") or GENERIC)
        for row in data["transactions"]
    ]
    return Cashflow(flow, period=data.get("period", PERIOD), **options)


def iter_input_files(p: Path) -> Iterable[Path]:
    if p.is_file():
        yield p
    elif p.is_dir():
        for ext in ("*.yaml", "*.yml", "*.json", "*.csv"):
            yield from sorted(p.rglob(ext))


def _main(argv: List[str] | None = None) -> int:
    import argparse
    parser = argparse.ArgumentParser(prog="xirr_engine.validate", add_help=True)
    parser.add_argument("paths", nargs="+", help="YAML/JSON/CSV cashflow files or directories to validate")
    parser.add_argument("--mode", choices=["strict", "relaxed"], default=None, help="validation mode")
    args = parser.parse_args(argv)

    mode = mode_from_env_or_flag(args.mode)
    had_error = False

    for raw in args.paths:
        target = Path(raw)
        any_seen = False
        for f in iter_input_files(target):
            if not f.is_file():
                continue
            any_seen = True
            try:
                cf = load_cashflow_from_file(f, mode=mode)
                if cf.invalid():
                    print(f"{f}: {cf.invalid_message()}", file=sys.stderr)
                    had_error = True
                else:
                    print(f"OK: {f}")
            except SystemExit as e:
                print(f"{f}: {e}", file=sys.stderr)
                had_error = True
            except Exception as e:
                print(f"{f}: ERROR: {e}", file=sys.stderr)
                had_error = True
        if not any_seen:
            print(f"{target}: no YAML/JSON/CSV files found", file=sys.stderr)
            had_error = True

    return 1 if had_error else 0


if __name__ == "__main__":
    raise SystemExit(_main())

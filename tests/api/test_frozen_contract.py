import importlib
import inspect
from pathlib import Path


def _param_names(fn):
    return [p.name for p in inspect.signature(fn).parameters.values()]


def test_finance_irr_public_api_is_stable():
    """Lock down that XNPV and the solvers live in finance.irr with stable entrypoints."""
    m = importlib.import_module("xirr_engine.finance.irr")
    for name in ("xnpv", "newton_method", "bisection"):
        assert callable(getattr(m, name, None)), f"Missing solver entrypoint: {name}"

    assert _param_names(m.xnpv)[:2] == ["rate", "cashflow"]
    assert _param_names(m.newton_method)[:2] == ["cashflow", "guess"]
    assert _param_names(m.bisection)[:2] == ["cashflow", "guess"]

    # Guard against import creep in the thin math module.
    src = Path(m.__file__).read_text(encoding="utf-8")
    for forbidden in ("from .cashflow", "from .solve", "import pandas"):
        assert forbidden not in src, f"Unexpected dependency '{forbidden}' inside finance/irr.py"


def test_solve_api_and_result_shape():
    s = importlib.import_module("xirr_engine.finance.solve")
    assert _param_names(s.solve)[:3] == ["cashflow", "guess", "method"]
    assert [m.value for m in s.Method] == ["newton_method", "bisection"]
    fields = [f for f in s.XirrResult.__dataclass_fields__]
    assert fields == ["rate", "status", "method", "iterations", "fell_back", "attempts"]


def test_validate_exports_are_stable():
    """validate module must expose these helpers (names kept stable)."""
    v = importlib.import_module("xirr_engine.validate")
    for name in ("validate_params_dict", "load_params_from_file", "load_cashflow_from_file"):
        obj = getattr(v, name, None)
        assert callable(obj), f"Missing or non-callable export: {name}"


def test_runner_run_dir_api_minimal(tmp_path):
    """run_dir must accept (source, out_dir, ...) and return a summary-like object."""
    r = importlib.import_module("xirr_engine.runner")
    assert hasattr(r, "run_dir") and callable(r.run_dir)

    cfg = tmp_path / "cf.yaml"
    cfg.write_text(
        "transactions:\n"
        "  - { amount: -1000, date: 2013-01-01 }\n"
        "  - { amount: 1100, date: 2014-01-01 }\n",
        encoding="utf-8",
    )
    out = tmp_path / "o"
    res = r.run_dir(cfg, out, fmt="jsonl")
    summary = getattr(res, "summary", res)
    assert isinstance(summary, dict)
    for k in ("files", "converged", "failed", "fell_back"):
        assert k in summary

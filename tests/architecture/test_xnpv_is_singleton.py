import re
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]  # repo root
IRR = ROOT / "xirr_engine" / "finance" / "irr.py"

EXCLUDE_DIRS = {
    ".venv", "venv", ".git", ".pytest_cache", "build",
    "dist", "__pycache__", ".mypy_cache", ".tox", ".eggs", "tests",
}

def _skip(p: Path) -> bool:
    parts = set(p.parts)
    if "site-packages" in parts or "dist-packages" in parts:
        return True
    if any(d in parts for d in EXCLUDE_DIRS):
        return True
    return False

def test_only_irr_module_defines_xnpv_and_solvers():
    hits = []
    for p in (ROOT / "xirr_engine").rglob("*.py"):
        if _skip(p.relative_to(ROOT)):
            continue
        if p == IRR:
            continue
        text = p.read_text(encoding="utf-8", errors="ignore")
        for name in ("xnpv", "newton_method", "bisection"):
            if re.search(rf"\bdef\s+{name}\s*\(", text):
                hits.append(f"{p}:{name}")
    assert not hits, f"Found XNPV/solver defs outside finance/irr.py: {hits}"

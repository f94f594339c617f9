from __future__ import annotations

from typing import Any, Dict, Optional
import io
import logging
import os

import yaml

from .schema import check_options

logger = logging.getLogger(__name__)

# Library defaults. A YAML file loaded with load_solver_config() can override
# them per run; Cashflow options and call options override both.
PERIOD = 365.0
ITERATION_LIMIT = 100
RAISE_EXCEPTION = False
FALLBACK = True
DEFAULT_METHOD = "newton_method"
TIMEOUT_SECONDS = 2.5
DEFAULT_GUESS = 0.08

# Numeric stand-in for "no result" when a caller insists on a float.
REPLACE_FOR_NIL = 0.0

DEFAULTS: Dict[str, Any] = {
    "period": PERIOD,
    "iteration_limit": ITERATION_LIMIT,
    "raise_exception": RAISE_EXCEPTION,
    "fallback": FALLBACK,
    "default_method": DEFAULT_METHOD,
    "timeout": TIMEOUT_SECONDS,
}


def mode_from_env_or_flag(flag: Optional[str] = None) -> str:
    if flag in ("strict", "relaxed"):
        return flag
    env = (os.environ.get("VALIDATION_MODE") or "").lower()
    return env if env in ("strict", "relaxed") else "relaxed"


def _flatten_grouped(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten shallow groups like {'solver': {...}, 'output': {...}} into one level.
    Prefers top-level keys if collisions occur.
    """
    flat: Dict[str, Any] = {k: v for k, v in cfg.items() if not isinstance(v, dict)}
    for k, v in cfg.items():
        if isinstance(v, dict):
            for sk, sv in v.items():
                flat.setdefault(sk, sv)
    return flat


def load_solver_config(
    source: str | os.PathLike | io.StringIO,
    *,
    mode: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Load solver overrides from a YAML path or text stream. Only keys set in
    the file are returned; solve() layers them over DEFAULTS.
    Raises ValueError on malformed YAML, out-of-range values, or (strict
    mode) unknown keys.
    """
    text: str
    where: str
    if hasattr(source, "read"):
        text = str(source.read())
        where = "<stream>"
    else:
        p = os.fspath(source)
        with open(p, "r", encoding="utf-8") as f:
            text = f.read()
        where = p

    try:
        cfg = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"{where}: invalid YAML: {e}") from e
    if not isinstance(cfg, dict):
        raise ValueError(f"{where}: expected a mapping at top level, got {type(cfg).__name__}")

    resolved = mode_from_env_or_flag(mode)
    settings = check_options(_flatten_grouped(cfg), mode=resolved, where=where)
    logger.debug("Solver settings from %s (%s): %s", where, resolved, settings)
    return settings


__all__ = [
    "PERIOD",
    "ITERATION_LIMIT",
    "RAISE_EXCEPTION",
    "FALLBACK",
    "DEFAULT_METHOD",
    "TIMEOUT_SECONDS",
    "DEFAULT_GUESS",
    "REPLACE_FOR_NIL",
    "DEFAULTS",
    "mode_from_env_or_flag",
    "load_solver_config",
]

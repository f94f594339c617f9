import logging
from datetime import date

import pytest

from xirr_engine.finance.cashflow import Cashflow, InvalidCashflowError
from xirr_engine.finance.irr import Status, xnpv
from xirr_engine.finance.solve import Method, XirrResult, resolve_options, solve
from xirr_engine.finance.transaction import Transaction


def _cf(rows, **kw):
    return Cashflow([Transaction(a, d) for a, d in rows], **kw)


def _two_point():
    return _cf([(1000, date(2013, 1, 1)), (-1234, date(2013, 3, 31))])


def _two_point_rate():
    days = (date(2013, 3, 31) - date(2013, 1, 1)).days
    return (1234 / 1000) ** (365 / days) - 1


def test_default_path_uses_newton():
    res = solve(_two_point())
    assert isinstance(res, XirrResult)
    assert res.ok and res.status is Status.CONVERGED
    assert res.method is Method.NEWTON_METHOD
    assert not res.fell_back
    assert res.rate == pytest.approx(_two_point_rate(), abs=1e-6)
    assert res.value == res.rate


def test_newton_divergence_falls_back_to_bisection(caplog):
    with caplog.at_level(logging.WARNING, logger="xirr_engine.finance.solve"):
        res = solve(_two_point(), guess=100.0)
    assert res.ok
    assert res.fell_back
    assert res.method is Method.BISECTION
    assert [a.status for a in res.attempts] == [Status.DIVERGED, Status.CONVERGED]
    assert res.rate == pytest.approx(_two_point_rate(), abs=1e-6)
    assert "falling back to bisection" in caplog.text


def test_explicit_method_disables_fallback():
    res = solve(_two_point(), guess=100.0, method="newton_method")
    assert res.status is Status.DIVERGED
    assert res.rate is None
    assert not res.fell_back
    assert len(res.attempts) == 1


def test_explicit_bisection():
    res = solve(_two_point(), method=Method.BISECTION)
    assert res.ok and res.method is Method.BISECTION
    assert res.rate == pytest.approx(_two_point_rate(), abs=1e-6)


def test_fallback_disabled_by_option():
    res = solve(_two_point(), guess=100.0, fallback=False)
    assert res.status is Status.DIVERGED and not res.fell_back


def test_default_method_option():
    res = solve(_two_point(), default_method="bisection")
    assert res.ok and res.method is Method.BISECTION and not res.fell_back


def test_unknown_method_is_rejected():
    with pytest.raises(ValueError, match="There is no method called secant"):
        solve(_two_point(), method="secant")


def test_flat_series_fails_on_both_methods():
    # valid as given, but compacts to a single movement
    cf = _cf([
        (1000, date(2020, 1, 1)),
        (-1000, date(2020, 1, 1)),
        (5, date(2020, 6, 30)),
    ])
    assert cf.valid()
    res = solve(cf)
    assert res.rate is None and not res.ok
    assert res.value == 0.0
    assert res.fell_back
    assert [a.status for a in res.attempts] == [Status.FLAT_DERIVATIVE, Status.NO_BRACKET]
    assert res.status is Status.NO_BRACKET


def test_iteration_limit_applies_to_each_attempt():
    res = solve(_two_point(), iteration_limit=1)
    assert not res.ok
    assert [a.status for a in res.attempts] == [Status.NOT_CONVERGED, Status.NOT_CONVERGED]
    assert res.iterations == 2


def test_zero_timeout_reports_timeout_on_both_attempts():
    res = solve(_two_point(), timeout=0.0)
    assert res.status is Status.TIMEOUT
    assert res.rate is None
    assert [a.status for a in res.attempts] == [Status.TIMEOUT, Status.TIMEOUT]


def test_invalid_series_returns_invalid_result():
    cf = _cf([(100, date(2013, 1, 1)), (50, date(2014, 1, 1))])
    res = solve(cf)
    assert res.status is Status.INVALID
    assert res.rate is None and res.method is None and res.attempts == ()


def test_invalid_series_raises_when_asked():
    cf = _cf([(100, date(2013, 1, 1)), (50, date(2014, 1, 1))])
    with pytest.raises(InvalidCashflowError, match="No positive transaction"):
        solve(cf, raise_exception=True)


def test_call_options_override_cashflow_options():
    cf = _cf([(100, date(2013, 1, 1)), (50, date(2014, 1, 1))], raise_exception=True)
    with pytest.raises(InvalidCashflowError):
        solve(cf)
    assert solve(cf, raise_exception=False).status is Status.INVALID


def test_resolve_options_precedence():
    cf = _cf([(1, date(2013, 1, 1))], period=360, iteration_limit=10, timeout=1.0)
    settings = resolve_options(cf, {"iteration_limit": 20})
    assert settings["period"] == 360.0
    assert settings["iteration_limit"] == 20
    assert settings["timeout"] == 1.0
    assert settings["fallback"] is True


def test_unknown_option_is_rejected():
    with pytest.raises(ValueError):
        solve(_two_point(), tolerance=1e-3)


def test_period_override_changes_the_answer():
    cf = _two_point()
    r365 = solve(cf).rate
    r360 = solve(cf, period=360).rate
    assert r360 != pytest.approx(r365, abs=1e-6)
    assert abs(xnpv(r360, cf.compact_cf(), period=360)) < 1e-6


def test_same_input_same_result():
    cf = _cf([
        (-1000, date(2013, 1, 1)),
        (300, date(2013, 6, 15)),
        (900, date(2014, 2, 20)),
    ])
    assert solve(cf) == solve(cf)


def test_result_as_dict():
    d = solve(_two_point()).as_dict()
    assert set(d) == {"xirr", "status", "method", "iterations", "fell_back"}
    assert d["status"] == "converged" and d["method"] == "newton_method"


def test_method_other_is_closed():
    assert Method.NEWTON_METHOD.other() is Method.BISECTION
    assert Method.BISECTION.other() is Method.NEWTON_METHOD


def test_bisection_primary_falls_back_to_newton():
    cf = _cf([
        (1000, date(2020, 1, 1)),
        (-1000, date(2020, 1, 1)),
        (5, date(2020, 6, 30)),
    ])
    res = solve(cf, default_method="bisection")
    assert res.fell_back
    assert res.method is Method.NEWTON_METHOD
    assert [a.method for a in res.attempts] == ["bisection", "newton_method"]
    assert [a.status for a in res.attempts] == [Status.NO_BRACKET, Status.FLAT_DERIVATIVE]
    assert res.rate is None


def test_newton_iteration_limit_falls_back_to_bisection_root():
    # NPV(15) is exactly zero and 15 is the first upper bracket for guess 14
    cf = _cf([(-1000, date(2013, 1, 1)), (16000, date(2014, 1, 1))])
    res = solve(cf, guess=14.0, iteration_limit=1)
    assert [a.status for a in res.attempts] == [Status.NOT_CONVERGED, Status.CONVERGED]
    assert res.fell_back and res.method is Method.BISECTION
    assert res.rate == res.attempts[1].rate == pytest.approx(15.0)

from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from bfra.exceptions import InsufficientDataError
from bfra.plfit import plfit, plfitb
from bfra.pointcloud import pointcloud_intercept, reference_points


def _pareto(alpha, xmin, n, seed=0):
    u = np.random.default_rng(seed).random(n)
    return xmin * (1.0 - u) ** (-1.0 / (alpha - 1.0))


def test_plfit_recovers_pareto_exponent():
    x = _pareto(2.5, 3.0, 2000)

    alpha, xmin, ks, n_tail = plfit(x)

    assert abs(alpha - 2.5) < 0.3
    assert xmin >= 3.0
    assert 10 <= n_tail <= x.size
    assert 0.0 <= ks < 0.1


def test_plfitb_bounds_and_mask():
    tau = _pareto(3.0, 1.0, 1000, seed=1)

    fit = plfitb(tau)

    np.testing.assert_allclose(fit.b, fit.alpha / (fit.alpha - 1.0))
    assert fit.b_L <= fit.b <= fit.b_H
    np.testing.assert_array_equal(fit.taumask, tau >= fit.tau0)
    assert np.count_nonzero(fit.taumask) == fit.n_tail
    assert fit.tau > fit.tau0


def test_plfitb_constant_tau_is_exponential():
    fit = plfitb(np.full(20, 7.0))
    assert np.isinf(fit.alpha)
    assert fit.b == fit.b_L == fit.b_H == 1.0
    assert fit.tau0 == 7.0


def test_plfit_tied_top_values_do_not_decide_the_fit():
    x = _pareto(2.5, 1.0, 500, seed=3)
    tied = np.full(10, 1.5 * x.max())

    alpha, xmin, ks, n_tail = plfit(np.concatenate([x, tied]))

    assert np.isfinite(alpha)
    assert 1.5 < alpha < 4.0
    assert xmin < tied[0]
    assert n_tail > tied.size
    assert ks > 0.0

    fit = plfitb(np.concatenate([x, tied]))
    assert 1.0 < fit.b < 3.0
    assert np.count_nonzero(fit.taumask) == fit.n_tail


def test_plfit_needs_two_values():
    with pytest.raises(InsufficientDataError):
        plfit([1.0, np.nan, -2.0])


def test_pointcloud_intercept_exact_power_law():
    q = np.logspace(-1, 2, 1001)
    dqdt = -0.03 * q**1.5

    a, (a_L, a_H), xbar, ybar = pointcloud_intercept(q, dqdt, 1.5, bci=(1.3, 1.7))

    np.testing.assert_allclose(a, 0.03, rtol=1e-10)
    assert a_L <= a <= a_H
    assert xbar[0] > xbar[1]
    np.testing.assert_allclose(ybar, 0.03 * xbar**1.5)


def test_reference_points_respect_mask():
    q = np.arange(1.0, 11.0)
    mask = q <= 5
    xbar, ybar = reference_points(q, -q, [(1.0, 1.0)], mask=mask)
    np.testing.assert_array_equal(xbar, [5.0])
    np.testing.assert_array_equal(ybar, [5.0])
    with pytest.raises(InsufficientDataError):
        reference_points(q, -q, [(0.5, 0.5)], mask=q > 9)

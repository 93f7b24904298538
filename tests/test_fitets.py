from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from bfra.config import FitConfig
from bfra.data import Event
from bfra.exceptions import DegenerateFitError
from bfra.fitets import GAMMA_STRATEGIES, ets_window_lengths, fit_ab, fit_ets, fit_gamma


def _event(q, tag=1):
    t = np.arange(len(q), dtype=float)
    return Event(tag=tag, time=t, t=t, q=np.asarray(q, dtype=float), r=None,
                 istart=0, istop=len(q) - 1)


def test_fit_gamma_recovers_decay_rate():
    t = np.arange(61, dtype=float)
    q = 50.0 * np.exp(-0.1 * t)

    result = fit_gamma(t, q)

    assert result.success
    assert result.method == GAMMA_STRATEGIES[0][0]
    np.testing.assert_allclose(result.gamma, 0.1, rtol=1e-2)


def test_fit_gamma_reports_failure_on_too_few_samples():
    result = fit_gamma([0.0, 1.0], [2.0, 1.0])
    assert not result.success


def test_window_lengths_grow_and_reject_bad_gamma():
    t = np.arange(50, dtype=float)
    m = ets_window_lengths(t, 0.1, 0.2)

    assert m.dtype.kind == "i"
    assert m[0] >= 2
    assert np.all(np.diff(m) >= 0)
    with pytest.raises(DegenerateFitError):
        ets_window_lengths(t, 0.0)
    with pytest.raises(DegenerateFitError):
        ets_window_lengths(t, np.nan)


def test_fit_ets_exponential_decay_gives_dqdt_proportional_to_q():
    q = 50.0 * np.exp(-0.1 * np.arange(61, dtype=float))

    fit = fit_ets(_event(q))

    ok = np.isfinite(fit.q) & np.isfinite(fit.dqdt)
    assert np.count_nonzero(ok) > 30
    np.testing.assert_allclose(fit.dqdt[ok] / fit.q[ok], -0.1, rtol=0.05)
    np.testing.assert_allclose(fit.gamma, 0.1, rtol=1e-2)
    assert fit.fitted_ab
    assert abs(fit.b - 1.0) < 0.05
    np.testing.assert_allclose(fit.a, 0.1, rtol=0.1)
    assert fit.q.shape == q.shape


def test_fit_ets_increasing_event_is_degenerate():
    q = np.linspace(1.0, 5.0, 20)

    fit = fit_ets(_event(q, tag=3))

    assert fit.tag == 3
    assert fit.is_empty
    assert np.isnan(fit.a) and np.isnan(fit.b)


def test_fit_ets_without_ab():
    q = 50.0 * np.exp(-0.1 * np.arange(40, dtype=float))
    fit = fit_ets(_event(q), FitConfig(fit_ab=False))
    assert not fit.fitted_ab
    assert not fit.is_empty


def test_fit_ab_recovers_power_law():
    q = np.logspace(-1, 2, 40)
    dqdt = -0.02 * q**1.5

    a, b = fit_ab(q, dqdt)
    np.testing.assert_allclose([a, b], [0.02, 1.5], rtol=1e-8)

    a, b = fit_ab(q, dqdt, weights=np.linspace(0.5, 1.0, 40))
    np.testing.assert_allclose([a, b], [0.02, 1.5], rtol=1e-8)


def test_fit_ab_needs_enough_points():
    q = np.array([1.0, 2.0, 3.0, np.nan, 5.0])
    a, b = fit_ab(q, -q, min_points=5)
    assert np.isnan(a) and np.isnan(b)

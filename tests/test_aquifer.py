import logging
import math
from pathlib import Path
import sys
import warnings

import numpy as np
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from bfra.aquifer import aquifer_props, check_geometry, exceedance_probability, expected_q
from bfra.config import BasinGeometry
from bfra.exceptions import GeometryInconsistencyWarning, InsufficientDataError
from bfra.phi import EARLY_CONSTANT, LINEAR_CONSTANT, NONLINEAR_CONSTANT


def test_inconsistent_stream_length_is_replaced_with_warning(caplog):
    geometry = BasinGeometry(area=1e6, drainage_density=2.0, stream_length=500.0)

    with caplog.at_level(logging.WARNING):
        with pytest.warns(GeometryInconsistencyWarning):
            checked = check_geometry(geometry)

    assert checked.stream_length == pytest.approx(2000.0)
    assert geometry.stream_length == 500.0
    assert "inconsistent" in caplog.text


def test_consistent_or_missing_stream_length_is_silent():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        same = check_geometry(BasinGeometry(area=1e6, drainage_density=2.0, stream_length=2000.0))
        derived = check_geometry(BasinGeometry(area=1e6, drainage_density=2.0))
        untouched = check_geometry(BasinGeometry(area=1e6, stream_length=123.0))

    assert same.stream_length == 2000.0
    assert derived.stream_length == pytest.approx(2000.0)
    assert untouched.stream_length == 123.0


def test_aquifer_props_inverts_each_solution():
    k, phi, D, A, L = 1e-5, 0.05, 2.0, 1e7, 1e4
    geometry = BasinGeometry(area=A, depth=D, stream_length=L)

    a_lin = math.pi**2 * LINEAR_CONSTANT * k * D * L**2 / (phi * A**2)
    a_nonlin = NONLINEAR_CONSTANT * math.sqrt(k) * L / (phi * A**1.5)
    a_early = EARLY_CONSTANT / (k * phi * D**3 * L**2)

    lin = aquifer_props(a_lin, 1.0, phi, geometry)
    nonlin = aquifer_props(a_nonlin, 1.5, phi, geometry)
    early = aquifer_props(a_early, 3.0, phi, geometry)

    assert (lin.solution, nonlin.solution, early.solution) == ("late_linear", "late_nonlinear", "early")
    np.testing.assert_allclose([lin.k, nonlin.k, early.k], k)


def test_aquifer_props_requires_geometry():
    with pytest.raises(InsufficientDataError):
        aquifer_props(0.01, 1.0, 0.05, BasinGeometry(area=1e6, depth=1.0))


def test_expected_q_and_exceedance():
    Q = np.arange(1.0, 21.0)

    Qexp, Q0, pQexp, pQ0 = expected_q(0.01, 2.0, 20.0, 10.0, Q)

    np.testing.assert_allclose([Qexp, Q0], [5.0, 10.0])
    np.testing.assert_allclose([pQexp, pQ0], [16 / 20, 11 / 20])
    assert math.isnan(exceedance_probability(None, 1.0))


def test_expected_q_undefined_at_b_one(caplog):
    with caplog.at_level(logging.WARNING):
        Qexp, Q0, pQexp, pQ0 = expected_q(0.05, 1.0, 20.0, 20.0, np.ones(5))
    assert all(math.isnan(v) for v in (Qexp, Q0, pQexp, pQ0))
    assert "undefined" in caplog.text

import math
from pathlib import Path
import sys

import numpy as np

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from bfra.recession import aqb_string, characteristic_time, q_from_tau, qnonlin, qt_string, taufunc


def test_qnonlin_inverts_to_elapsed_time():
    a, b, Q0 = 0.01, 1.5, 20.0
    t = np.linspace(0.0, 100.0, 51)

    Q, dQdt = qnonlin(a, b, Q0, t)

    np.testing.assert_allclose(Q[0], Q0)
    np.testing.assert_allclose(dQdt, -a * Q**b)
    t_back = (Q ** (1 - b) - Q0 ** (1 - b)) / (a * (b - 1))
    np.testing.assert_allclose(t_back, t, atol=1e-9)


def test_qnonlin_exponential_limit():
    t = np.linspace(0.0, 30.0, 31)
    Q, dQdt = qnonlin(0.05, 1.0, 100.0, t)
    np.testing.assert_allclose(Q, 100.0 * np.exp(-0.05 * t))
    np.testing.assert_allclose(dQdt, -0.05 * Q)


def test_qnonlin_b_below_one_reaches_zero():
    Q, _ = qnonlin(0.5, 0.5, 1.0, np.array([0.0, 1.0, 10.0]))
    assert Q[0] == 1.0
    assert Q[-1] == 0.0


def test_tau_round_trip():
    a, b = 0.02, 2.0
    Q = np.array([0.5, 1.0, 4.0])
    tau = taufunc(a, b, Q)
    np.testing.assert_allclose(tau, 1.0 / (a * Q))
    np.testing.assert_allclose(q_from_tau(a, b, tau), Q)
    assert np.isnan(q_from_tau(a, 1.0, 10.0))


def test_characteristic_time_is_e_folding():
    a, b, Q0 = 0.01, 1.5, 20.0
    tc = characteristic_time(a, b, Q0)
    Q, _ = qnonlin(a, b, Q0, np.array([tc]))
    np.testing.assert_allclose(Q[0], Q0 / math.e)
    np.testing.assert_allclose(characteristic_time(0.1, 1.0, 5.0), 10.0)


def test_labels():
    assert "aQ^b" in aqb_string()
    assert "1.50" in aqb_string(0.002, 1.5, printvalues=True)
    assert "b=1.50" in qt_string(1.5)

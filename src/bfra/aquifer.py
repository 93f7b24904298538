"""Basin geometry checks and aquifer property inversions.

流域几何检查与含水层属性反演
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import replace
from typing import Tuple

import numpy as np

from .config import BasinGeometry
from .data import AquiferProps
from .exceptions import GeometryInconsistencyWarning, InsufficientDataError
from .phi import EARLY_CONSTANT, LINEAR_CONSTANT, NONLINEAR_CONSTANT
from .recession import q_from_tau

logger = logging.getLogger(__name__)

_GEOMETRY_RTOL = 1e-6


def check_geometry(geometry: BasinGeometry, rtol: float = _GEOMETRY_RTOL) -> BasinGeometry:
    """Make stream length consistent with drainage density and area.

    使河网长度与河网密度、流域面积一致。

    Drainage density comes in as 1/km, as it is almost always reported
    (km/km²), so L = Dd/1000 · A in metres. When a stream length is supplied
    that disagrees with this, it is replaced and a
    ``GeometryInconsistencyWarning`` is issued. When it is missing it is
    derived without a warning.

    Returns / 返回
    -------
    BasinGeometry
        The input geometry, or a corrected copy.
    """
    A = geometry.area
    Dd = geometry.drainage_density
    L = geometry.stream_length
    if math.isnan(Dd) or math.isnan(A):
        return geometry

    L_dd = Dd / 1000.0 * A  # 1/m * m^2 = m
    if math.isnan(L):
        logger.debug("Deriving stream length %.6g m from drainage density", L_dd)
        return replace(geometry, stream_length=L_dd)

    if not math.isclose(L, L_dd, rel_tol=rtol):
        message = (
            f"provided stream length L={L:.6g} m is inconsistent with "
            f"L=A*Dd={L_dd:.6g} m; using L=A*Dd"
        )
        logger.warning(message)
        warnings.warn(message, GeometryInconsistencyWarning, stacklevel=2)
        return replace(geometry, stream_length=L_dd)
    return geometry


def exceedance_probability(Q, value: float) -> float:
    """Fraction of the flow record at or above ``value`` (flow-duration curve)."""
    if Q is None or not math.isfinite(value):
        return math.nan
    Q = np.asarray(Q, dtype=float)
    Q = Q[np.isfinite(Q) & (Q > 0)]
    if Q.size == 0:
        return math.nan
    return float(np.count_nonzero(Q >= value) / Q.size)


def expected_q(a: float, b: float, tau: float, tau0: float,
               Q=None) -> Tuple[float, float, float, float]:
    """Expected and reference discharge from the fitted a, b and τ.

    由 a、b、τ 计算期望流量 Qexp 与参考流量 Q0。

    Q = (a τ)^(1/(1-b)) inverts τ = Q^(1-b)/a. At b = 1 τ no longer depends
    on Q, so both values are undefined and returned as NaN.

    Returns / 返回
    -------
    Qexp, Q0, pQexp, pQ0 : float
        Discharges and their exceedance probabilities in ``Q``.
    """
    Qexp = float(q_from_tau(a, b, tau))
    Q0 = float(q_from_tau(a, b, tau0))
    if math.isnan(Q0) and math.isfinite(b):
        logger.warning("Q0 and Qexp are undefined for b=%.4g", b)
    return Qexp, Q0, exceedance_probability(Q, Qexp), exceedance_probability(Q, Q0)


def aquifer_props(a: float, b: float, phi: float,
                  geometry: BasinGeometry) -> AquiferProps:
    """Invert hydraulic conductivity k from a, b and φ.

    由 a、b、φ 反演导水率 k。

    The late linear solution is used for b < 1.25, the late nonlinear
    (b = 3/2) solution for 1.25 <= b < 2.25 and the early (b = 3) solution
    otherwise.

    Raises / 抛出
    ------
    InsufficientDataError
        If a, b, φ, area, depth or stream length is unknown.
    """
    A, D, L = geometry.area, geometry.depth, geometry.stream_length
    if not all(math.isfinite(v) for v in (a, b, phi, A, D, L)):
        raise InsufficientDataError("k requires a, b, phi, area, depth and stream length")
    if not geometry.isflat:
        logger.warning("Sloped aquifer requested; using horizontal aquifer solutions")

    if b < 1.25:
        k = a * phi * A**2 / (math.pi**2 * LINEAR_CONSTANT * D * L**2)
        solution = "late_linear"
    elif b < 2.25:
        k = (a * phi * A**1.5 / (NONLINEAR_CONSTANT * L)) ** 2
        solution = "late_nonlinear"
    else:
        k = EARLY_CONSTANT / (a * phi * D**3 * L**2)
        solution = "early"
    return AquiferProps(k=float(k), solution=solution, geometry=geometry)

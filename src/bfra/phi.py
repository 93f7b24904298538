"""Drainable porosity (φ) estimation.

可排水孔隙度 φ 的估计

φ is obtained by combining an early-time (b = 3) and a late-time (b = 1 or
b = 3/2) recession line of the Brutsaert-Nieber horizontal aquifer
solutions and eliminating the hydraulic conductivity k:

    early:            -dQ/dt = 1.133 / (k φ D³ L²) Q³
    late, linear:     -dQ/dt = π² p k D L² / (φ A²) Q         (p = 0.3465)
    late, nonlinear:  -dQ/dt = 4.8038 k^½ L / (φ A^{3/2}) Q^{3/2}

Three strategies are available (see ``PhiMethod``):

- pointcloud: one φ from the reference points of the pooled point cloud
- distfit: φ per event, summarised by a fitted lognormal distribution
- phicombo: per-event φ for both late-time solutions, pooled and fitted

三种策略：点云法、单事件分布拟合法、组合法。

References / 参考文献
---------------------
Brutsaert, W., Nieber, J.L. (1977). Regionalized drought flow hydrographs
from a mature glaciated plateau. Water Resources Research, 13(3), 637-643.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, Optional

import numpy as np
from scipy import stats

from .config import BasinGeometry, GlobalFitConfig, PhiMethod
from .data import PhiFit
from .exceptions import InsufficientDataError, InvalidInputError
from .pointcloud import reference_points

logger = logging.getLogger(__name__)

EARLY_CONSTANT = 1.133
LINEAR_CONSTANT = 0.3465
NONLINEAR_CONSTANT = 4.8038
_B_EARLY = 3.0


def late_b_for(b: float) -> float:
    """Nearest supported late-time exponent (1 or 3/2) to b."""
    return 1.0 if b < 1.25 else 1.5


def phi_from_ab(a_early: float, a_late: float, b_late: float,
                area: float, depth: float) -> float:
    """Drainable porosity from early and late recession scale parameters.

    由早期与晚期退水参数计算可排水孔隙度。

    Raises / 抛出
    ------
    InsufficientDataError
        If area or depth is unknown (NaN).
    InvalidInputError
        If ``b_late`` is neither 1 nor 3/2.
    """
    if math.isnan(area) or math.isnan(depth):
        raise InsufficientDataError("phi requires basin area and aquifer depth")
    if b_late == 1.0:
        num = EARLY_CONSTANT * math.pi**2 * LINEAR_CONSTANT
        return math.sqrt(num / (a_early * a_late)) / (depth * area)
    if b_late == 1.5:
        num = EARLY_CONSTANT * NONLINEAR_CONSTANT**2
        return (num / (a_early * a_late**2)) ** (1.0 / 3.0) / (depth * area)
    raise InvalidInputError(f"late-time exponent must be 1 or 3/2 (got {b_late})")


def _early_late_a(q, dqdt, b_late, early_qtls, late_qtls, mask=None):
    xbar, ybar = reference_points(q, dqdt, [early_qtls, late_qtls], mask=mask)
    a_early = ybar[0] / xbar[0] ** _B_EARLY
    a_late = ybar[1] / xbar[1] ** b_late
    return a_early, a_late


def cloud_phi(q, dqdt, b: float, geometry: BasinGeometry, mask=None,
              early_qtls=(0.90, 0.90), late_qtls=(0.50, 0.50)) -> float:
    """φ from the early/late reference points of the pooled point cloud."""
    b_late = late_b_for(b)
    a_early, a_late = _early_late_a(q, dqdt, b_late, early_qtls, late_qtls, mask)
    return phi_from_ab(a_early, a_late, b_late, geometry.area, geometry.depth)


def event_phi(q, dqdt, tags, geometry: BasinGeometry, b_late: float,
              early_qtls=(0.90, 0.90), late_qtls=(0.50, 0.50)) -> np.ndarray:
    """φ for each event from that event's own reference points.

    每个事件根据自身的参考点计算 φ。事件点数不足时为 NaN。
    """
    q = np.asarray(q, dtype=float)
    dqdt = np.asarray(dqdt, dtype=float)
    tags = np.asarray(tags)
    unique_tags = np.unique(tags)
    phid = np.full(unique_tags.size, np.nan)
    for i, tag in enumerate(unique_tags):
        sel = tags == tag
        try:
            a_early, a_late = _early_late_a(
                q[sel], dqdt[sel], b_late, early_qtls, late_qtls
            )
        except InsufficientDataError:
            logger.debug("Event %s has too few points for phi", tag)
            continue
        phid[i] = phi_from_ab(a_early, a_late, b_late, geometry.area, geometry.depth)
    return phid


def fit_phi_dist(phid, method: str, cdf: bool = False) -> PhiFit:
    """Summarise per-event φ values with a fitted lognormal distribution.

    用对数正态分布拟合各事件的 φ 值。

    Parameters / 参数
    ----------
    phid : array-like
        φ samples; non-finite values and values outside (0, 1) are dropped
    method : str
        Name recorded in the result
    cdf : bool
        Also return the fitted CDF on a grid spanning the samples

    Raises / 抛出
    ------
    InsufficientDataError
        If no usable samples remain.
    """
    phid = np.asarray(phid, dtype=float)
    with np.errstate(invalid="ignore"):
        x = phid[np.isfinite(phid) & (phid > 0) & (phid < 1)]
    if x.size == 0:
        raise InsufficientDataError("no usable phi samples")

    if x.size < 3 or np.ptp(np.log(x)) == 0:
        # too few samples for a distribution fit; report sample statistics
        cdf_x = np.sort(x) if cdf else None
        cdf_y = np.arange(1, x.size + 1) / x.size if cdf else None
        return PhiFit(method=method, phi=float(np.mean(x)), median=float(np.median(x)),
                      samples=x, cdf_x=cdf_x, cdf_y=cdf_y)

    shape, loc, scale = stats.lognorm.fit(x, floc=0)
    dist = stats.lognorm(shape, loc=loc, scale=scale)
    cdf_x = cdf_y = None
    if cdf:
        cdf_x = np.linspace(x.min(), x.max(), 100)
        cdf_y = dist.cdf(cdf_x)
    return PhiFit(
        method=method,
        phi=float(dist.mean()),
        median=float(dist.median()),
        samples=x,
        cdf_x=cdf_x,
        cdf_y=cdf_y,
        dist_params=(float(shape), float(loc), float(scale)),
    )


def _phi_pointcloud(q, dqdt, tags, mask, b, geometry, config: GlobalFitConfig) -> PhiFit:
    phi = cloud_phi(q, dqdt, b, geometry, mask=mask,
                    early_qtls=config.early_qtls, late_qtls=config.ref_qtls)
    return PhiFit(method=PhiMethod.POINTCLOUD.value, phi=phi, median=phi,
                  samples=np.array([phi]))


def _phi_distfit(q, dqdt, tags, mask, b, geometry, config: GlobalFitConfig) -> PhiFit:
    phid = event_phi(q, dqdt, tags, geometry, late_b_for(b),
                     early_qtls=config.early_qtls, late_qtls=config.late_qtls)
    return fit_phi_dist(phid, PhiMethod.DISTFIT.value, cdf=config.phi_cdf)


def _phi_combo(q, dqdt, tags, mask, b, geometry, config: GlobalFitConfig) -> PhiFit:
    phid = np.concatenate(
        [
            event_phi(q, dqdt, tags, geometry, b_late,
                      early_qtls=config.early_qtls, late_qtls=config.late_qtls)
            for b_late in (1.0, 1.5)
        ]
    )
    return fit_phi_dist(phid, PhiMethod.PHICOMBO.value, cdf=config.phi_cdf)


PhiStrategy = Callable[..., PhiFit]

PHI_STRATEGIES: Dict[PhiMethod, PhiStrategy] = {
    PhiMethod.POINTCLOUD: _phi_pointcloud,
    PhiMethod.DISTFIT: _phi_distfit,
    PhiMethod.PHICOMBO: _phi_combo,
}


def estimate_phi(
    method: PhiMethod,
    q,
    dqdt,
    tags,
    b: float,
    geometry: BasinGeometry,
    config: Optional[GlobalFitConfig] = None,
    mask=None,
) -> PhiFit:
    """Estimate drainable porosity with the selected strategy.

    使用所选策略估计可排水孔隙度。

    Raises / 抛出
    ------
    InsufficientDataError
        When geometry is missing or too few points are available.
    """
    config = config or GlobalFitConfig()
    strategy = PHI_STRATEGIES[PhiMethod(method)]
    return strategy(q, dqdt, tags, mask, b, geometry, config)

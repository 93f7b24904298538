"""Point-cloud intercept for the recession scale parameter a.

点云截距法估计退水参数 a
"""

from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple

import numpy as np

from .exceptions import InsufficientDataError


def _cloud(q, dqdt, mask=None) -> Tuple[np.ndarray, np.ndarray]:
    x = np.asarray(q, dtype=float)
    y = -np.asarray(dqdt, dtype=float)
    with np.errstate(invalid="ignore"):
        ok = np.isfinite(x) & np.isfinite(y) & (x > 0) & (y > 0)
    if mask is not None:
        ok &= np.asarray(mask, dtype=bool)
    return x[ok], y[ok]


def reference_points(
    q, dqdt, qtls: Sequence[Tuple[float, float]], mask=None
) -> Tuple[np.ndarray, np.ndarray]:
    """Quantiles of q and -dQ/dt for each (q-quantile, dQ/dt-quantile) pair.

    计算各分位数对对应的 q 与 -dQ/dt 参考点。
    """
    x, y = _cloud(q, dqdt, mask)
    if x.size < 2:
        raise InsufficientDataError(f"need at least 2 points in the cloud (got {x.size})")
    xbar = np.array([np.quantile(x, qx) for qx, _ in qtls])
    ybar = np.array([np.quantile(y, qy) for _, qy in qtls])
    return xbar, ybar


def _intercept(xbar: np.ndarray, ybar: np.ndarray, b: float) -> float:
    return float(math.exp(np.mean(np.log(ybar) - b * np.log(xbar))))


def pointcloud_intercept(
    q,
    dqdt,
    b: float,
    mask=None,
    early_qtls: Tuple[float, float] = (0.90, 0.90),
    late_qtls: Tuple[float, float] = (0.50, 0.50),
    bci: Optional[Tuple[float, float]] = None,
) -> Tuple[float, Tuple[float, float], np.ndarray, np.ndarray]:
    """Fit a in -dQ/dt = aQ^b with the slope fixed at b.

    以固定斜率 b 拟合点云截距 a。

    The line log(-dQ/dt) = log a + b log Q is placed through the early-time
    and late-time reference points of the masked cloud in the least-squares
    sense, i.e. log a is the mean of log ybar - b log xbar.

    Parameters / 参数
    ----------
    q, dqdt : array-like
        Pooled discharge and dQ/dt / 汇总的流量与 dQ/dt
    b : float
        Fixed exponent / 固定指数
    mask : array-like of bool, optional
        Points to use, e.g. the τ-mask / 使用的点（如 τ 掩码）
    early_qtls, late_qtls : tuple of float
        Quantile pairs of the reference points
    bci : tuple of float, optional
        (b_L, b_H); the bounds of a are obtained by refitting with each.

    Returns / 返回
    -------
    a : float
    (a_L, a_H) : tuple of float
        Ordered so that a_L <= a <= a_H.
    xbar, ybar : np.ndarray
        Reference points (early first).
    """
    xbar, ybar = reference_points(q, dqdt, [early_qtls, late_qtls], mask=mask)
    a = _intercept(xbar, ybar, b)
    if bci is None:
        return a, (a, a), xbar, ybar

    candidates = [a]
    for bb in bci:
        if math.isfinite(bb):
            candidates.append(_intercept(xbar, ybar, bb))
        else:
            candidates.append(0.0 if np.mean(np.log(xbar)) > 0 else math.inf)
    return a, (min(candidates), max(candidates)), xbar, ybar

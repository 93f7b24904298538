"""Closed-form recession relations for -dQ/dt = aQ^b.

-dQ/dt = aQ^b 的解析退水关系

The forward solution of the power-law recession model is

    Q(t) = (Q0^(1-b) + a(b-1)t)^(1/(1-b)),

which degenerates to Q(t) = Q0 exp(-at) at b = 1.
当 b = 1 时退化为指数衰减。
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np

_B_ONE_TOL = 1e-10  # |b - 1| below this uses the exponential limit


def _is_linear(b) -> bool:
    return abs(float(b) - 1.0) < _B_ONE_TOL


def taufunc(a, b, Q):
    """Drainage timescale τ = Q^(1-b) / a / 排水时间尺度。"""
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.asarray(Q, dtype=float) ** (1.0 - np.asarray(b, dtype=float)) / a


def q_from_tau(a: float, b: float, tau):
    """Invert τ = Q^(1-b)/a for Q. Undefined (NaN) at b = 1."""
    tau = np.asarray(tau, dtype=float)
    if _is_linear(b):
        return np.full_like(tau, np.nan)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        return (a * tau) ** (1.0 / (1.0 - b))


def qnonlin(a: float, b: float, Q0: float, t) -> Tuple[np.ndarray, np.ndarray]:
    """Discharge and dQ/dt predicted by a, b from initial discharge Q0.

    由 a、b 与初始流量 Q0 预测的流量与 dQ/dt。

    Parameters / 参数
    ----------
    a, b : float
        Power-law parameters / 幂律参数
    Q0 : float
        Discharge at t = 0 / t=0 时的流量
    t : array-like
        Time elapsed since t = 0 / 自 t=0 起的时间

    Returns / 返回
    -------
    Q : np.ndarray
        Discharge. For b < 1 the flow reaches zero in finite time and stays 0.
    dQdt : np.ndarray
        -a Q^b
    """
    t = np.asarray(t, dtype=float)
    if _is_linear(b):
        Q = Q0 * np.exp(-a * t)
    else:
        base = Q0 ** (1.0 - b) + a * (b - 1.0) * t
        base = np.maximum(base, 0.0)
        with np.errstate(divide="ignore", over="ignore"):
            Q = base ** (1.0 / (1.0 - b))
    dQdt = -a * Q**b
    return Q, dQdt


def characteristic_time(a: float, b: float, Q0: float) -> float:
    """Time for Q to fall from Q0 to Q0/e / 流量降至 Q0/e 所需时间。"""
    if _is_linear(b):
        return 1.0 / a
    return Q0 ** (1.0 - b) * (math.exp(b - 1.0) - 1.0) / (a * (b - 1.0))


def aqb_string(a: Optional[float] = None, b: Optional[float] = None,
               printvalues: bool = False) -> str:
    """LaTeX label for -dQ/dt = aQ^b, optionally with the fitted values."""
    if not printvalues or a is None or b is None:
        return r"-d$Q$/d$t$ = $aQ^b$"
    aexp = math.floor(math.log10(a))
    abase = a * 10.0 ** -aexp
    return rf"-d$Q$/d$t$ = {abase:.2f}e$^{{{aexp:d}}}Q^{{{b:.2f}}}$"


def qt_string(b: float, Q0: Optional[float] = None) -> str:
    """LaTeX label for the forward solution Q(t)."""
    q0 = "Q_0" if Q0 is None else f"{Q0:g}"
    return rf"$Q = [{q0}^{{-(b-1)}}+at(b-1)]^{{-1/(b-1)}} (b={b:.2f})$"

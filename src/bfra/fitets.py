"""Exponential time-step (ETS) fitting of recession events.

指数时间步（ETS）退水事件拟合

Pass only identified recession events, not a full flow record: the whole
event is first fitted with Q(t) = A exp(-γt) + C to estimate γ, which sets
a window length m(t) that grows as the recession proceeds. Windows of m(t)
samples are then moved over the event and the local linear slope in each
window is taken as dQ/dt, with the window-mean discharge as q.

只应传入已识别的退水事件：先对整个事件拟合指数衰减以估计 γ，
再用 γ 计算随时间增长的窗口长度 m(t)，在每个窗口内用线性回归斜率估计 dQ/dt。
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
from scipy.optimize import OptimizeWarning, curve_fit

from .config import FitConfig
from .data import Event, EventFit
from .exceptions import DegenerateFitError

logger = logging.getLogger(__name__)

_MIN_WINDOWS = 4  # fewer usable windows than this marks the event degenerate


@dataclass(frozen=True)
class GammaFit:
    """Outcome of one decay-rate fitting strategy / 单个衰减率拟合策略的结果。"""

    success: bool
    method: str
    gamma: float = math.nan
    params: Tuple[float, ...] = ()
    message: str = ""


def _expdecay(x, a, g, c):
    return a * np.exp(-g * x) + c


def _fit_nlinfit(t: np.ndarray, y: np.ndarray, maxfev: int) -> GammaFit:
    p0 = [float(np.mean(y)), 0.2, 0.0]
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", OptimizeWarning)
            popt, _ = curve_fit(_expdecay, t, y, p0=p0, maxfev=maxfev)
    except (RuntimeError, ValueError) as exc:
        return GammaFit(False, "nlinfit", message=str(exc))
    return _accept("nlinfit", popt)


def _fit_expfit(t: np.ndarray, y: np.ndarray, maxfev: int) -> GammaFit:
    p0 = [1e-6, 1e-6, 1e-6]
    bounds = ([0.0, 0.0, -np.inf], [np.inf, np.inf, np.inf])
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", OptimizeWarning)
            popt, _ = curve_fit(_expdecay, t, y, p0=p0, bounds=bounds, max_nfev=maxfev)
    except (RuntimeError, ValueError) as exc:
        return GammaFit(False, "expfit", message=str(exc))
    return _accept("expfit", popt)


def _fit_loglinear(t: np.ndarray, y: np.ndarray, maxfev: int) -> GammaFit:
    ok = y > 0
    if np.count_nonzero(ok) < 2:
        return GammaFit(False, "loglinear", message="fewer than two positive values")
    slope, intercept = np.polyfit(t[ok], np.log(y[ok]), 1)
    return _accept("loglinear", (math.exp(intercept), -slope, 0.0))


def _accept(method: str, params) -> GammaFit:
    params = tuple(float(p) for p in params)
    gamma = params[1]
    if not all(math.isfinite(p) for p in params):
        return GammaFit(False, method, message="non-finite parameters")
    if gamma <= 0:
        return GammaFit(False, method, gamma=gamma, params=params,
                        message="non-positive decay rate")
    return GammaFit(True, method, gamma=gamma, params=params)


# Ordered fallback chain for the decay-rate fit.
GAMMA_STRATEGIES: List[Tuple[str, Callable[[np.ndarray, np.ndarray, int], GammaFit]]] = [
    ("nlinfit", _fit_nlinfit),
    ("expfit", _fit_expfit),
    ("loglinear", _fit_loglinear),
]


def fit_gamma(t, q, maxfev: int = 2000) -> GammaFit:
    """Fit Q/max(Q) ≈ A exp(-γt) + C, trying each strategy in turn.

    依次尝试各策略拟合指数衰减率 γ。

    Parameters / 参数
    ----------
    t : array-like
        Elapsed time / 经过时间
    q : array-like
        Discharge / 流量
    maxfev : int
        Iteration cap passed to the nonlinear solvers.

    Returns / 返回
    -------
    GammaFit
        The first successful strategy, or the last failure.
    """
    t = np.asarray(t, dtype=float)
    q = np.asarray(q, dtype=float)
    ok = np.isfinite(t) & np.isfinite(q)
    t, q = t[ok], q[ok]
    if t.size < 3 or not np.nanmax(q) > 0:
        return GammaFit(False, "none", message="too few usable samples")
    y = q / np.max(q)

    result = GammaFit(False, "none")
    for name, strategy in GAMMA_STRATEGIES:
        result = strategy(t, y, maxfev)
        if result.success:
            return result
        logger.debug("Decay fit strategy %s failed: %s", name, result.message)
    return result


def ets_window_lengths(t, gamma: float, window_fraction: float = 0.2) -> np.ndarray:
    """Window length m(t) = 1 + ceil(f · t_max · exp(-1/(γt))).

    计算窗口长度 m(t)。时间轴偏移一个时间步，使首个样本不奇异。

    Raises / 抛出
    ------
    DegenerateFitError
        When γ is non-positive or the window lengths are not finite.
    """
    t = np.asarray(t, dtype=float)
    if not (math.isfinite(gamma) and gamma > 0):
        raise DegenerateFitError(f"decay rate must be positive (got {gamma})")
    step = t[1] - t[0] if t.size > 1 else 1.0
    tw = t - t[0] + step
    nmax = window_fraction * np.max(tw)
    with np.errstate(divide="ignore", over="ignore"):
        m = 1.0 + np.ceil(nmax * np.exp(-1.0 / (gamma * tw)))
    if not np.all(np.isfinite(m)):
        raise DegenerateFitError("window length diverged")
    return m.astype(int)


def _window_ols(x: np.ndarray, y: np.ndarray) -> Tuple[float, float]:
    """Slope and r² of an ordinary least-squares line."""
    ok = np.isfinite(x) & np.isfinite(y)
    x, y = x[ok], y[ok]
    if x.size < 2:
        return math.nan, math.nan
    xm, ym = x.mean(), y.mean()
    sxx = np.sum((x - xm) ** 2)
    sst = np.sum((y - ym) ** 2)
    if sxx == 0 or sst == 0:
        return math.nan, math.nan
    slope = float(np.sum((x - xm) * (y - ym)) / sxx)
    resid = y - (ym + slope * (x - xm))
    r2 = 1.0 - float(np.sum(resid**2) / sst)
    return slope, max(r2, 0.0)


def fit_ab(q, dqdt, weights=None, min_points: int = 5) -> Tuple[float, float]:
    """Fit -dQ/dt = aQ^b by (weighted) linear regression in log space.

    在对数空间中用（加权）线性回归拟合 a、b。

    Returns (nan, nan) when fewer than ``min_points`` usable pairs exist.
    """
    q = np.asarray(q, dtype=float)
    dqdt = np.asarray(dqdt, dtype=float)
    with np.errstate(invalid="ignore"):
        ok = np.isfinite(q) & np.isfinite(dqdt) & (q > 0) & (dqdt < 0)
        if weights is not None:
            weights = np.asarray(weights, dtype=float)
            ok &= np.isfinite(weights) & (weights > 0)
    if np.count_nonzero(ok) < min_points:
        return math.nan, math.nan

    x = np.log(q[ok])
    y = np.log(-dqdt[ok])
    if np.ptp(x) == 0:
        return math.nan, math.nan
    w = None if weights is None else np.sqrt(weights[ok])
    b, log_a = np.polyfit(x, y, 1, w=w)
    return float(math.exp(log_a)), float(b)


def fit_ets(event: Event, config: Optional[FitConfig] = None) -> EventFit:
    """Fit one recession event with the exponential time-step method.

    用指数时间步方法拟合单个退水事件。

    Parameters / 参数
    ----------
    event : Event
        A recession event from ``get_events`` / 来自 get_events 的退水事件
    config : FitConfig, optional
        Window fraction and a/b fitting options / 窗口比例及 a/b 拟合选项

    Returns / 返回
    -------
    EventFit
        Per-sample q and dQ/dt interpolated back onto the event samples,
        window-level dt, tq, rq and r², and (if requested) a and b.
        Events that cannot be fitted come back all-NaN; nothing is raised.
        无法拟合的事件返回全 NaN 结果，不抛出异常。
    """
    config = config or FitConfig()
    t = np.asarray(event.t, dtype=float)
    Q = np.asarray(event.q, dtype=float)
    R = None if event.r is None else np.asarray(event.r, dtype=float)
    N = t.size

    gfit = fit_gamma(t, Q, maxfev=config.maxfev)
    if not gfit.success:
        logger.debug("Event %d: decay fit failed (%s)", event.tag, gfit.message)
        return EventFit.missing(event.tag, N, method="failed")

    try:
        m = ets_window_lengths(t, gfit.gamma, config.window_fraction)
    except DegenerateFitError as exc:
        logger.debug("Event %d: %s", event.tag, exc)
        return EventFit.missing(event.tag, N, gamma=gfit.gamma, method=gfit.method)

    dqdt = np.full(N, np.nan)
    q = np.full(N, np.nan)
    dt = np.full(N, np.nan)
    tq = np.full(N, np.nan)
    rq = np.full(N, np.nan)
    r2 = np.full(N, np.nan)

    # move over the recession in windows of m samples and fit dQ/dt
    n = 0
    while n + m[n] <= N - 1:
        stop = n + m[n] + 1
        x = t[n:stop]
        Y = Q[n:stop]
        slope, rsq = _window_ols(x, Y)
        dqdt[n] = slope
        r2[n] = rsq
        q[n] = np.nanmean(Y) if np.any(np.isfinite(Y)) else np.nan
        tq[n] = np.mean(x)
        if R is not None and np.any(np.isfinite(R[n:stop])):
            rq[n] = np.nanmean(R[n:stop])
        dt[n] = x[-1] - x[0]
        n += 1

    with np.errstate(invalid="ignore"):
        bad = (dqdt > 0) | np.isnan(r2) | (r2 <= 0) | ~np.isfinite(q) | (q <= 0)
    dqdt[bad] = np.nan
    q[bad] = np.nan

    ok = np.isfinite(dqdt) & np.isfinite(q)
    if np.count_nonzero(ok) < _MIN_WINDOWS:
        logger.debug("Event %d: only %d usable windows", event.tag, np.count_nonzero(ok))
        return EventFit.missing(event.tag, N, gamma=gfit.gamma, method=gfit.method)

    a = b = math.nan
    if config.fit_ab:
        weights = r2 if config.weighted else None
        a, b = fit_ab(q, dqdt, weights, min_points=config.min_ab_points)

    # retime window estimates to the original samples
    order = np.argsort(tq[ok], kind="stable")
    tq_ok = tq[ok][order]
    q_t = np.interp(t, tq_ok, q[ok][order], left=np.nan, right=np.nan)
    dqdt_t = np.interp(t, tq_ok, dqdt[ok][order], left=np.nan, right=np.nan)

    return EventFit(
        tag=event.tag,
        q=q_t,
        dqdt=dqdt_t,
        dt=dt,
        tq=tq,
        rq=rq,
        r2=r2,
        gamma=gfit.gamma,
        a=a,
        b=b,
        method=gfit.method,
    )

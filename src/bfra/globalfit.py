"""Population-level ("global") recession fit.

全局退水参数拟合

Pools the (q, dQ/dt) estimates of all fitted events and derives the
population parameters b, a, τ0, τ, φ, Q0, Qexp and k:

1. b and τ0 from a Pareto fit of the pooled drainage timescales τ
2. a from the point-cloud intercept with the slope fixed at b
3. Q0 and Qexp from τ0 and τ
4. φ with the configured strategy
5. k from a, b, φ and the basin geometry

Bootstrap confidence bounds for a and b repeat steps 1-2 on events
resampled with replacement.

汇总所有事件的 (q, dQ/dt) 估计，计算全局参数。
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from .aquifer import aquifer_props, check_geometry, expected_q
from .config import BasinGeometry, GlobalFitConfig
from .data import AquiferProps, EventFit, GlobalFit, PhiFit, TauFit
from .exceptions import InsufficientDataError
from .phi import estimate_phi
from .plfit import plfitb
from .pointcloud import pointcloud_intercept

logger = logging.getLogger(__name__)


def event_tau(fits: Sequence[EventFit]) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Pool τ = q/(-dQ/dt), q, dQ/dt and event tags across events.

    汇总各事件的 τ、q、dQ/dt 与事件标签。无效点被剔除。

    Each usable sample contributes its own linear timescale, read directly
    from the fitted q and dQ/dt rather than from the event's a, b fit, so an
    event adds as many τ values as it has usable samples. 每个有效样本贡献
    一个 τ 值，直接由 q 与 dQ/dt 计算，而非由事件的 a、b 推导。

    Returns / 返回
    -------
    tau, q, dqdt : np.ndarray
    tags : np.ndarray of int
    """
    taus, qs, dqdts, tags = [], [], [], []
    for fit in fits:
        q = np.asarray(fit.q, dtype=float)
        dqdt = np.asarray(fit.dqdt, dtype=float)
        with np.errstate(invalid="ignore", divide="ignore"):
            ok = np.isfinite(q) & np.isfinite(dqdt) & (q > 0) & (dqdt < 0)
            tau = q / -dqdt
        taus.append(tau[ok])
        qs.append(q[ok])
        dqdts.append(dqdt[ok])
        tags.append(np.full(np.count_nonzero(ok), fit.tag, dtype=int))
    if not taus:
        empty = np.array([])
        return empty, empty, empty, np.array([], dtype=int)
    return np.concatenate(taus), np.concatenate(qs), np.concatenate(dqdts), np.concatenate(tags)


def _fit_ab(tau, q, dqdt, config: GlobalFitConfig):
    """Steps 1-2: Pareto fit of τ for b, then point-cloud intercept for a."""
    taufit = plfitb(tau, min_tail=config.min_tail, ci_level=config.ci_level)
    a, a_LH, xbar, ybar = pointcloud_intercept(
        q,
        dqdt,
        taufit.b,
        mask=taufit.taumask,
        early_qtls=config.early_qtls,
        late_qtls=config.late_qtls,
        bci=(taufit.b_L, taufit.b_H),
    )
    return taufit, a, a_LH, xbar, ybar


def _bootstrap(tau, q, dqdt, tags, config: GlobalFitConfig) -> np.ndarray:
    """Replicate estimates of (b, a) over events resampled with replacement.

    Each repetition draws from its own generator spawned from the seed, so
    the replicates do not depend on the order they are computed in.
    """
    unique_tags = np.unique(tags)
    groups: Dict[int, np.ndarray] = {int(tag): np.flatnonzero(tags == tag) for tag in unique_tags}
    seeds = np.random.SeedSequence(config.seed).spawn(config.nreps)

    def one_rep(seed_seq) -> Tuple[float, float]:
        rng = np.random.default_rng(seed_seq)
        pick = rng.choice(unique_tags, size=unique_tags.size, replace=True)
        idx = np.concatenate([groups[int(tag)] for tag in pick])
        try:
            taufit, a, _, _, _ = _fit_ab(tau[idx], q[idx], dqdt[idx], config)
        except InsufficientDataError:
            return np.nan, np.nan
        return taufit.b, a

    if config.n_jobs > 1:
        with ThreadPoolExecutor(max_workers=config.n_jobs) as pool:
            reps = list(pool.map(one_rep, seeds))
    else:
        reps = [one_rep(s) for s in seeds]
    return np.asarray(reps, dtype=float).reshape(-1, 2)


def _bootstrap_bounds(samples: np.ndarray, estimate: float, ci_level: float) -> Tuple[float, float]:
    samples = np.sort(samples[np.isfinite(samples)])
    if samples.size == 0:
        return estimate, estimate
    lo, hi = np.quantile(samples, [(1.0 - ci_level) / 2.0, (1.0 + ci_level) / 2.0])
    return min(float(lo), estimate), max(float(hi), estimate)


def global_fit(
    fits: Sequence[EventFit],
    config: Optional[GlobalFitConfig] = None,
    geometry: Optional[BasinGeometry] = None,
    discharge=None,
) -> GlobalFit:
    """Fit population recession parameters from per-event fits.

    由单事件拟合结果计算全局退水参数。

    Parameters / 参数
    ----------
    fits : sequence of EventFit
        Per-event fits from ``fit_ets`` / 来自 fit_ets 的单事件拟合
    config : GlobalFitConfig, optional
        φ method, bootstrap and quantile settings / φ 方法、自助法与分位数设置
    geometry : BasinGeometry, optional
        Basin geometry for φ and k. Checked with ``check_geometry``, which
        may recompute the stream length and warn.
        用于 φ 与 k 的流域几何参数。
    discharge : array-like, optional
        Full flow record used for the exceedance probabilities of Q0 and Qexp.

    Returns / 返回
    -------
    GlobalFit
        With too few pooled points an empty (all-NaN) record is returned.
        Quantities that cannot be derived (φ or k without geometry, Q0 at
        b = 1) are NaN. Nothing is raised for missing data.
        数据不足时返回全 NaN 记录，不抛出异常。
    """
    config = config or GlobalFitConfig()
    geometry = check_geometry(geometry or BasinGeometry())
    phi_name = config.phi_method.value

    tau, q, dqdt, tags = event_tau(fits)
    if q.size < config.min_points:
        logger.warning(
            "Only %d usable (q, dQ/dt) pairs (minimum %d); global fit skipped",
            q.size, config.min_points,
        )
        return GlobalFit.empty(geometry, phi_name)
    logger.info("Global fit on %d points from %d events", q.size, np.unique(tags).size)

    try:
        taufit, a, (a_L, a_H), xbar, ybar = _fit_ab(tau, q, dqdt, config)
    except InsufficientDataError as exc:
        logger.warning("Global fit skipped: %s", exc)
        return GlobalFit.empty(geometry, phi_name)

    b, b_L, b_H = taufit.b, taufit.b_L, taufit.b_H
    if config.bootstrap:
        reps = _bootstrap(tau, q, dqdt, tags, config)
        b_L, b_H = _bootstrap_bounds(reps[:, 0], b, config.ci_level)
        a_L, a_H = _bootstrap_bounds(reps[:, 1], a, config.ci_level)
        logger.info("Bootstrap with %d repetitions: b in [%.4g, %.4g]", config.nreps, b_L, b_H)

    Qexp, Q0, pQexp, pQ0 = expected_q(a, b, taufit.tau, taufit.tau0, discharge)

    try:
        phi = estimate_phi(config.phi_method, q, dqdt, tags, b, geometry,
                           config=config, mask=taufit.taumask)
    except InsufficientDataError as exc:
        logger.info("phi not estimated: %s", exc)
        phi = PhiFit.missing(phi_name)

    try:
        aquifer = aquifer_props(a, b, phi.phi, geometry)
    except InsufficientDataError as exc:
        logger.info("k not estimated: %s", exc)
        aquifer = AquiferProps.missing(geometry)

    return _package(taufit, a, a_L, a_H, b_L, b_H, phi, Q0, Qexp, pQ0, pQexp,
                    aquifer, q, dqdt, tau, tags, xbar, ybar, geometry, config)


def _package(taufit: TauFit, a, a_L, a_H, b_L, b_H, phi, Q0, Qexp, pQ0, pQexp,
             aquifer, q, dqdt, tau, tags, xbar, ybar, geometry, config) -> GlobalFit:
    return GlobalFit(
        a=a, a_L=a_L, a_H=a_H,
        b=taufit.b, b_L=b_L, b_H=b_H,
        tau0=taufit.tau0, tau=taufit.tau, alpha=taufit.alpha,
        phi=phi,
        Q0=Q0, Qexp=Qexp, pQ0=pQ0, pQexp=pQexp,
        aquifer=aquifer,
        q=q, dqdt=dqdt, tau_values=tau, tags=tags,
        taumask=taufit.taumask,
        xbar=xbar, ybar=ybar,
        geometry=geometry,
        bootstrapped=config.bootstrap,
        nreps=config.nreps if config.bootstrap else 0,
    )

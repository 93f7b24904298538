"""Data records passed between pipeline stages.

流程各阶段之间传递的数据记录

Every record is an immutable value: arrays are copied on construction and
flagged read-only, and no record keeps a reference to an earlier stage.
所有记录均为不可变值。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import BasinGeometry
from .exceptions import InvalidInputError


def _frozen(arr, dtype=float) -> np.ndarray:
    out = np.array(arr, dtype=dtype, copy=True).ravel()
    out.setflags(write=False)
    return out


def _to_days(time) -> tuple:
    """Convert a time axis to elapsed days, keeping datetime stamps if given.

    将时间轴转换为以天为单位的数值。
    """
    if isinstance(time, pd.Series):
        time = time.to_numpy()
    if isinstance(time, pd.DatetimeIndex) or np.issubdtype(
        np.asarray(time).dtype, np.datetime64
    ):
        stamps = pd.DatetimeIndex(time)
        days = (stamps - stamps[0]) / pd.Timedelta(days=1)
        return np.asarray(days, dtype=float), stamps
    return np.asarray(time, dtype=float).ravel(), None


@dataclass(frozen=True, eq=False)
class TimeSeries:
    """Discharge (and optional rainfall) series on a time axis.

    流量（及可选降雨）时间序列。

    Attributes / 属性
    -----------------
    time : np.ndarray
        Time in days, strictly increasing / 时间（天），严格递增
    discharge : np.ndarray
        Discharge, >= 0, NaN where missing / 流量，缺测为 NaN
    rainfall : np.ndarray, optional
        Rainfall, >= 0, NaN where missing / 降雨
    timestamps : pd.DatetimeIndex, optional
        Original datetime stamps when the input time axis was datetime-like.
    """

    time: np.ndarray
    discharge: np.ndarray
    rainfall: Optional[np.ndarray] = None
    timestamps: Optional[pd.DatetimeIndex] = None

    @classmethod
    def from_arrays(cls, time, discharge, rainfall=None) -> "TimeSeries":
        """Validate and build a series / 验证并构建序列。

        Raises / 抛出
        ------
        InvalidInputError
            On length mismatch, negative values or a non-increasing time axis.
        """
        days, stamps = _to_days(time)
        q = np.asarray(discharge, dtype=float)
        if q.ndim != 1 or days.ndim != 1:
            raise InvalidInputError("time and discharge must be one-dimensional")
        if len(days) != len(q):
            raise InvalidInputError(
                f"time and discharge lengths differ (got {len(days)} vs {len(q)})"
            )
        if np.any(np.isnan(days)) or np.any(np.diff(days) <= 0):
            raise InvalidInputError("time axis must be strictly increasing")
        if np.any(q[~np.isnan(q)] < 0):
            raise InvalidInputError("discharge must be non-negative")

        r = None
        if rainfall is not None:
            r = np.asarray(rainfall, dtype=float)
            if r.shape != q.shape:
                raise InvalidInputError(
                    f"rainfall and discharge lengths differ (got {r.size} vs {q.size})"
                )
            if np.any(r[~np.isnan(r)] < 0):
                raise InvalidInputError("rainfall must be non-negative")
            r = _frozen(r)

        return cls(time=_frozen(days), discharge=_frozen(q), rainfall=r, timestamps=stamps)

    @classmethod
    def from_series(cls, discharge: pd.Series, rainfall: Optional[pd.Series] = None):
        """Build from pandas Series indexed by time / 从 pandas Series 构建。"""
        r = None if rainfall is None else rainfall.to_numpy(dtype=float)
        return cls.from_arrays(discharge.index, discharge.to_numpy(dtype=float), r)

    def __len__(self) -> int:
        return len(self.discharge)


_INDEX_FIELDS = ("istart", "istop", "imaxima", "iminima", "iconvex", "icandidate", "runlengths")


@dataclass(frozen=True, eq=False)
class EventInfo:
    """Index sets describing detected recession events.

    Attributes / 属性
    -----------------
    istart, istop : np.ndarray
        Inclusive start/stop index of each event / 每个事件的起止索引
    imaxima, iminima : np.ndarray
        Local maximum / minimum that bounds each event
    iconvex : np.ndarray
        Indices of all convex samples of the series
    icandidate : np.ndarray
        Indices of all decreasing samples before the run-length filter
    ikeep : np.ndarray of bool
        Samples belonging to a kept event / 属于保留事件的样本
    runlengths : np.ndarray
        Length of each event
    ifirst : int
        First non-missing index of the series (-1 if all missing)
    datalength : int
        Total number of samples
    """

    istart: np.ndarray
    istop: np.ndarray
    imaxima: np.ndarray
    iminima: np.ndarray
    iconvex: np.ndarray
    icandidate: np.ndarray
    ikeep: np.ndarray
    runlengths: np.ndarray
    ifirst: int
    datalength: int

    def __post_init__(self) -> None:
        for name in _INDEX_FIELDS:
            object.__setattr__(self, name, _frozen(getattr(self, name), dtype=int))
        object.__setattr__(self, "ikeep", _frozen(self.ikeep, dtype=bool))

    @classmethod
    def empty(cls, datalength: int = 0, ifirst: int = -1, **index_sets) -> "EventInfo":
        """Record with no events (all index sets empty, never None)."""
        values = {name: np.array([], dtype=int) for name in _INDEX_FIELDS}
        values.update(index_sets)
        return cls(
            ikeep=np.zeros(datalength, dtype=bool),
            ifirst=ifirst,
            datalength=datalength,
            **values,
        )

    def __len__(self) -> int:
        return len(self.istart)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per event / 每个事件一行。"""
        return pd.DataFrame(
            {
                "tag": np.arange(1, len(self) + 1),
                "istart": self.istart,
                "istop": self.istop,
                "imax": self.imaxima,
                "imin": self.iminima,
                "runlength": self.runlengths,
            }
        )


@dataclass(frozen=True, eq=False)
class Event:
    """One recession event / 一个退水事件。

    ``t`` is the elapsed time since the event start (first value 0).
    """

    tag: int
    time: np.ndarray
    t: np.ndarray
    q: np.ndarray
    r: Optional[np.ndarray]
    istart: int
    istop: int

    def __len__(self) -> int:
        return len(self.q)


@dataclass(frozen=True, eq=False)
class EventFit:
    """Exponential time-step fit of one event / 单个事件的指数时间步拟合结果。

    Per-sample arrays are aligned with the event samples; entries that could
    not be estimated are NaN, never zero.
    逐样本数组与事件样本对齐；无法估计处为 NaN。

    Attributes / 属性
    -----------------
    q : np.ndarray
        Smoothed discharge / 平滑流量
    dqdt : np.ndarray
        Estimated dQ/dt / 估计的 dQ/dt
    dt : np.ndarray
        Window width at each window start
    tq : np.ndarray
        Window centre time (elapsed), at each window start
    rq : np.ndarray
        Mean rainfall in each window
    r2 : np.ndarray
        Goodness of fit of each window regression
    gamma : float
        Decay rate of the whole-event exponential fit
    a, b : float
        Power-law parameters, NaN when not fitted
    method : str
        Name of the strategy that produced gamma, or "failed"
    """

    tag: int
    q: np.ndarray
    dqdt: np.ndarray
    dt: np.ndarray
    tq: np.ndarray
    rq: np.ndarray
    r2: np.ndarray
    gamma: float = math.nan
    a: float = math.nan
    b: float = math.nan
    method: str = "failed"

    @property
    def tau(self) -> np.ndarray:
        """Linear drainage timescale q / (-dQ/dt) of each sample."""
        with np.errstate(divide="ignore", invalid="ignore"):
            return self.q / -self.dqdt

    @property
    def fitted_ab(self) -> bool:
        return not (math.isnan(self.a) or math.isnan(self.b))

    @property
    def is_empty(self) -> bool:
        return not np.any(np.isfinite(self.q) & np.isfinite(self.dqdt))

    @classmethod
    def missing(cls, tag: int, n: int, gamma: float = math.nan, method: str = "failed"):
        """All-NaN fit for an event that could not be fitted."""
        nan = np.full(n, np.nan)
        return cls(tag=tag, q=nan, dqdt=nan, dt=nan, tq=nan, rq=nan, r2=nan,
                   gamma=gamma, method=method)


@dataclass(frozen=True)
class TauFit:
    """Heavy-tailed (Pareto) fit of pooled τ values / τ 的幂律分布拟合。"""

    b: float
    b_L: float
    b_H: float
    alpha: float
    tau0: float
    tau: float
    taumask: np.ndarray = field(repr=False)
    n_tail: int = 0
    ks: float = math.nan


@dataclass(frozen=True)
class PhiFit:
    """Drainable porosity estimate / 可排水孔隙度估计。"""

    method: str
    phi: float
    median: float
    samples: np.ndarray = field(repr=False)
    cdf_x: Optional[np.ndarray] = field(default=None, repr=False)
    cdf_y: Optional[np.ndarray] = field(default=None, repr=False)
    dist_params: Optional[tuple] = None

    @classmethod
    def missing(cls, method: str) -> "PhiFit":
        return cls(method=method, phi=math.nan, median=math.nan, samples=np.array([]))


@dataclass(frozen=True)
class AquiferProps:
    """Hydraulic conductivity inverted from a, b / 由 a、b 反演的导水率。"""

    k: float
    solution: str
    geometry: BasinGeometry

    @classmethod
    def missing(cls, geometry: BasinGeometry) -> "AquiferProps":
        return cls(k=math.nan, solution="none", geometry=geometry)


@dataclass(frozen=True, eq=False)
class GlobalFit:
    """Population-level recession parameters / 全局退水参数。

    Attributes / 属性
    -----------------
    a, a_L, a_H : float
        Scale of -dQ/dt = aQ^b with confidence bounds
    b, b_L, b_H : float
        Exponent with confidence bounds / 指数及置信区间
    tau0 : float
        Threshold τ of the Pareto fit / 幂律拟合阈值
    tau : float
        Representative τ / 代表性 τ
    phi : PhiFit
        Drainable porosity estimate
    Q0, Qexp : float
        Reference and expected discharge
    pQ0, pQexp : float
        Exceedance probability of Q0 and Qexp in the discharge record
    aquifer : AquiferProps
        Hydraulic conductivity
    q, dqdt, tau_values, tags : np.ndarray
        Pooled point cloud
    taumask : np.ndarray of bool
        Points with τ >= tau0
    xbar, ybar : np.ndarray
        Early/late reference points used for a
    """

    a: float
    a_L: float
    a_H: float
    b: float
    b_L: float
    b_H: float
    tau0: float
    tau: float
    alpha: float
    phi: PhiFit
    Q0: float
    Qexp: float
    pQ0: float
    pQexp: float
    aquifer: AquiferProps
    q: np.ndarray
    dqdt: np.ndarray
    tau_values: np.ndarray
    tags: np.ndarray
    taumask: np.ndarray
    xbar: np.ndarray
    ybar: np.ndarray
    geometry: BasinGeometry
    bootstrapped: bool = False
    nreps: int = 0

    @property
    def k(self) -> float:
        return self.aquifer.k

    @classmethod
    def empty(cls, geometry: Optional[BasinGeometry] = None, phi_method: str = "none"):
        """Degraded record used when there is no usable data."""
        geometry = geometry or BasinGeometry()
        nan = math.nan
        none = np.array([])
        return cls(
            a=nan, a_L=nan, a_H=nan, b=nan, b_L=nan, b_H=nan,
            tau0=nan, tau=nan, alpha=nan,
            phi=PhiFit.missing(phi_method),
            Q0=nan, Qexp=nan, pQ0=nan, pQexp=nan,
            aquifer=AquiferProps.missing(geometry),
            q=none, dqdt=none, tau_values=none, tags=np.array([], dtype=int),
            taumask=np.array([], dtype=bool), xbar=none, ybar=none,
            geometry=geometry,
        )

    def to_dict(self) -> Dict[str, float]:
        """Scalar summary / 标量汇总。"""
        return {
            "a": self.a, "a_L": self.a_L, "a_H": self.a_H,
            "b": self.b, "b_L": self.b_L, "b_H": self.b_H,
            "tau0": self.tau0, "tau": self.tau, "alpha": self.alpha,
            "phi": self.phi.phi, "phi_median": self.phi.median,
            "Q0": self.Q0, "Qexp": self.Qexp, "pQ0": self.pQ0, "pQexp": self.pQexp,
            "k": self.k, "npoints": int(self.q.size),
            "ntau": int(np.count_nonzero(self.taumask)),
        }


def fits_to_dataframe(fits: Sequence[EventFit]) -> pd.DataFrame:
    """Long table of per-sample fits across events.

    将各事件的逐样本拟合结果整理为长表。

    Columns: tag, tq, tau, q, dqdt, dt, rq, r2, a, b.
    """
    columns: List[str] = ["tag", "tq", "tau", "q", "dqdt", "dt", "rq", "r2", "a", "b"]
    frames = []
    for fit in fits:
        n = len(fit.q)
        frames.append(
            pd.DataFrame(
                {
                    "tag": np.full(n, fit.tag, dtype=int),
                    "tq": fit.tq,
                    "tau": fit.tau,
                    "q": fit.q,
                    "dqdt": fit.dqdt,
                    "dt": fit.dt,
                    "rq": fit.rq,
                    "r2": fit.r2,
                    "a": np.full(n, fit.a),
                    "b": np.full(n, fit.b),
                }
            )
        )
    if not frames:
        return pd.DataFrame({name: pd.Series(dtype=float) for name in columns})
    return pd.concat(frames, ignore_index=True)[columns]

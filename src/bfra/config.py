"""Typed configuration for the recession analysis pipeline.

退水分析流程的类型化配置

Every stage takes one of the frozen dataclasses below. All fields have
defaults and are validated once, on construction.
所有字段均有默认值，并在构造时验证一次。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

from .exceptions import InvalidInputError


class PhiMethod(str, Enum):
    """Strategy used to estimate drainable porosity / 可排水孔隙度估计方法。"""

    POINTCLOUD = "pointcloud"
    DISTFIT = "distfit"
    PHICOMBO = "phicombo"


def _check_qtls(name: str, qtls: Tuple[float, float]) -> Tuple[float, float]:
    if len(qtls) != 2:
        raise InvalidInputError(f"{name} must be a pair of quantiles")
    pair = (float(qtls[0]), float(qtls[1]))
    if not all(0.0 <= v <= 1.0 for v in pair):
        raise InvalidInputError(f"{name} must lie in [0, 1] (got {pair})")
    return pair


@dataclass(frozen=True)
class EventConfig:
    """Event detection settings / 事件识别设置。

    Attributes / 属性
    -----------------
    min_length : int
        Minimum number of consecutive decreasing samples for a candidate
        recession. 候选退水段的最小连续下降样本数。
    exclude_rain : bool
        Drop samples whose rainfall exceeds ``rain_threshold``.
        剔除降雨超过阈值的样本。
    rain_threshold : float
        Rainfall at or below this value is treated as negligible.
    flat_policy : {"increasing", "decreasing"}
        Whether a zero derivative counts as increasing or decreasing.
    require_convex : bool
        Keep only convex (second difference >= 0) samples as candidates.
    """

    min_length: int = 4
    exclude_rain: bool = False
    rain_threshold: float = 0.0
    flat_policy: Literal["increasing", "decreasing"] = "increasing"
    require_convex: bool = False

    def __post_init__(self) -> None:
        if int(self.min_length) < 1:
            raise InvalidInputError("min_length must be >= 1")
        if self.rain_threshold < 0:
            raise InvalidInputError("rain_threshold must be >= 0")
        if self.flat_policy not in ("increasing", "decreasing"):
            raise InvalidInputError(
                f"flat_policy must be 'increasing' or 'decreasing' (got {self.flat_policy!r})"
            )


@dataclass(frozen=True)
class FitConfig:
    """Exponential time-step fitting settings / 指数时间步拟合设置。

    Attributes / 属性
    -----------------
    window_fraction : float
        Fraction of the event duration the window may grow to (default 20%).
        窗口可增长到的事件持续时间比例（默认 20%）。
    fit_ab : bool
        Fit a, b in -dQ/dt = aQ^b for each event.
    weighted : bool
        Use r² as regression weights when fitting a, b.
    min_ab_points : int
        Minimum usable (q, dQ/dt) pairs needed to fit a, b.
    maxfev : int
        Iteration cap for the nonlinear decay fit.
    """

    window_fraction: float = 0.20
    fit_ab: bool = True
    weighted: bool = True
    min_ab_points: int = 5
    maxfev: int = 2000

    def __post_init__(self) -> None:
        if not 0.0 < self.window_fraction <= 1.0:
            raise InvalidInputError("window_fraction must be in (0, 1]")
        if self.min_ab_points < 2:
            raise InvalidInputError("min_ab_points must be >= 2")
        if self.maxfev < 1:
            raise InvalidInputError("maxfev must be >= 1")


@dataclass(frozen=True)
class BasinGeometry:
    """Basin geometry used to convert a, b into aquifer properties.

    用于将 a、b 转换为含水层属性的流域几何参数。NaN 表示未知。

    Attributes / 属性
    -----------------
    area : float
        Drainage area [m²] / 流域面积
    depth : float
        Reference aquifer (active layer) thickness [m] / 含水层厚度
    stream_length : float
        Effective stream network length [m] / 河网长度
    drainage_density : float
        Drainage density [1/km], as usually reported (km/km²) / 河网密度
    slope : float
        Aquifer slope [rad] / 含水层坡度
    isflat : bool
        Use the horizontal aquifer solutions.
    """

    area: float = math.nan
    depth: float = math.nan
    stream_length: float = math.nan
    drainage_density: float = math.nan
    slope: float = math.nan
    isflat: bool = True

    def __post_init__(self) -> None:
        for name in ("area", "depth", "stream_length", "drainage_density"):
            value = float(getattr(self, name))
            object.__setattr__(self, name, value)
            if not math.isnan(value) and value <= 0:
                raise InvalidInputError(f"{name} must be positive or NaN (got {value})")
        object.__setattr__(self, "slope", float(self.slope))


@dataclass(frozen=True)
class GlobalFitConfig:
    """Population-level fitting settings / 全局拟合设置。

    Attributes / 属性
    -----------------
    phi_method : PhiMethod
        pointcloud, distfit or phicombo.
    bootstrap : bool
        Replace analytic confidence bounds with bootstrap bounds.
    nreps : int
        Number of bootstrap repetitions / 自助法重复次数
    seed : int, optional
        Seed for the bootstrap; required for reproducible bounds.
    n_jobs : int
        Worker threads for the bootstrap.
    early_qtls, late_qtls : tuple of float
        (q, -dQ/dt) quantile pairs of the early-time and late-time
        reference points. 早期与晚期参考点的分位数对。
    ref_qtls : tuple of float
        Quantile pair of the late-time point used by the point-cloud φ fit.
    ci_level : float
        Confidence level of the reported bounds.
    min_tail : int
        Minimum number of τ values above the fitted threshold.
    min_points : int
        Minimum pooled (q, dQ/dt) pairs for any population fit.
    phi_cdf : bool
        Also report the fitted φ CDF.
    """

    phi_method: PhiMethod = PhiMethod.POINTCLOUD
    bootstrap: bool = False
    nreps: int = 1000
    seed: Optional[int] = None
    n_jobs: int = 1
    early_qtls: Tuple[float, float] = (0.90, 0.90)
    late_qtls: Tuple[float, float] = (0.50, 0.50)
    ref_qtls: Tuple[float, float] = (0.50, 0.50)
    ci_level: float = 0.95
    min_tail: int = 10
    min_points: int = 5
    phi_cdf: bool = False

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "phi_method", PhiMethod(self.phi_method))
        except ValueError as exc:
            raise InvalidInputError(
                f"phi_method must be one of {[m.value for m in PhiMethod]}"
            ) from exc
        for name in ("early_qtls", "late_qtls", "ref_qtls"):
            object.__setattr__(self, name, _check_qtls(name, getattr(self, name)))
        if self.nreps < 1:
            raise InvalidInputError("nreps must be >= 1")
        if self.n_jobs < 1:
            raise InvalidInputError("n_jobs must be >= 1")
        if not 0.0 < self.ci_level < 1.0:
            raise InvalidInputError("ci_level must be in (0, 1)")
        if self.min_tail < 2:
            raise InvalidInputError("min_tail must be >= 2")
        if self.min_points < 2:
            raise InvalidInputError("min_points must be >= 2")


@dataclass(frozen=True)
class BFRAConfig:
    """Configuration for one pipeline run / 一次流程运行的配置。"""

    events: EventConfig = field(default_factory=EventConfig)
    fit: FitConfig = field(default_factory=FitConfig)
    globalfit: GlobalFitConfig = field(default_factory=GlobalFitConfig)
    geometry: BasinGeometry = field(default_factory=BasinGeometry)

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Mapping[str, Any]]) -> "BFRAConfig":
        """Build a config from a nested mapping, e.g. parsed JSON.

        Example / 示例
        --------------
        >>> BFRAConfig.from_dict({"fit": {"window_fraction": 0.1}})
        """
        sections: Dict[str, type] = {
            "events": EventConfig,
            "fit": FitConfig,
            "globalfit": GlobalFitConfig,
            "geometry": BasinGeometry,
        }
        unknown = set(mapping) - set(sections)
        if unknown:
            raise InvalidInputError(f"unknown config sections: {sorted(unknown)}")

        kwargs = {}
        for name, section_cls in sections.items():
            values = dict(mapping.get(name, {}))
            allowed = {f.name for f in fields(section_cls)}
            bad = set(values) - allowed
            if bad:
                raise InvalidInputError(f"unknown keys in '{name}': {sorted(bad)}")
            for key in ("early_qtls", "late_qtls", "ref_qtls"):
                if key in values:
                    values[key] = tuple(values[key])
            kwargs[name] = section_cls(**values)
        return cls(**kwargs)


def default_config() -> BFRAConfig:
    return BFRAConfig()

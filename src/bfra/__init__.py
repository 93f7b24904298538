"""Baseflow Recession Analysis (BFRA) Package.

BFRA 基流退水分析包

This package infers aquifer hydraulic properties from streamflow recession
curves: recession events are detected in a discharge series, each event is
fitted with the power-law model -dQ/dt = aQ^b, and the pooled event fits
yield population estimates of b, a, the drainage timescale τ, drainable
porosity φ and hydraulic conductivity k.

本包从径流退水曲线推断含水层水力属性：识别退水事件，对每个事件拟合
幂律模型 -dQ/dt = aQ^b，并由汇总结果估计全局参数 b、a、τ、φ 与 k。

Main Functions / 主要函数:
--------------------------
- analyze(): Full pipeline / 完整流程
- find_events(), get_events(): Event detection / 事件识别
- fit_ets(): Exponential time-step fit of one event / 单事件拟合
- global_fit(): Population fit / 全局拟合

References / 参考文献:
---------------------
Brutsaert, W., Nieber, J.L. (1977). Regionalized drought flow hydrographs
from a mature glaciated plateau. Water Resources Research, 13(3), 637-643.

Roques, C., Rupp, D.E., Selker, J.S. (2017). Improved streamflow recession
parameter estimation with attention to calculation of -dQ/dt. Advances in
Water Resources, 108, 29-43.

Clauset, A., Shalizi, C.R., Newman, M.E.J. (2009). Power-law distributions
in empirical data. SIAM Review, 51(4), 661-703.
"""

from .config import (
    BasinGeometry,
    BFRAConfig,
    EventConfig,
    FitConfig,
    GlobalFitConfig,
    PhiMethod,
    default_config,
)
from .data import (
    AquiferProps,
    Event,
    EventFit,
    EventInfo,
    GlobalFit,
    PhiFit,
    TauFit,
    TimeSeries,
    fits_to_dataframe,
)
from .eventfinder import find_events, get_events
from .exceptions import (
    BFRAError,
    DegenerateFitError,
    GeometryInconsistencyWarning,
    InsufficientDataError,
    InvalidInputError,
)
from .fitets import fit_ets
from .globalfit import global_fit
from .pipeline import AnalysisResult, analyze, fit_events

__version__ = "0.1.0"

__all__ = [
    "analyze",
    "AnalysisResult",
    "find_events",
    "get_events",
    "fit_ets",
    "fit_events",
    "global_fit",
    "fits_to_dataframe",
    "TimeSeries",
    "EventInfo",
    "Event",
    "EventFit",
    "TauFit",
    "PhiFit",
    "AquiferProps",
    "GlobalFit",
    "BFRAConfig",
    "EventConfig",
    "FitConfig",
    "GlobalFitConfig",
    "BasinGeometry",
    "PhiMethod",
    "default_config",
    "BFRAError",
    "InvalidInputError",
    "DegenerateFitError",
    "InsufficientDataError",
    "GeometryInconsistencyWarning",
    "__version__",
]

"""Exception and warning types for baseflow recession analysis.

基流退水分析的异常与警告类型
"""

from __future__ import annotations


class BFRAError(Exception):
    """Base class for all bfra errors / 所有 bfra 错误的基类。"""


class InvalidInputError(BFRAError, ValueError):
    """Malformed input data or configuration. Fatal, never retried.

    输入数据或配置格式错误（致命错误）。
    """


class DegenerateFitError(BFRAError, RuntimeError):
    """A regression failed to converge or gave a non-physical result.

    Raised by low-level fitting helpers and always recovered by marking the
    affected event or window as missing.
    """


class InsufficientDataError(BFRAError, ValueError):
    """Too few usable points, or missing inputs, for a requested fit."""


class GeometryInconsistencyWarning(UserWarning):
    """Basin geometry inputs disagree and were recomputed.

    流域几何参数不一致，已重新计算。
    """

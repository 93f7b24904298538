"""Recession event detection.

退水事件识别

This module scans a discharge series (and optional rainfall series) for
contiguous recession segments: runs of decreasing discharge of at least a
minimum length, bounded by the local maximum that precedes them and the
local minimum that follows them.

本模块在流量序列（及可选降雨序列）中搜索连续的退水段。
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from .config import EventConfig
from .data import Event, EventInfo, TimeSeries
from .exceptions import InvalidInputError
from .runlength import is_min_length

logger = logging.getLogger(__name__)


def derivative(values, time: Optional[np.ndarray] = None) -> np.ndarray:
    """Centred first difference, one-sided at the ends. NaN propagates.

    中心差分导数，端点使用单侧差分。
    """
    values = np.asarray(values, dtype=float)
    if values.size < 2:
        return np.full(values.size, np.nan)
    if time is None:
        return np.gradient(values)
    return np.gradient(values, np.asarray(time, dtype=float))


def find_events(series: TimeSeries, config: Optional[EventConfig] = None) -> EventInfo:
    """Locate recession events in a discharge series.

    在流量序列中定位退水事件。

    Parameters / 参数
    ----------
    series : TimeSeries
        Discharge and optional rainfall / 流量与可选降雨
    config : EventConfig, optional
        Detection settings. Defaults to ``EventConfig()``.
        识别设置，默认为 EventConfig()。

    Returns / 返回
    -------
    EventInfo
        Index sets of the detected events. With no events every index set is
        empty (never None). 无事件时所有索引集合为空。

    Raises / 抛出
    ------
    InvalidInputError
        If rainfall and discharge lengths differ.
    """
    config = config or EventConfig()
    q = np.asarray(series.discharge, dtype=float)
    r = series.rainfall
    n = q.size
    if r is not None and len(r) != n:
        raise InvalidInputError(
            f"rainfall and discharge lengths differ (got {len(r)} vs {n})"
        )

    finite = np.isfinite(q)
    ifirst = int(np.argmax(finite)) if finite.any() else -1
    if n < 2 or not finite.any():
        logger.info("No usable discharge values; returning no events.")
        return EventInfo.empty(n, ifirst)

    d2qdt = derivative(derivative(q, series.time), series.time)

    # decreasing[i] marks the step i -> i+1; the last sample has no step
    decreasing = np.zeros(n, dtype=bool)
    with np.errstate(invalid="ignore"):
        step = np.diff(q)
        if config.flat_policy == "decreasing":
            decreasing[:-1] = step <= 0
        else:
            decreasing[:-1] = step < 0
        convex = d2qdt >= 0

    candidate = decreasing & finite
    if config.require_convex:
        candidate &= convex

    dry = np.ones(n, dtype=bool)
    if config.exclude_rain and r is not None:
        with np.errstate(invalid="ignore"):
            dry = ~(np.asarray(r, dtype=float) > config.rain_threshold)
        candidate &= dry

    usable = finite & dry
    # a run of k falling steps spans k + 1 samples
    _, starts, ends = is_min_length(candidate, config.min_length - 1)

    # Pre-sized buffers indexed by candidate number, trimmed by `keep` at the end.
    ncand = starts.size
    istart = np.empty(ncand, dtype=int)
    istop = np.empty(ncand, dtype=int)
    imaxima = np.empty(ncand, dtype=int)
    iminima = np.empty(ncand, dtype=int)
    keep = np.zeros(ncand, dtype=bool)
    prev_stop = -1

    for i, (s, e) in enumerate(zip(starts, ends)):
        # move onto the local maximum before the run and the minimum after it
        if s - 1 > prev_stop and usable[s - 1] and q[s - 1] > q[s]:
            s -= 1
        if e + 1 < n and usable[e + 1] and q[e + 1] < q[e]:
            e += 1

        window = q[s : e + 1]
        nvalid = int(np.count_nonzero(np.isfinite(window)))
        if nvalid == 0 or (e - s + 1) < config.min_length:
            logger.debug("Dropping candidate %d (%d valid samples)", i, nvalid)
            continue

        istart[i], istop[i] = s, e
        imaxima[i] = s + int(np.nanargmax(window))
        iminima[i] = s + int(np.nanargmin(window))
        keep[i] = True
        prev_stop = e

    ikeep = np.zeros(n, dtype=bool)
    for s, e in zip(istart[keep], istop[keep]):
        ikeep[s : e + 1] = True

    info = EventInfo(
        istart=istart[keep],
        istop=istop[keep],
        imaxima=imaxima[keep],
        iminima=iminima[keep],
        iconvex=np.flatnonzero(convex & finite),
        icandidate=np.flatnonzero(candidate),
        ikeep=ikeep,
        runlengths=istop[keep] - istart[keep] + 1,
        ifirst=ifirst,
        datalength=n,
    )
    logger.info("Found %d recession events in %d samples", len(info), n)
    return info


def get_events(series: TimeSeries, info: EventInfo) -> List[Event]:
    """Slice the kept events out of a series / 从序列中截取事件。"""
    events = []
    for tag, (s, e) in enumerate(zip(info.istart, info.istop), start=1):
        time = series.time[s : e + 1]
        events.append(
            Event(
                tag=tag,
                time=time.copy(),
                t=time - time[0],
                q=series.discharge[s : e + 1].copy(),
                r=None if series.rainfall is None else series.rainfall[s : e + 1].copy(),
                istart=int(s),
                istop=int(e),
            )
        )
    return events

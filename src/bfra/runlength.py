"""Run-length filtering of boolean masks.

布尔掩码的游程长度过滤
"""

from __future__ import annotations

from typing import Tuple

import numpy as np


def run_lengths(mask) -> np.ndarray:
    """Length of the run of True values each position belongs to.

    False positions get 0. / 返回每个位置所属 True 游程的长度，False 处为 0。
    """
    tf = np.asarray(mask, dtype=bool).ravel()
    out = np.zeros(tf.size, dtype=int)
    if tf.size == 0:
        return out

    padded = np.concatenate(([False], tf, [False])).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)  # exclusive
    for start, end in zip(starts, ends):
        out[start:end] = end - start
    return out


def is_min_length(mask, min_length: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Keep only runs of True that are at least ``min_length`` long.

    仅保留长度不少于 min_length 的 True 游程。

    Parameters / 参数
    ----------
    mask : array-like of bool
        Input mask / 输入掩码
    min_length : int
        Minimum run length. Values <= 1 return the mask unchanged.
        最小游程长度；<=1 时原样返回。

    Returns / 返回
    -------
    filtered : np.ndarray of bool
        Subset of ``mask`` holding only the surviving runs
    starts : np.ndarray of int
        First index of each surviving run
    ends : np.ndarray of int
        Last index (inclusive) of each surviving run
    """
    tf = np.asarray(mask, dtype=bool).ravel()
    filtered = run_lengths(tf) >= max(int(min_length), 1)
    filtered &= tf

    padded = np.concatenate(([False], filtered, [False])).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1) - 1
    return filtered, starts, ends

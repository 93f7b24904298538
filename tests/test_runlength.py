from itertools import product
from pathlib import Path
import sys

import numpy as np

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from bfra.runlength import is_min_length, run_lengths


def _runs(mask):
    runs = []
    start = None
    for i, v in enumerate(mask):
        if v and start is None:
            start = i
        if not v and start is not None:
            runs.append((start, i - 1))
            start = None
    if start is not None:
        runs.append((start, len(mask) - 1))
    return runs


def test_run_lengths_labels_each_position():
    mask = np.array([1, 1, 0, 1, 0, 0, 1, 1, 1], dtype=bool)
    np.testing.assert_array_equal(run_lengths(mask), [2, 2, 0, 1, 0, 0, 3, 3, 3])
    assert run_lengths(np.array([], dtype=bool)).size == 0


def test_is_min_length_keeps_only_long_runs_for_all_masks():
    for bits in product([False, True], repeat=8):
        mask = np.array(bits)
        for min_length in range(1, 5):
            filtered, starts, ends = is_min_length(mask, min_length)

            # subset of the input
            assert not np.any(filtered & ~mask)

            expected = [(s, e) for s, e in _runs(mask) if e - s + 1 >= min_length]
            assert list(zip(starts.tolist(), ends.tolist())) == expected
            assert _runs(filtered) == expected


def test_is_min_length_one_returns_mask_unchanged():
    mask = np.array([0, 1, 0, 1, 1], dtype=bool)
    filtered, starts, ends = is_min_length(mask, 1)
    np.testing.assert_array_equal(filtered, mask)
    np.testing.assert_array_equal(starts, [1, 3])
    np.testing.assert_array_equal(ends, [1, 4])

import logging
from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from bfra.config import EventConfig
from bfra.data import TimeSeries
from bfra.eventfinder import derivative, find_events, get_events
from bfra.exceptions import InvalidInputError


def _series(q, rainfall=None):
    t = np.arange(len(q), dtype=float)
    return TimeSeries.from_arrays(t, q, rainfall)


def test_single_recession_gives_one_event_from_peak_to_end():
    q = np.array([1, 2, 3, 4, 5, 6, 5, 4, 3, 2, 1, 0.5], dtype=float)

    info = find_events(_series(q))

    assert len(info) == 1
    assert info.istart[0] == 5
    assert info.istop[0] == 11
    assert info.imaxima[0] == 5
    assert info.iminima[0] == 11
    np.testing.assert_array_equal(info.runlengths, [7])
    assert info.ikeep[5:].all() and not info.ikeep[:5].any()


def test_increasing_series_has_no_events(caplog):
    q = np.linspace(1.0, 10.0, 20)

    with caplog.at_level(logging.INFO, logger="bfra.eventfinder"):
        info = find_events(_series(q))

    assert len(info) == 0
    for name in ("istart", "istop", "imaxima", "iminima", "runlengths"):
        assert getattr(info, name).size == 0
    assert not info.ikeep.any()
    assert "Found 0 recession events" in caplog.text


def test_short_recessions_are_dropped():
    q = np.array([5, 4, 6, 7, 8, 9, 10, 9, 8, 7, 6, 5, 4], dtype=float)

    info = find_events(_series(q), EventConfig(min_length=4))

    assert len(info) == 1
    assert info.istart[0] == 6
    assert info.istop[0] == 12


def test_rain_splits_recession_when_excluded():
    t = np.arange(20, dtype=float)
    q = 10.0 * np.exp(-0.1 * t)
    r = np.zeros(20)
    r[10] = 5.0

    wet = find_events(_series(q, r), EventConfig(exclude_rain=False))
    dry = find_events(_series(q, r), EventConfig(exclude_rain=True))

    assert len(wet) == 1
    assert len(dry) == 2
    np.testing.assert_array_equal(dry.istart, [0, 11])
    np.testing.assert_array_equal(dry.istop, [9, 19])
    assert not dry.ikeep[10]


def test_all_missing_discharge_returns_empty_info():
    info = find_events(_series(np.full(10, np.nan)))
    assert len(info) == 0
    assert info.ifirst == -1
    assert info.datalength == 10


def test_rainfall_length_mismatch_is_rejected():
    with pytest.raises(InvalidInputError):
        _series(np.ones(10), rainfall=np.zeros(9))


def test_get_events_slices_series():
    q = np.concatenate([np.linspace(1, 8, 8), 8 * np.exp(-0.2 * np.arange(1, 11)),
                        np.linspace(2, 9, 6), 9 * np.exp(-0.3 * np.arange(1, 9))])
    series = _series(q)

    info = find_events(series)
    events = get_events(series, info)

    assert [e.tag for e in events] == list(range(1, len(info) + 1))
    assert len(events) == 2
    for event, s, e in zip(events, info.istart, info.istop):
        assert event.t[0] == 0.0
        np.testing.assert_array_equal(event.q, q[s : e + 1])
        assert len(event) == e - s + 1
        assert event.r is None


def test_derivative_uses_time_axis():
    t = np.array([0.0, 2.0, 4.0, 6.0])
    np.testing.assert_allclose(derivative(3.0 * t, t), 3.0)
    assert np.isnan(derivative([1.0])).all()


def _interior_recession(length):
    # rise, `length` strictly falling samples starting at index 3, rise again
    fall = 10.0 - np.arange(length, dtype=float)
    return np.concatenate([[1.0, 2.0, 3.0], fall, fall[-1] + np.array([1.0, 2.0])])


@pytest.mark.parametrize("min_length", [2, 3, 4, 5, 6])
@pytest.mark.parametrize("extra", [0, 1])
def test_interior_recession_at_min_length_is_kept(min_length, extra):
    length = min_length + extra

    info = find_events(_series(_interior_recession(length)), EventConfig(min_length=min_length))

    assert len(info) == 1
    assert info.istart[0] == 3
    assert info.istop[0] == 3 + length - 1
    np.testing.assert_array_equal(info.runlengths, [length])


@pytest.mark.parametrize("min_length", [2, 3, 4, 5, 6])
def test_interior_recession_shorter_than_min_length_is_dropped(min_length):
    q = _interior_recession(min_length - 1)
    info = find_events(_series(q), EventConfig(min_length=min_length))
    assert len(info) == 0


@pytest.mark.parametrize(
    "q, min_length, bounds",
    [
        ([1, 2, 3, 2, 1, 0.5, 2, 3], 4, (2, 5)),
        ([1, 2, 3, 2, 1, 2, 3], 3, (2, 4)),
    ],
)
def test_recession_between_rises(q, min_length, bounds):
    info = find_events(_series(np.asarray(q, dtype=float)), EventConfig(min_length=min_length))

    assert len(info) == 1
    assert (info.istart[0], info.istop[0]) == bounds
    assert info.imaxima[0] == bounds[0]
    assert info.iminima[0] == bounds[1]


def test_flat_step_policy():
    q = np.array([1, 5, 4, 4, 3, 2, 6], dtype=float)

    strict = find_events(_series(q), EventConfig(min_length=4))
    flat = find_events(_series(q), EventConfig(min_length=4, flat_policy="decreasing"))

    assert len(strict) == 0
    assert len(flat) == 1
    assert (flat.istart[0], flat.istop[0]) == (1, 5)


def test_require_convex_drops_concave_recession():
    q = np.array([5, 10, 9, 6, 1, 4, 8], dtype=float)

    loose = find_events(_series(q), EventConfig(min_length=4))
    convex = find_events(_series(q), EventConfig(min_length=4, require_convex=True))

    assert (loose.istart[0], loose.istop[0]) == (1, 4)
    assert len(convex) == 0
    assert 1 not in convex.iconvex and 2 not in convex.iconvex


def test_require_convex_keeps_exponential_recession():
    q = 10.0 * np.exp(-0.1 * np.arange(20, dtype=float))

    info = find_events(_series(q), EventConfig(require_convex=True))

    assert len(info) == 1
    assert (info.istart[0], info.istop[0]) == (0, 19)

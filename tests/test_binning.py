import numpy as np
import pytest

from track_refinery.binning import Aggregation, BinnedIntervalIter, bin_of, weighted_sum
from track_refinery.errors import InvalidRangeError
from track_refinery.interval import Interval

from helpers import as_triples, part


def test_bin_roundtrip_one_entry_per_bin():
    # one entry per bin; should round-trip exactly under mean aggregation
    values = [1.0, 2.0, -1.0, 0.0, 5.5]
    p = part(*[(b * 10, b * 10 + 9, v) for b, v in enumerate(values)])
    got = as_triples(BinnedIntervalIter(p, 10, "mean"))
    assert [v for _, _, v in got] == values
    assert [(s, e) for s, e, _ in got] == [(b * 10, b * 10 + 9) for b in range(5)]


def test_bin_partial_overlap_mean_over_covered():
    # [0,4] with value 2 covers half of bin0; mean is over covered bp, not the full bin
    p = part((0, 4, 2.0))
    assert as_triples(BinnedIntervalIter(p, 10, Aggregation.AVERAGE)) == [(0, 9, 2.0)]
    assert as_triples(BinnedIntervalIter(p, 10, Aggregation.SUM)) == [(0, 9, 10.0)]


def test_interval_spanning_bins_is_apportioned():
    p = part((5, 24, 1.0), (27, 28, 4.0))
    assert as_triples(BinnedIntervalIter(p, 10, "sum")) == [
        (0, 9, 5.0),
        (10, 19, 10.0),
        (20, 29, 13.0),
    ]
    assert as_triples(BinnedIntervalIter(p, 10, "mean")) == [
        (0, 9, 1.0),
        (10, 19, 1.0),
        (20, 29, pytest.approx(13.0 / 7)),
    ]


def test_empty_bins_are_omitted():
    p = part((0, 4, 1.0), (100, 104, 2.0))
    got = as_triples(BinnedIntervalIter(p, 10, "sum"))
    assert [(s, e) for s, e, _ in got] == [(0, 9), (100, 109)]


def test_zero_bin_size_passes_through():
    p = part((3, 7, 1.0), (9, 12, 2.0))
    assert as_triples(BinnedIntervalIter(p, 0, "sum")) == as_triples(p)


def test_negative_coordinates_are_zero_aligned():
    assert bin_of(-1, 10) == Interval(-10, -1)
    p = part((-15, -6, 1.0))
    assert as_triples(BinnedIntervalIter(p, 10, "sum")) == [(-20, -11, 5.0), (-10, -1, 5.0)]


def test_rebinning_is_composable():
    p = part((0, 14, 2.0), (15, 39, 4.0))
    once = list(BinnedIntervalIter(p, 10, "mean"))
    twice = list(BinnedIntervalIter(BinnedIntervalIter(p, 10, "mean"), 10, "mean"))
    assert as_triples(once) == as_triples(twice)

    coarse = as_triples(BinnedIntervalIter(BinnedIntervalIter(p, 10, "mean"), 20, "mean"))
    assert coarse == [(0, 19, 2.5), (20, 39, 4.0)]


def test_sum_conserves_mass():
    rng = np.random.default_rng(11)
    p = part(*[(int(s), int(s) + int(n), float(v)) for s, n, v in zip(
        rng.integers(0, 1000, 50), rng.integers(0, 40, 50), rng.normal(size=50)
    )])
    for bin_size in (1, 7, 50, 333):
        binned_total = sum(v for _, v in BinnedIntervalIter(p, bin_size, "sum"))
        assert binned_total == pytest.approx(weighted_sum(p), abs=1e-9)


def test_invalid_arguments():
    with pytest.raises(InvalidRangeError):
        BinnedIntervalIter(part((0, 1, 1.0)), -5)
    with pytest.raises(ValueError):
        BinnedIntervalIter(part((0, 1, 1.0)), 5, "median")

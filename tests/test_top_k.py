import math

import numpy as np
import pytest

from track_refinery.errors import InvalidRangeError
from track_refinery.interval import Interval
from track_refinery.partition import Partition
from track_refinery.top_k import (
    count_common_bins,
    get_k,
    get_top_k,
    get_top_k_across_chroms,
    get_top_k_fraction_overlap_ratio,
    get_top_k_fraction_overlap_ratio_across_chroms,
    get_top_k_overlap_ratio,
    get_top_k_overlap_ratio_across_chroms,
)

from helpers import as_triples, half_open, part


def test_top_k_binned():
    chr1 = half_open((100, 200, 10.0), (200, 250, 75.0), (300, 350, 125.0), (400, 450, 25.0), (450, 500, 500.0))
    assert as_triples(get_top_k(chr1, 3, 50)) == [(200, 249, 75.0), (300, 349, 125.0), (450, 499, 500.0)]

    chr3 = half_open((2000, 2100, 25.0))
    assert as_triples(get_top_k(chr3, 3, 50)) == [(2000, 2049, 25.0), (2050, 2099, 25.0)]


def test_top_k_unbinned_and_zero():
    p = part((0, 9, 1.0), (10, 19, 3.0), (20, 29, 2.0))
    assert as_triples(get_top_k(p, 2)) == [(10, 19, 3.0), (20, 29, 2.0)]
    assert len(get_top_k(p, 0)) == 0
    with pytest.raises(InvalidRangeError):
        get_top_k(p, -1)


def test_top_k_ties_keep_earliest():
    p = part((0, 9, 5.0), (10, 19, 5.0), (20, 29, 5.0), (30, 39, 1.0))
    assert as_triples(get_top_k(p, 2)) == [(0, 9, 5.0), (10, 19, 5.0)]


def test_top_k_size_bound():
    rng = np.random.default_rng(5)
    p = Partition()
    for _ in range(60):
        s = int(rng.integers(0, 2000))
        p.aggregate(Interval(s, s + int(rng.integers(0, 30))), float(rng.normal()))
    for k in (0, 1, 7, len(p), len(p) + 10):
        top = get_top_k(p, k)
        assert len(top) == min(k, len(p))
        if len(top):
            kept = {v for _, v in top}
            dropped = [v for iv, v in p if top.value_at(iv.start) is None]
            assert all(d <= min(kept) for d in dropped)


def test_overlap_ratio_k1():
    a = part((0, 9, 5.0), (10, 19, 1.0))
    same = part((0, 9, 3.0), (10, 19, 2.0))
    other = part((0, 9, 1.0), (10, 19, 4.0))
    assert get_top_k_overlap_ratio(a, same, 1, 10) == 1.0
    assert get_top_k_overlap_ratio(a, other, 1, 10) == 0.0


def test_overlap_ratio_empty_is_nan():
    assert math.isnan(get_top_k_overlap_ratio(Partition(), Partition(), 3, 10))


def _collections():
    c1 = {
        "chr1": half_open((100, 200, 10.0), (200, 250, 75.0), (300, 350, 125.0), (400, 450, 25.0), (450, 550, 500.0)),
        "chr3": half_open((2000, 2100, 25.0)),
    }
    c2 = {
        "chr1": half_open((100, 150, 10.0), (300, 350, 125.0), (400, 450, 25.0), (600, 650, 25.0)),
        "chr3": half_open((2000, 2100, 25.0)),
    }
    return c1, c2


def test_overlap_ratio_per_chrom():
    c1, c2 = _collections()
    assert get_top_k_overlap_ratio(c1["chr1"], c2["chr1"], 20, 25) == pytest.approx(0.375)
    assert get_top_k_overlap_ratio(c1["chr3"], c2["chr3"], 20, 25) == 1.0


def test_fraction_overlap_ratio():
    c1, c2 = _collections()
    # 16 bins of 25bp in the union on chr1
    assert count_common_bins(c1["chr1"], c2["chr1"], 25) == 16
    assert get_k(c1["chr1"], c2["chr1"], 0.5, 25) == 8
    assert get_top_k_fraction_overlap_ratio(c1["chr1"], c2["chr1"], 1.0, 25) == pytest.approx(0.375)
    with pytest.raises(ValueError):
        get_k(c1["chr1"], c2["chr1"], 1.5, 25)


def test_top_k_across_chroms_is_global():
    c = {
        "chr1": part((0, 9, 5.0), (10, 19, 4.0)),
        "chr2": part((0, 9, 9.0), (10, 19, 8.0), (20, 29, 1.0)),
    }
    top = get_top_k_across_chroms(c, 3, 10)
    assert sorted(top) == ["chr1", "chr2"]
    assert as_triples(top["chr1"]) == [(0, 9, 5.0)]
    assert as_triples(top["chr2"]) == [(0, 9, 9.0), (10, 19, 8.0)]

    assert sorted(get_top_k_across_chroms(c, 3, 10, target_chroms=["chr1"])) == ["chr1"]


def test_overlap_ratio_across_chroms_pools_counts():
    c1 = {"chr1": part((0, 9, 5.0)), "chr2": part((0, 9, 9.0), (10, 19, 8.0), (20, 29, 7.0))}
    c2 = {"chr1": part((10, 19, 6.0)), "chr2": part((0, 9, 9.0), (10, 19, 8.0), (20, 29, 7.0))}
    # chr1 contributes 0/2 and chr2 3/3
    assert get_top_k_overlap_ratio_across_chroms(c1, c2, 4, 10) == pytest.approx(0.6)
    assert get_top_k_fraction_overlap_ratio_across_chroms(c1, c2, 1.0, 10) == pytest.approx(0.6)
    assert get_top_k_overlap_ratio_across_chroms(c1, c2, 4, 10, target_chroms=["chr2"]) == 1.0

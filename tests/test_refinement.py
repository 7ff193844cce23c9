import numpy as np
import pytest

from track_refinery.errors import OrderingViolationError, SourceEmptyError
from track_refinery.interval import Interval
from track_refinery.partition import Partition
from track_refinery.refinement import CommonRefinementZipper, FlatRefinementZipper, common_refinement_zip, refine_all

from helpers import part


def rows(zipper):
    return [(iv.start, iv.end, values) for iv, values in zipper]


def test_two_way_refinement():
    a = part((0, 9, 1.0), (20, 29, 2.0))
    b = part((5, 24, 10.0))
    assert rows(common_refinement_zip(a, b)) == [
        (0, 4, [1.0, None]),
        (5, 9, [1.0, 10.0]),
        (10, 19, [None, 10.0]),
        (20, 24, [2.0, 10.0]),
        (25, 29, [2.0, None]),
    ]


def test_gaps_are_skipped():
    a = part((0, 4, 1.0))
    b = part((10, 14, 2.0))
    assert rows(common_refinement_zip(a, b)) == [(0, 4, [1.0, None]), (10, 14, [None, 2.0])]


def test_shared_boundaries_do_not_overlap():
    a = part((0, 4, 1.0), (5, 9, 2.0))
    b = part((0, 4, 3.0), (5, 9, 4.0))
    c = part((0, 9, 5.0))
    assert rows(common_refinement_zip(a, b, c)) == [
        (0, 4, [1.0, 3.0, 5.0]),
        (5, 9, [2.0, 4.0, 5.0]),
    ]


def test_empty_sources():
    assert rows(common_refinement_zip(Partition(), Partition())) == []
    assert rows(common_refinement_zip(part((3, 4, 1.0)), Partition())) == [(3, 4, [1.0, None])]
    with pytest.raises(SourceEmptyError):
        CommonRefinementZipper([])


def test_misordered_stream_detected():
    bad = [(Interval(5, 9), 1.0), (Interval(0, 3), 1.0)]
    with pytest.raises(OrderingViolationError):
        list(common_refinement_zip(bad, part((0, 9, 1.0))))


def test_flat_zip_matches_n_way():
    a = part((0, 9, 1.0), (30, 39, 1.5))
    b = part((5, 14, 2.0))
    c = part((8, 31, 3.0))
    folded = FlatRefinementZipper(common_refinement_zip(a, b), c, width=2)
    assert rows(folded) == rows(common_refinement_zip(a, b, c))
    assert rows(refine_all([a, b, c])) == rows(common_refinement_zip(a, b, c))


def _random_partition(rng, n=40, span=500):
    p = Partition()
    for _ in range(n):
        s = int(rng.integers(0, span - 20))
        p.aggregate(Interval(s, s + int(rng.integers(0, 20))), float(rng.integers(1, 9)))
    return p


def test_random_refinement_is_true_refinement():
    rng = np.random.default_rng(3)
    sources = [_random_partition(rng) for _ in range(3)]
    out = list(common_refinement_zip(*sources))

    covered = set()
    prev_end = None
    for interval, values in out:
        if prev_end is not None:
            assert interval.start > prev_end
        prev_end = interval.end
        for src, v in zip(sources, values):
            at_ends = {src.value_at(interval.start), src.value_at(interval.end)}
            if v is None:
                assert not src.overlaps(interval)
            else:
                assert at_ends == {v}
        covered.update(range(interval.start, interval.end + 1))

    expected = set()
    for src in sources:
        for iv, _ in src:
            expected.update(range(iv.start, iv.end + 1))
    assert covered == expected

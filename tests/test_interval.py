import pytest

from track_refinery.errors import InvalidRangeError
from track_refinery.interval import Interval


def test_size_and_half_open_conversion():
    iv = Interval.from_half_open(10, 20)
    assert (iv.start, iv.end) == (10, 19)
    assert iv.size() == 10
    assert iv.end_exclusive == 20
    assert Interval(5, 5).size() == 1


def test_empty_interval():
    e = Interval.empty()
    assert e.is_empty()
    assert not Interval(0, 0).is_empty()
    assert Interval(0, 3).intersect(Interval(5, 9)).is_empty()


def test_negative_width_rejected():
    with pytest.raises(InvalidRangeError):
        Interval(10, 5)


def test_intersect_and_overlap():
    a = Interval(0, 10)
    b = Interval(5, 20)
    assert a.overlaps(b)
    assert a.intersect(b) == Interval(5, 10)
    assert not Interval(0, 4).overlaps(Interval(5, 9))


def test_coordinate_range():
    with pytest.raises(InvalidRangeError):
        Interval(0, 2**63)
    assert Interval(-(2**63), 2**63 - 1).size() == 2**64

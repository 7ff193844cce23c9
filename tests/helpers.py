from track_refinery.interval import Interval
from track_refinery.partition import Partition


def part(*entries):
    """Partition from ``(start, end_inclusive, value)`` triples, folded with aggregate."""
    return Partition((Interval(s, e), v) for s, e, v in entries)


def as_triples(stream):
    return [(iv.start, iv.end, v) for iv, v in stream]


def half_open(*entries):
    """Partition from BED-style ``(start, end_exclusive, value)`` triples."""
    return Partition((Interval.from_half_open(s, e), v) for s, e, v in entries)

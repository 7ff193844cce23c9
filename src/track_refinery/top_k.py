from __future__ import annotations

import heapq
import logging
import math
from typing import Iterable, Mapping, Optional

from .binning import Aggregation, BinnedIntervalIter
from .chroms import union_zip_or_empty
from .errors import InvalidRangeError
from .interval import Interval
from .partition import Partition
from .refinement import common_refinement_zip

logger = logging.getLogger(__name__)


def _check_k(k: int) -> int:
    k = int(k)
    if k < 0:
        raise InvalidRangeError(f"k must be non-negative, received {k}")
    return k


def _binned(partition: Partition, bin_size: int) -> BinnedIntervalIter:
    return BinnedIntervalIter(partition, bin_size, Aggregation.AVERAGE)


def get_top_k(partition: Partition, k: int, bin_size: int = 0) -> Partition:
    """The ``k`` highest-valued entries of ``partition`` after Average binning.

    A bounded min-heap of size ``k`` is kept while scanning. Among equal
    values the entry seen first wins; later duplicates are evicted first.
    ``bin_size == 0`` selects among the unbinned entries.
    """
    k = _check_k(k)
    if k == 0:
        return Partition()

    heap: list[tuple[float, int, Interval]] = []
    for i, (interval, value) in enumerate(_binned(partition, bin_size)):
        heapq.heappush(heap, (value, -i, interval))
        if len(heap) > k:
            heapq.heappop(heap)

    kept = sorted(heap, key=lambda item: item[2].start)
    return Partition.from_sorted((interval, value) for value, _, interval in kept)


def get_top_k_across_chroms(
    collection: Mapping[str, Partition],
    k: int,
    bin_size: int = 0,
    target_chroms: Optional[Iterable[str]] = None,
) -> dict[str, Partition]:
    """Global top-k over all chromosomes (scanned in lexicographic order)."""
    k = _check_k(k)
    keep = set(target_chroms) if target_chroms is not None else None
    heap: list[tuple[float, int, str, Interval]] = []
    i = 0
    if k > 0:
        for chrom in sorted(collection):
            if keep is not None and chrom not in keep:
                continue
            for interval, value in _binned(collection[chrom], bin_size):
                heapq.heappush(heap, (value, -i, chrom, interval))
                if len(heap) > k:
                    heapq.heappop(heap)
                i += 1

    by_chrom: dict[str, list[tuple[Interval, float]]] = {}
    for value, _, chrom, interval in heap:
        by_chrom.setdefault(chrom, []).append((interval, value))
    return {
        chrom: Partition.from_sorted(sorted(entries, key=lambda e: e[0].start))
        for chrom, entries in by_chrom.items()
    }


def count_common_bins(p1: Partition, p2: Partition, bin_size: int) -> int:
    return sum(1 for _ in common_refinement_zip(_binned(p1, bin_size), _binned(p2, bin_size)))


def overlap_counts(p1: Partition, p2: Partition) -> tuple[int, int]:
    """``(# refined intervals present in both, # refined intervals)``."""
    overlapped = 0
    total = 0
    for _interval, values in common_refinement_zip(p1, p2):
        total += 1
        if values[0] is not None and values[1] is not None:
            overlapped += 1
    return overlapped, total


def _ratio(num: int, den: int) -> float:
    return num / den if den else math.nan


def get_top_k_overlap_ratio(p1: Partition, p2: Partition, k: int, bin_size: int = 0) -> float:
    """Fraction of the refined top-k bins of both tracks that are shared.

    Returns NaN when neither track has any data.
    """
    num, den = overlap_counts(get_top_k(p1, k, bin_size), get_top_k(p2, k, bin_size))
    return _ratio(num, den)


def get_k(p1: Partition, p2: Partition, top_k_fraction: float, bin_size: int) -> int:
    """``floor(fraction * common_bin_count)``."""
    fraction = float(top_k_fraction)
    if not 0.0 <= fraction <= 1.0:
        raise ValueError(f"top_k_fraction must be in [0, 1], received {top_k_fraction}")
    return int(count_common_bins(p1, p2, bin_size) * fraction)


def get_top_k_fraction_overlap_ratio(
    p1: Partition,
    p2: Partition,
    top_k_fraction: float,
    bin_size: int,
) -> float:
    k = get_k(p1, p2, top_k_fraction, bin_size)
    logger.debug("top %s fraction corresponds to %d bins", top_k_fraction, k)
    return get_top_k_overlap_ratio(p1, p2, k, bin_size)


def get_top_k_overlap_ratio_across_chroms(
    c1: Mapping[str, Partition],
    c2: Mapping[str, Partition],
    k: int,
    bin_size: int = 0,
    target_chroms: Optional[Iterable[str]] = None,
) -> float:
    """Global top-k of each collection; counts are summed over chromosomes before dividing."""
    chroms = list(target_chroms) if target_chroms is not None else None
    top1 = get_top_k_across_chroms(c1, k, bin_size, chroms)
    top2 = get_top_k_across_chroms(c2, k, bin_size, chroms)
    num = den = 0
    for _chrom, (p1, p2) in union_zip_or_empty([top1, top2]):
        n, d = overlap_counts(p1, p2)
        num += n
        den += d
    return _ratio(num, den)


def get_top_k_fraction_overlap_ratio_across_chroms(
    c1: Mapping[str, Partition],
    c2: Mapping[str, Partition],
    top_k_fraction: float,
    bin_size: int,
    target_chroms: Optional[Iterable[str]] = None,
) -> float:
    fraction = float(top_k_fraction)
    if not 0.0 <= fraction <= 1.0:
        raise ValueError(f"top_k_fraction must be in [0, 1], received {top_k_fraction}")
    chroms = list(target_chroms) if target_chroms is not None else None
    total = sum(
        count_common_bins(p1, p2, bin_size) for _chrom, (p1, p2) in union_zip_or_empty([c1, c2], chroms)
    )
    k = int(total * fraction)
    logger.debug("top %s fraction across chromosomes corresponds to %d bins", top_k_fraction, k)
    return get_top_k_overlap_ratio_across_chroms(c1, c2, k, bin_size, chroms)

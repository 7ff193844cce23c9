from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Optional, Sequence

import numpy as np

from .binning import Aggregation, BinnedIntervalIter
from .chroms import union_zip_or_empty
from .partition import Partition
from .refinement import common_refinement_zip

logger = logging.getLogger(__name__)

ChromCorrelations = list[tuple[str, list[float]]]
OverallCorrelations = list[float]


@dataclass(frozen=True)
class ValueTransform:
    """Identity when ``threshold`` is None, otherwise clamp values to ``[-threshold, threshold]``."""

    threshold: Optional[float] = None

    def __post_init__(self) -> None:
        if self.threshold is not None and self.threshold < 0:
            raise ValueError(f"threshold must be non-negative, received {self.threshold}")

    @classmethod
    def identity(cls) -> "ValueTransform":
        return cls()

    @classmethod
    def thresholding(cls, threshold: float) -> "ValueTransform":
        return cls(float(threshold))

    def __call__(self, value: float) -> float:
        t = self.threshold
        if t is None:
            return value
        return min(max(value, -t), t)


def weighted_correlation(observations: Iterable[tuple[float, float, float]]) -> float:
    """Weighted Pearson correlation of ``(x, y, weight)`` observations.

    Returns NaN when there is no positive total weight or when either variable
    has zero weighted variance.
    """
    obs = np.asarray(list(observations), dtype=np.float64).reshape(-1, 3)
    x, y, w = obs[:, 0], obs[:, 1], obs[:, 2]
    if w.size == 0 or w.sum() <= 0:
        return math.nan

    mx = np.average(x, weights=w)
    my = np.average(y, weights=w)
    dx = x - mx
    dy = y - my
    vx = np.average(dx * dx, weights=w)
    vy = np.average(dy * dy, weights=w)
    if vx <= 0 or vy <= 0:
        return math.nan
    cov = np.average(dx * dy, weights=w)
    return float(cov / np.sqrt(vx * vy))


def correlation_observations(
    p_a: Partition,
    p_b: Partition,
    bin_size: int = 0,
    transform: ValueTransform = ValueTransform(),
) -> Iterator[tuple[float, float, float]]:
    """One ``(a, b, weight)`` observation per refined interval; absent values are 0.

    Unbinned intervals are weighted by their length so that every base pair
    counts once. Binned intervals carry Average values and each bin counts once.
    """
    if bin_size == 0:
        for interval, (a, b) in common_refinement_zip(p_a, p_b):
            yield transform(a or 0.0), transform(b or 0.0), float(interval.size())
    else:
        stream_a = BinnedIntervalIter(p_a, bin_size, Aggregation.AVERAGE)
        stream_b = BinnedIntervalIter(p_b, bin_size, Aggregation.AVERAGE)
        for _interval, (a, b) in common_refinement_zip(stream_a, stream_b):
            yield transform(a or 0.0), transform(b or 0.0), 1.0


def compute_track_correlations(
    c_a: Mapping[str, Partition],
    c_b: Mapping[str, Partition],
    bin_sizes: Sequence[int] = (0,),
    target_chroms: Optional[Iterable[str]] = None,
    transform: ValueTransform = ValueTransform(),
) -> tuple[ChromCorrelations, OverallCorrelations]:
    """Per-chromosome and overall correlations for each bin size (0 = unbinned).

    The overall correlation pools the observations of every chromosome rather
    than averaging per-chromosome correlations.
    """
    bad = [b for b in bin_sizes if b < 0]
    if bad:
        raise ValueError(f"bin sizes must be non-negative, but these are not: {bad}")

    pairs = list(union_zip_or_empty([c_a, c_b], target_chroms))

    chrom_correlations: ChromCorrelations = []
    for chrom, (p_a, p_b) in pairs:
        logger.debug("computing correlations for %s", chrom)
        chrom_correlations.append(
            (chrom, [weighted_correlation(correlation_observations(p_a, p_b, b, transform)) for b in bin_sizes])
        )

    logger.debug("computing overall correlations")
    overall: OverallCorrelations = [
        weighted_correlation(
            itertools.chain.from_iterable(
                correlation_observations(p_a, p_b, b, transform) for _chrom, (p_a, p_b) in pairs
            )
        )
        for b in bin_sizes
    ]
    return chrom_correlations, overall

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from .binning import Aggregation, BinnedIntervalIter
from .chroms import sorted_chroms
from .errors import SourceEmptyError
from .partition import Partition
from .refinement import common_refinement_zip

logger = logging.getLogger(__name__)

WeightedSource = tuple[float, Mapping[str, Partition]]


def _binned(partition: Partition, bin_size: int) -> Iterable:
    return BinnedIntervalIter(partition, bin_size, Aggregation.AVERAGE)


def _scaled(partition: Partition, coefficient: float, bin_size: int) -> Partition:
    return Partition.from_sorted((iv, v * coefficient) for iv, v in _binned(partition, bin_size))


def mix_two(acc: Partition, source: Partition, coefficient: float, bin_size: int = 0) -> Partition:
    """``acc + coefficient * source`` over the common refinement; absent values count as 0."""
    return Partition.from_sorted(
        (interval, (a or 0.0) + coefficient * (v or 0.0))
        for interval, (a, v) in common_refinement_zip(_binned(acc, bin_size), _binned(source, bin_size))
    )


def linear_mixture(
    weighted: Sequence[WeightedSource],
    bin_size: int = 0,
    target_chroms: Optional[Iterable[str]] = None,
) -> dict[str, Partition]:
    """``sum_i c_i * source_i`` per chromosome, folded in one source at a time.

    Each source is Average-binned first when ``bin_size > 0``. Chromosomes
    outside ``target_chroms`` are dropped.
    """
    if not weighted:
        raise SourceEmptyError("linear mixture needs at least one weighted source")
    keep = set(target_chroms) if target_chroms is not None else None

    first_coef, first = weighted[0]
    acc: dict[str, Partition] = {
        chrom: _scaled(first[chrom], first_coef, bin_size)
        for chrom in sorted_chroms(first)
        if keep is None or chrom in keep
    }

    for i, (coef, source) in enumerate(weighted[1:], start=1):
        logger.debug("mixing source %d with coefficient %s", i, coef)
        for chrom in sorted_chroms(source):
            if keep is not None and chrom not in keep:
                continue
            if chrom in acc:
                acc[chrom] = mix_two(acc[chrom], source[chrom], coef, bin_size)
            else:
                acc[chrom] = _scaled(source[chrom], coef, bin_size)
    return {chrom: acc[chrom] for chrom in sorted(acc)}


def read_weighted_paths(path: str | Path) -> list[tuple[float, Path]]:
    """Parse ``coefficient path`` lines; blank lines are ignored."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(str(path))
    out: list[tuple[float, Path]] = []
    for lineno, line in enumerate(path.read_text().splitlines(), start=1):
        tokens = line.split()
        if not tokens:
            continue
        if len(tokens) != 2:
            raise ValueError(f"{path}:{lineno}: each line must have exactly two fields: coefficient path")
        try:
            weight = float(tokens[0])
        except ValueError as e:
            raise ValueError(f"{path}:{lineno}: failed to parse the weight {tokens[0]!r}") from e
        out.append((weight, Path(tokens[1])))
    return out

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .binning import Aggregation, BinnedIntervalIter, weighted_sum
from .chroms import sorted_chroms
from .errors import NormalizationError
from .interval import Interval
from .partition import Partition
from .tracks import TrackFormat, TrackRecord, read_track, write_track

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefineryStats:
    num_records: int
    num_filtered: int
    num_excluded: int
    num_too_long: int
    # None unless duplicates were being removed
    num_duplicate_lines: Optional[int] = None


class _ExcludedIntervals:
    """Per-chromosome sorted intervals to test records against."""

    def __init__(self, partitions: dict[str, Partition]) -> None:
        self._parts = partitions

    @classmethod
    def from_records(cls, records: Iterable[TrackRecord]) -> "_ExcludedIntervals":
        parts: dict[str, Partition] = {}
        for rec in records:
            parts.setdefault(rec.chrom, Partition()).aggregate(rec.interval, 0.0)
        return cls(parts)

    def intersects(self, chrom: str, interval: Interval) -> bool:
        part = self._parts.get(chrom)
        return part is not None and part.overlaps(interval)


class TrackRefinery:
    """Fold scored track records into one :class:`Partition` per chromosome.

    Args:
        records: track records, grouped by chromosome but not necessarily sorted
        unique: count records sharing ``(chrom, start, end, strand)`` once
        filter_chroms: if given, records on other chromosomes are dropped
        exclude: records overlapping any of these intervals are dropped
        max_len: records with ``end - start > max_len`` are dropped
    """

    def __init__(
        self,
        records: Iterable[TrackRecord],
        *,
        unique: bool = False,
        filter_chroms: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[TrackRecord]] = None,
        max_len: Optional[int] = None,
    ) -> None:
        keep = set(filter_chroms) if filter_chroms is not None else None
        excluded = _ExcludedIntervals.from_records(exclude) if exclude is not None else None

        visited: set[tuple] = set()
        n_records = n_filtered = n_excluded = n_long = n_dup = 0
        partitions: dict[str, Partition] = {}

        for rec in records:
            n_records += 1
            if keep is not None and rec.chrom not in keep:
                n_filtered += 1
                continue
            if max_len is not None and rec.end_exclusive - rec.start > max_len:
                n_long += 1
                continue
            interval = rec.interval
            if excluded is not None and excluded.intersects(rec.chrom, interval):
                n_excluded += 1
                logger.debug("excluded (chrom, start, end): (%s, %d, %d)", rec.chrom, rec.start, rec.end_exclusive)
                continue
            if unique:
                key = (rec.chrom, rec.start, rec.end_exclusive, rec.strand)
                if key in visited:
                    n_dup += 1
                    logger.debug(
                        "PCR duplicate (chrom, start, end, strand): (%s, %d, %d, %s)",
                        rec.chrom,
                        rec.start,
                        rec.end_exclusive,
                        rec.strand.value if rec.strand is not None else None,
                    )
                    continue
                visited.add(key)

            part = partitions.get(rec.chrom)
            if part is None:
                part = partitions[rec.chrom] = Partition()
            part.aggregate(interval, rec.value if rec.value is not None else 0.0)

        self._partitions = partitions
        self.stats = RefineryStats(
            num_records=n_records,
            num_filtered=n_filtered,
            num_excluded=n_excluded,
            num_too_long=n_long,
            num_duplicate_lines=n_dup if unique else None,
        )

    @classmethod
    def from_path(
        cls,
        path: str | Path,
        fmt: "str | TrackFormat | None" = None,
        *,
        binarize: bool = False,
        unique: bool = False,
        filter_chroms: Optional[Iterable[str]] = None,
        exclude_path: str | Path | None = None,
        max_len: Optional[int] = None,
    ) -> "TrackRefinery":
        if unique and not binarize:
            raise ValueError("unique can only be set when binarize is set")
        exclude = read_track(exclude_path) if exclude_path is not None else None
        return cls(
            read_track(path, fmt, binarize=binarize),
            unique=unique,
            filter_chroms=filter_chroms,
            exclude=exclude,
            max_len=max_len,
        )

    @property
    def chrom_to_partition(self) -> dict[str, Partition]:
        return self._partitions

    def chroms(self) -> list[str]:
        return sorted_chroms(self._partitions)

    def _stream(self, chrom: str, bin_size: int) -> BinnedIntervalIter:
        return BinnedIntervalIter(self._partitions[chrom], bin_size, Aggregation.AVERAGE)

    def iter_refined(
        self,
        bin_size: int = 0,
        *,
        normalize: bool = False,
        scale: Optional[float] = None,
    ) -> Iterator[tuple[str, Interval, float]]:
        """``(chrom, interval, value)`` in chromosome then coordinate order.

        ``normalize`` divides each chromosome's values by its length-weighted
        sum; ``scale`` is applied afterwards.
        """
        for chrom in self.chroms():
            norm = 1.0
            if normalize:
                norm = weighted_sum(self._stream(chrom, bin_size))
                if norm == 0:
                    raise NormalizationError(f"cannot normalize the values of {chrom} when they sum to zero")
            factor = (1.0 if scale is None else float(scale)) / norm
            for interval, value in self._stream(chrom, bin_size):
                yield chrom, interval, value * factor

    def write_refined_track(
        self,
        out_path: str | Path,
        bin_size: int = 0,
        *,
        normalize: bool = False,
        scale: Optional[float] = None,
        bedgraph: bool = False,
    ) -> Path:
        return write_track(
            out_path,
            self.iter_refined(bin_size, normalize=normalize, scale=scale),
            bedgraph=bedgraph,
        )


def load_chrom_partitions(
    path: str | Path,
    fmt: "str | TrackFormat | None" = None,
    *,
    filter_chroms: Optional[Iterable[str]] = None,
    exclude_path: str | Path | None = None,
    binarize: bool = False,
) -> dict[str, Partition]:
    return TrackRefinery.from_path(
        path,
        fmt,
        binarize=binarize,
        filter_chroms=filter_chroms,
        exclude_path=exclude_path,
    ).chrom_to_partition

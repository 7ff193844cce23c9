from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator, Mapping, Optional, Sequence

from .binning import Aggregation, BinnedIntervalIter
from .errors import SourceEmptyError
from .interval import Interval
from .partition import Partition
from .refinement import refine_all

ChromPartitions = Mapping[str, Partition]


def sorted_chroms(*collections: Mapping[str, object]) -> list[str]:
    """Union of chromosome keys in lexicographic order."""
    keys: set[str] = set()
    for c in collections:
        keys.update(c.keys())
    return sorted(keys)


def union_zip(
    collections: Sequence[ChromPartitions],
    target_chroms: Optional[Iterable[str]] = None,
) -> Iterator[tuple[str, list[Optional[Partition]]]]:
    """Align N chromosome-keyed collections.

    Yields ``(chrom, [p_1..p_N])`` for every chromosome present in any
    collection, in lexicographic order; ``p_i`` is ``None`` when collection
    ``i`` has no partition for ``chrom``.

    Args:
        target_chroms: if given, chromosomes outside it are skipped.
    """
    if not collections:
        raise SourceEmptyError("union_zip needs at least one collection")
    keep = set(target_chroms) if target_chroms is not None else None
    for chrom in sorted_chroms(*collections):
        if keep is not None and chrom not in keep:
            continue
        yield chrom, [c.get(chrom) for c in collections]


def union_zip_or_empty(
    collections: Sequence[ChromPartitions],
    target_chroms: Optional[Iterable[str]] = None,
) -> Iterator[tuple[str, list[Partition]]]:
    """Like :func:`union_zip`, substituting an empty partition for missing ones."""
    empty = Partition()
    for chrom, parts in union_zip(collections, target_chroms):
        yield chrom, [p if p is not None else empty for p in parts]


def default_human_chroms() -> set[str]:
    """chr1..chr22, chrX and chrY."""
    chroms = {f"chr{i}" for i in range(1, 23)}
    chroms.update({"chrX", "chrY"})
    return chroms


def read_chrom_names(path: str | Path) -> list[str]:
    """One chromosome name per line; surrounding whitespace and blank lines are ignored."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(str(path))
    return [line.strip() for line in path.read_text().splitlines() if line.strip()]


def resolve_chrom_filter(
    *,
    chroms: Optional[Iterable[str]] = None,
    chrom_file: str | Path | None = None,
    default_human: bool = False,
) -> Optional[set[str]]:
    """Combine the ways a chromosome filter can be given; ``None`` means no filtering."""
    if default_human:
        return default_human_chroms()
    selected: Optional[set[str]] = None
    if chroms:
        selected = set(chroms)
    if chrom_file is not None:
        selected = (selected or set()) | set(read_chrom_names(chrom_file))
    return selected


def zip_binned_values(
    collections: Sequence[ChromPartitions],
    bin_size: int,
    target_chroms: Optional[Iterable[str]] = None,
) -> dict[str, list[tuple[Interval, list[Optional[float]]]]]:
    """Per chromosome, Average-bin each source and refine them into value vectors.

    Returns ``{chrom: [(interval, [v_1..v_N]), ...]}`` with ``None`` where a
    source has no data.
    """
    out: dict[str, list[tuple[Interval, list[Optional[float]]]]] = {}
    for chrom, parts in union_zip_or_empty(collections, target_chroms):
        streams = [BinnedIntervalIter(p, bin_size, Aggregation.AVERAGE) for p in parts]
        out[chrom] = list(refine_all(streams))
    return out

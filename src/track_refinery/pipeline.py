from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

import pandas as pd

from .chroms import union_zip_or_empty, zip_binned_values
from .correlation import ValueTransform, compute_track_correlations
from .mixture import linear_mixture
from .refinery import RefineryStats, TrackRefinery, load_chrom_partitions
from .reporting import ensure_dir, write_json, write_table
from .top_k import get_top_k_fraction_overlap_ratio, get_top_k_fraction_overlap_ratio_across_chroms
from .tracks import write_track
from .zipper import RefinedTrackZipper, ZipperConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackOutputs:
    out_path: Path
    meta_path: Path


@dataclass(frozen=True)
class RefineOutputs(TrackOutputs):
    stats: RefineryStats


@dataclass(frozen=True)
class SummaryOutputs:
    out_dir: Path
    table_path: Path
    meta_path: Path
    table: pd.DataFrame


def _meta_path(out_path: Path) -> Path:
    return out_path.parent / f"{out_path.name}.meta.json"


def _chrom_list(chroms: Optional[Iterable[str]]) -> Optional[list[str]]:
    return sorted(chroms) if chroms is not None else None


def run_refine(
    *,
    track: str | Path,
    out_path: str | Path,
    bin_size: int = 0,
    fmt: str | None = None,
    binarize: bool = False,
    unique: bool = False,
    filter_chroms: Optional[Iterable[str]] = None,
    exclude: str | Path | None = None,
    max_len: Optional[int] = None,
    normalize: bool = False,
    scale: Optional[float] = None,
    bedgraph: bool = False,
) -> RefineOutputs:
    """Refine one track into disjoint, optionally binned intervals."""
    out_path = Path(out_path)
    filter_chroms = _chrom_list(filter_chroms)
    refinery = TrackRefinery.from_path(
        track,
        fmt,
        binarize=binarize,
        unique=unique,
        filter_chroms=filter_chroms,
        exclude_path=exclude,
        max_len=max_len,
    )
    refinery.write_refined_track(out_path, int(bin_size), normalize=normalize, scale=scale, bedgraph=bedgraph)

    meta = {
        "track": str(track),
        "bin_size": int(bin_size),
        "binarize": bool(binarize),
        "unique": bool(unique),
        "filter_chroms": filter_chroms,
        "exclude": str(exclude) if exclude is not None else None,
        "max_len": max_len,
        "normalize": bool(normalize),
        "scale": scale,
        "bedgraph": bool(bedgraph),
        "num_records": refinery.stats.num_records,
        "num_duplicate_lines": refinery.stats.num_duplicate_lines,
    }
    meta_path = _meta_path(out_path)
    write_json(meta, meta_path)
    return RefineOutputs(out_path=out_path, meta_path=meta_path, stats=refinery.stats)


def run_zip(
    *,
    tracks: Sequence[str | Path],
    out_path: str | Path,
    interval_length: int,
    alignment: int = 0,
    default_value: float = 0.0,
) -> TrackOutputs:
    """Zip refined, binned tracks into one wide table without loading them."""
    config = ZipperConfig(int(interval_length), int(alignment), float(default_value))
    out_path = RefinedTrackZipper(tracks, config).write_to_file(out_path)

    meta = {
        "tracks": [str(t) for t in tracks],
        "interval_length": config.interval_length,
        "alignment": config.alignment,
        "default_value": config.default_value,
    }
    meta_path = _meta_path(out_path)
    write_json(meta, meta_path)
    return TrackOutputs(out_path=out_path, meta_path=meta_path)


def run_binned_table(
    *,
    tracks: Sequence[str | Path],
    out_path: str | Path,
    bin_size: int = 0,
    binarize: bool = False,
    filter_chroms: Optional[Iterable[str]] = None,
    exclude: str | Path | None = None,
) -> TrackOutputs:
    """Average-bin N tracks onto their common refinement as one wide TSV.

    Columns are ``chrom start end value_1 .. value_N`` with ``nan`` where a
    track has no data. Unlike :func:`run_zip` the inputs may be raw, unsorted tracks.
    """
    out_path = Path(out_path)
    filter_chroms = _chrom_list(filter_chroms)
    collections = [
        load_chrom_partitions(t, filter_chroms=filter_chroms, exclude_path=exclude, binarize=binarize)
        for t in tracks
    ]
    zipped = zip_binned_values(collections, int(bin_size), filter_chroms)

    value_cols = [f"value_{i + 1}" for i in range(len(collections))]
    rows = [
        [chrom, interval.start, interval.end_exclusive, *(math.nan if v is None else v for v in values)]
        for chrom, entries in zipped.items()
        for interval, values in entries
    ]
    table = pd.DataFrame(rows, columns=["chrom", "start", "end", *value_cols])
    write_table(table, out_path)

    meta = {
        "tracks": [str(t) for t in tracks],
        "bin_size": int(bin_size),
        "binarize": bool(binarize),
        "filter_chroms": filter_chroms,
        "exclude": str(exclude) if exclude is not None else None,
        "num_rows": len(table),
    }
    meta_path = _meta_path(out_path)
    write_json(meta, meta_path)
    return TrackOutputs(out_path=out_path, meta_path=meta_path)


def run_correlation(
    *,
    first: str | Path,
    second: str | Path,
    out_dir: str | Path,
    bin_sizes: Sequence[int] = (0,),
    filter_chroms: Optional[Iterable[str]] = None,
    threshold: Optional[float] = None,
    exclude: str | Path | None = None,
    first_fmt: str | None = None,
    second_fmt: str | None = None,
) -> SummaryOutputs:
    out_dir = ensure_dir(out_dir)
    filter_chroms = _chrom_list(filter_chroms)
    transform = ValueTransform(threshold)

    logger.info("constructing chrom interval maps for %s and %s", first, second)
    c_a = load_chrom_partitions(first, first_fmt, filter_chroms=filter_chroms, exclude_path=exclude)
    c_b = load_chrom_partitions(second, second_fmt, filter_chroms=filter_chroms, exclude_path=exclude)

    chrom_corrs, overall = compute_track_correlations(c_a, c_b, list(bin_sizes), filter_chroms, transform)

    rows = [
        {"chrom": chrom, "bin_size": int(b), "correlation": c}
        for chrom, corrs in chrom_corrs
        for b, c in zip(bin_sizes, corrs)
    ]
    rows.extend({"chrom": "overall", "bin_size": int(b), "correlation": c} for b, c in zip(bin_sizes, overall))
    table = pd.DataFrame(rows, columns=["chrom", "bin_size", "correlation"])

    table_path = write_table(table, out_dir / "correlations.tsv")
    meta = {
        "first": str(first),
        "second": str(second),
        "bin_sizes": [int(b) for b in bin_sizes],
        "filter_chroms": filter_chroms,
        "threshold": threshold,
        "exclude": str(exclude) if exclude is not None else None,
        "overall": dict(zip([str(b) for b in bin_sizes], overall)),
    }
    meta_path = out_dir / "meta.json"
    write_json(meta, meta_path)
    return SummaryOutputs(out_dir=out_dir, table_path=table_path, meta_path=meta_path, table=table)


def run_top_k_overlap(
    *,
    first: str | Path,
    second: str | Path,
    out_dir: str | Path,
    top_k_fraction: float,
    bin_sizes: Sequence[int],
    filter_chroms: Optional[Iterable[str]] = None,
    exclude: str | Path | None = None,
    first_fmt: str | None = None,
    second_fmt: str | None = None,
) -> SummaryOutputs:
    bad = [b for b in bin_sizes if b <= 0]
    if bad:
        raise ValueError(f"bin sizes must be positive, but these are not: {bad}")
    out_dir = ensure_dir(out_dir)
    filter_chroms = _chrom_list(filter_chroms)

    c_a = load_chrom_partitions(first, first_fmt, filter_chroms=filter_chroms, exclude_path=exclude)
    c_b = load_chrom_partitions(second, second_fmt, filter_chroms=filter_chroms, exclude_path=exclude)

    rows = []
    for b in bin_sizes:
        logger.info("computing top %s overlap with bin size %d", top_k_fraction, b)
        for chrom, (p_a, p_b) in union_zip_or_empty([c_a, c_b], filter_chroms):
            ratio = get_top_k_fraction_overlap_ratio(p_a, p_b, top_k_fraction, b)
            rows.append({"chrom": chrom, "bin_size": int(b), "overlap_ratio": ratio})
        overall = get_top_k_fraction_overlap_ratio_across_chroms(c_a, c_b, top_k_fraction, b, filter_chroms)
        rows.append({"chrom": "overall", "bin_size": int(b), "overlap_ratio": overall})
    table = pd.DataFrame(rows, columns=["chrom", "bin_size", "overlap_ratio"])

    table_path = write_table(table, out_dir / "top_k_overlap.tsv")
    meta = {
        "first": str(first),
        "second": str(second),
        "top_k_fraction": float(top_k_fraction),
        "bin_sizes": [int(b) for b in bin_sizes],
        "filter_chroms": filter_chroms,
        "exclude": str(exclude) if exclude is not None else None,
    }
    meta_path = out_dir / "meta.json"
    write_json(meta, meta_path)
    return SummaryOutputs(out_dir=out_dir, table_path=table_path, meta_path=meta_path, table=table)


def run_mixture(
    *,
    weighted_tracks: Sequence[tuple[float, str | Path]],
    out_path: str | Path,
    bin_size: int = 0,
    binarize: bool = False,
    filter_chroms: Optional[Iterable[str]] = None,
    exclude: str | Path | None = None,
    bedgraph: bool = False,
) -> TrackOutputs:
    """Write ``sum_i c_i * track_i`` as a refined track."""
    filter_chroms = _chrom_list(filter_chroms)
    weighted = [
        (float(c), load_chrom_partitions(p, filter_chroms=filter_chroms, exclude_path=exclude, binarize=binarize))
        for c, p in weighted_tracks
    ]
    mixed = linear_mixture(weighted, int(bin_size), filter_chroms)

    out_path = write_track(
        out_path,
        ((chrom, interval, value) for chrom, part in mixed.items() for interval, value in part),
        bedgraph=bedgraph,
    )
    meta = {
        "weighted_tracks": [[float(c), str(p)] for c, p in weighted_tracks],
        "bin_size": int(bin_size),
        "binarize": bool(binarize),
        "filter_chroms": filter_chroms,
        "exclude": str(exclude) if exclude is not None else None,
    }
    meta_path = _meta_path(out_path)
    write_json(meta, meta_path)
    return TrackOutputs(out_path=out_path, meta_path=meta_path)

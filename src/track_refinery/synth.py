from __future__ import annotations

from pathlib import Path

import numpy as np

from .reporting import ensure_dir, write_json


def make_synthetic_track(
    chroms: dict[str, int],
    *,
    n_intervals: int = 200,
    mean_length: int = 150,
    seed: int = 0,
    shift: float = 0.0,
) -> list[tuple[str, int, int, float]]:
    """Random overlapping scored intervals with a smooth positional trend.

    Args:
        chroms: chromosome name -> length
        shift: phase shift of the trend; two tracks with close shifts correlate

    Returns:
        rows ``(chrom, start, end_exclusive, score)`` grouped by chromosome, unsorted within one
    """
    rng = np.random.default_rng(int(seed))
    rows: list[tuple[str, int, int, float]] = []
    for chrom in sorted(chroms):
        size = int(chroms[chrom])
        starts = rng.integers(0, max(size - 1, 1), size=n_intervals)
        lengths = rng.geometric(1.0 / max(mean_length, 1), size=n_intervals)
        for s, ln in zip(starts, lengths):
            s = int(s)
            e = int(min(s + int(ln), size))
            if e <= s:
                continue
            trend = 5.0 + 4.0 * np.sin(2 * np.pi * (s / size) + shift)
            score = max(0.0, trend + 0.5 * rng.standard_normal())
            rows.append((chrom, s, e, round(float(score), 4)))
    return rows


def write_bed(rows: list[tuple[str, int, int, float]], out_path: str | Path) -> Path:
    out_path = Path(out_path)
    ensure_dir(out_path.parent)
    lines = [f"{c}\t{s}\t{e}\tname_{i}\t{v}\n" for i, (c, s, e, v) in enumerate(rows)]
    out_path.write_text("".join(lines))
    return out_path


def synth_dataset(
    out_dir: str | Path,
    *,
    n_tracks: int = 2,
    chrom_sizes: dict[str, int] | None = None,
    n_intervals: int = 200,
    seed: int = 0,
) -> dict[str, Path]:
    """Write ``n_tracks`` correlated synthetic BED tracks plus a ``meta.json``."""
    out_dir = ensure_dir(out_dir)
    chrom_sizes = chrom_sizes or {"chr1": 20_000, "chr2": 12_000}

    paths: dict[str, Path] = {}
    for i in range(int(n_tracks)):
        rows = make_synthetic_track(
            chrom_sizes,
            n_intervals=n_intervals,
            seed=int(seed) + i,
            shift=0.3 * i,
        )
        paths[f"track_{i + 1}"] = write_bed(rows, out_dir / f"track_{i + 1}.bed")

    meta = {
        "chrom_sizes": chrom_sizes,
        "n_tracks": int(n_tracks),
        "n_intervals": int(n_intervals),
        "seed": int(seed),
        "format": "BED (chrom, start, end, name, score)",
    }
    write_json(meta, out_dir / "meta.json")
    paths["meta"] = out_dir / "meta.json"
    return paths

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .chroms import resolve_chrom_filter
from .errors import TrackRefineryError
from .mixture import read_weighted_paths
from .pipeline import run_binned_table, run_correlation, run_mixture, run_refine, run_top_k_overlap, run_zip
from .synth import synth_dataset
from .zipper import read_path_list

logger = logging.getLogger("track_refinery")


def _add_chrom_filter(p: argparse.ArgumentParser) -> None:
    g = p.add_mutually_exclusive_group()
    g.add_argument("--chroms", type=str, nargs="+", default=None, help="Only use these chromosomes")
    g.add_argument(
        "--filter-chrom",
        type=str,
        default=None,
        help="File with one chromosome name per line; only those chromosomes are used",
    )
    g.add_argument(
        "--default-human-chrom",
        action="store_true",
        help="Only use chr1, chr2, ... chr22, chrX, chrY",
    )


def _add_exclude(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--exclude",
        type=str,
        default=None,
        help="BED-like file; input lines overlapping any of its intervals are ignored",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="track-refinery")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging (e.g. PCR duplicates)")
    sub = p.add_subparsers(dest="cmd", required=True)

    pr = sub.add_parser(
        "refine",
        help="Aggregate overlapping intervals into disjoint increasing intervals, optionally binned",
    )
    pr.add_argument("track", type=str)
    pr.add_argument("out_path", type=str)
    pr.add_argument("--format", type=str, default=None, choices=["bed", "bedgraph"])
    pr.add_argument("--bin", dest="bin_size", type=int, default=0, help="Bin size aligned at 0; 0 means no binning")
    pr.add_argument("--binarize", action="store_true", help="Each line contributes a unit score")
    pr.add_argument("--unique", action="store_true", help="Count lines with equal (chrom, start, end, strand) once")
    pr.add_argument("--max-len", type=int, default=None, help="Ignore lines with end - start > max_len")
    pr.add_argument("--normalize", action="store_true", help="Divide values by their length-weighted sum")
    pr.add_argument("--scale", type=float, default=None, help="Multiply values (after --normalize)")
    pr.add_argument("--out-bedgraph", action="store_true", help="Write (chrom, start, end, value) lines")
    _add_chrom_filter(pr)
    _add_exclude(pr)

    pz = sub.add_parser(
        "zip",
        help="Zip N binned refined tracks into lines of chrom start end value_1 ... value_N",
    )
    pz.add_argument("paths_file", type=str, help="File in which each line is the path to a refined track")
    pz.add_argument("out_path", type=str)
    pz.add_argument("--interval-length", type=int, required=True, help="Every interval must have this size")
    pz.add_argument("--alignment", type=int, default=0, help="Required start %% interval_length")
    pz.add_argument("--default-value", type=float, default=0.0, help="Value used where a track has no line")

    pt = sub.add_parser(
        "table",
        help="Average-bin N raw tracks onto their common refinement as one wide TSV",
    )
    pt.add_argument("out_path", type=str)
    pt.add_argument("tracks", type=str, nargs="+")
    pt.add_argument("--bin", dest="bin_size", type=int, default=0, help="0 means no binning")
    pt.add_argument("--binarize", action="store_true")
    _add_chrom_filter(pt)
    _add_exclude(pt)

    pc = sub.add_parser("correlate", help="Weighted Pearson correlation between two tracks")
    pc.add_argument("--first", type=str, required=True)
    pc.add_argument("--second", type=str, required=True)
    pc.add_argument("--out_dir", type=str, required=True)
    pc.add_argument("--bin", dest="bin_sizes", type=int, nargs="+", default=[0], help="0 means no binning")
    pc.add_argument("--threshold", type=float, default=None, help="Clamp values to [-t, t]")
    pc.add_argument("--first-bedgraph", action="store_true")
    pc.add_argument("--second-bedgraph", action="store_true")
    _add_chrom_filter(pc)
    _add_exclude(pc)

    pk = sub.add_parser("top-k-overlap", help="Overlap ratio of the top-k bins of two tracks")
    pk.add_argument("--first", type=str, required=True)
    pk.add_argument("--second", type=str, required=True)
    pk.add_argument("--out_dir", type=str, required=True)
    pk.add_argument("--top-k", dest="top_k_fraction", type=float, required=True, help="Fraction of common bins")
    pk.add_argument("--bin", dest="bin_sizes", type=int, nargs="+", required=True)
    pk.add_argument("--first-bedgraph", action="store_true")
    pk.add_argument("--second-bedgraph", action="store_true")
    _add_chrom_filter(pk)
    _add_exclude(pk)

    pm = sub.add_parser("mix", help="Linear combination of tracks")
    pm.add_argument("weighted_tracks_file", type=str, help="Lines of: coefficient path")
    pm.add_argument("out_path", type=str)
    pm.add_argument("--bin", dest="bin_size", type=int, default=0)
    pm.add_argument("--binarize", action="store_true")
    pm.add_argument("--out-bedgraph", action="store_true")
    _add_chrom_filter(pm)
    _add_exclude(pm)

    ps = sub.add_parser("synth", help="Generate small synthetic BED tracks")
    ps.add_argument("--out_dir", type=str, default="data/synthetic")
    ps.add_argument("--n_tracks", type=int, default=2)
    ps.add_argument("--n_intervals", type=int, default=200)
    ps.add_argument("--seed", type=int, default=0)

    return p


def _chrom_filter(args: argparse.Namespace):
    return resolve_chrom_filter(
        chroms=args.chroms,
        chrom_file=args.filter_chrom,
        default_human=bool(args.default_human_chrom),
    )


def _fmt(is_bedgraph: bool) -> str | None:
    return "bedgraph" if is_bedgraph else None


def _run(args: argparse.Namespace) -> None:
    if args.cmd == "refine":
        if args.unique and not args.binarize:
            raise SystemExit("--unique can only be set when --binarize is set")
        out = run_refine(
            track=args.track,
            out_path=args.out_path,
            bin_size=int(args.bin_size),
            fmt=args.format,
            binarize=bool(args.binarize),
            unique=bool(args.unique),
            filter_chroms=_chrom_filter(args),
            exclude=args.exclude,
            max_len=args.max_len,
            normalize=bool(args.normalize),
            scale=args.scale,
            bedgraph=bool(args.out_bedgraph),
        )
        if out.stats.num_duplicate_lines is not None:
            print("number of duplicate lines:", out.stats.num_duplicate_lines)
        print("Wrote:", out.out_path.as_posix())
        return

    if args.cmd == "zip":
        out = run_zip(
            tracks=read_path_list(args.paths_file),
            out_path=args.out_path,
            interval_length=int(args.interval_length),
            alignment=int(args.alignment),
            default_value=float(args.default_value),
        )
        print("Wrote:", out.out_path.as_posix())
        return

    if args.cmd == "table":
        out = run_binned_table(
            tracks=args.tracks,
            out_path=args.out_path,
            bin_size=int(args.bin_size),
            binarize=bool(args.binarize),
            filter_chroms=_chrom_filter(args),
            exclude=args.exclude,
        )
        print("Wrote:", out.out_path.as_posix())
        return

    if args.cmd == "correlate":
        out = run_correlation(
            first=args.first,
            second=args.second,
            out_dir=args.out_dir,
            bin_sizes=[int(b) for b in args.bin_sizes],
            filter_chroms=_chrom_filter(args),
            threshold=args.threshold,
            exclude=args.exclude,
            first_fmt=_fmt(args.first_bedgraph),
            second_fmt=_fmt(args.second_bedgraph),
        )
        print(out.table.to_string(index=False))
        print("Wrote outputs to:", out.out_dir.as_posix())
        return

    if args.cmd == "top-k-overlap":
        out = run_top_k_overlap(
            first=args.first,
            second=args.second,
            out_dir=args.out_dir,
            top_k_fraction=float(args.top_k_fraction),
            bin_sizes=[int(b) for b in args.bin_sizes],
            filter_chroms=_chrom_filter(args),
            exclude=args.exclude,
            first_fmt=_fmt(args.first_bedgraph),
            second_fmt=_fmt(args.second_bedgraph),
        )
        print(out.table.to_string(index=False))
        print("Wrote outputs to:", out.out_dir.as_posix())
        return

    if args.cmd == "mix":
        out = run_mixture(
            weighted_tracks=read_weighted_paths(args.weighted_tracks_file),
            out_path=args.out_path,
            bin_size=int(args.bin_size),
            binarize=bool(args.binarize),
            filter_chroms=_chrom_filter(args),
            exclude=args.exclude,
            bedgraph=bool(args.out_bedgraph),
        )
        print("Wrote:", out.out_path.as_posix())
        return

    if args.cmd == "synth":
        paths = synth_dataset(
            out_dir=args.out_dir,
            n_tracks=int(args.n_tracks),
            n_intervals=int(args.n_intervals),
            seed=int(args.seed),
        )
        print("Wrote:")
        for k, v in paths.items():
            print(f"  {k}: {Path(v).as_posix()}")
        return

    raise SystemExit(f"Unknown command: {args.cmd}")


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        _run(args)
    except (TrackRefineryError, OSError) as e:
        logger.error("%s", e)
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()

from __future__ import annotations

import gzip
from enum import Enum
from pathlib import Path
from typing import IO, Iterable, Iterator, NamedTuple, Optional

import numpy as np
import pandas as pd

from .errors import InvalidRangeError
from .interval import Interval
from .reporting import ensure_dir

_HEADER_PREFIXES = ("#", "track", "browser")
_BED_MAX_COLUMNS = 12


class TrackFormat(str, Enum):
    BED = "bed"
    BEDGRAPH = "bedgraph"

    @classmethod
    def parse(cls, fmt: "str | TrackFormat") -> "TrackFormat":
        if isinstance(fmt, TrackFormat):
            return fmt
        key = str(fmt).lower()
        if key in {"bed"}:
            return cls.BED
        if key in {"bedgraph", "bdg", "bg"}:
            return cls.BEDGRAPH
        raise ValueError(f"Unknown track format {fmt!r}; expected 'bed' or 'bedgraph'")


class Strand(str, Enum):
    FORWARD = "+"
    REVERSE = "-"


class TrackRecord(NamedTuple):
    """One track line; ``end_exclusive`` follows the BED convention."""

    chrom: str
    start: int
    end_exclusive: int
    value: Optional[float] = None
    strand: Optional[Strand] = None

    @property
    def interval(self) -> Interval:
        return Interval.from_half_open(self.start, self.end_exclusive)


def guess_format(path: str | Path) -> TrackFormat:
    name = Path(path).name.lower()
    if name.endswith(".gz"):
        name = name[:-3]
    if name.endswith((".bedgraph", ".bdg", ".bg")):
        return TrackFormat.BEDGRAPH
    return TrackFormat.BED


def _open_text(path: Path) -> IO[str]:
    if path.suffix == ".gz":
        return gzip.open(path, "rt")
    return path.open("r")


def _count_header_lines(path: Path) -> int:
    n = 0
    with _open_text(path) as f:
        for line in f:
            s = line.strip()
            if s and not s.startswith(_HEADER_PREFIXES):
                break
            n += 1
    return n


def _parse_optional_float(token: object) -> Optional[float]:
    if token is None or (isinstance(token, float) and np.isnan(token)):
        return None
    s = str(token)
    if s in {"", "."}:
        return None
    return float(s)


def _parse_strand(token: object) -> Optional[Strand]:
    if token is None or (isinstance(token, float) and np.isnan(token)):
        return None
    s = str(token)
    if s == "+":
        return Strand.FORWARD
    if s == "-":
        return Strand.REVERSE
    return None


def _check_coords(chrom: str, start: int, end: int, where: str) -> None:
    if end <= start:
        raise InvalidRangeError(f"Invalid interval with end<=start ({chrom}, {start}, {end}) {where}")
    if end <= 0:
        raise InvalidRangeError(f"The end coordinate must be positive ({chrom}, {start}, {end}) {where}")


def read_track_table(path: str | Path, fmt: "str | TrackFormat | None" = None) -> pd.DataFrame:
    """Read a BED or bedGraph file into a table.

    Columns: chrom, start, end, value, strand. ``value`` is the BED score
    (5th column) or the bedGraph value (4th column), NaN when absent.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(str(path))
    fmt = TrackFormat.parse(fmt) if fmt is not None else guess_format(path)

    skip = _count_header_lines(path)
    # fixed column names so rows with fewer optional fields are padded
    n_cols = 4 if fmt is TrackFormat.BEDGRAPH else _BED_MAX_COLUMNS
    try:
        raw = pd.read_csv(
            path,
            sep=r"\s+",
            header=None,
            names=list(range(n_cols)),
            skiprows=skip,
            dtype=str,
            keep_default_na=False,
            comment="#",
        )
    except pd.errors.EmptyDataError:
        raw = pd.DataFrame()

    if raw.empty:
        return pd.DataFrame(
            {
                "chrom": pd.Series(dtype=str),
                "start": pd.Series(dtype=np.int64),
                "end": pd.Series(dtype=np.int64),
                "value": pd.Series(dtype=np.float64),
                "strand": pd.Series(dtype=object),
            }
        )
    short = raw[2].isna() | (raw[2] == "")
    if short.any():
        raise ValueError(f"Track lines need at least chrom, start, end: row {short.idxmax()} of {path}")

    value_col = 3 if fmt is TrackFormat.BEDGRAPH else 4
    df = pd.DataFrame(
        {
            "chrom": raw[0].astype(str),
            "start": pd.to_numeric(raw[1], errors="raise").astype(np.int64),
            "end": pd.to_numeric(raw[2], errors="raise").astype(np.int64),
        }
    )
    df["value"] = [_parse_optional_float(v) for v in raw[value_col]]
    df["value"] = df["value"].astype(np.float64)
    if fmt is TrackFormat.BED:
        df["strand"] = [_parse_strand(s) for s in raw[5]]
    else:
        df["strand"] = None

    bad = df.index[(df["end"] <= df["start"]) | (df["end"] <= 0)]
    if len(bad):
        row = df.loc[bad[0]]
        _check_coords(row["chrom"], int(row["start"]), int(row["end"]), f"at row {bad[0]} of {path}")
    return df


def read_track(
    path: str | Path,
    fmt: "str | TrackFormat | None" = None,
    *,
    binarize: bool = False,
) -> Iterator[TrackRecord]:
    """Records of a BED/bedGraph file; ``binarize`` replaces every value with 1."""
    df = read_track_table(path, fmt)
    for chrom, start, end, value, strand in zip(
        df["chrom"], df["start"], df["end"], df["value"], df["strand"]
    ):
        if binarize:
            v: Optional[float] = 1.0
        else:
            v = None if np.isnan(value) else float(value)
        yield TrackRecord(chrom, int(start), int(end), v, strand)


def iter_track_lines(path: str | Path) -> Iterator[TrackRecord]:
    """Lazily parse ``chrom start end_exclusive [value]`` lines one at a time.

    With five or more fields the value is the BED score (column 5); with
    exactly four it is the bedGraph value (column 4) when numeric.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(str(path))
    with _open_text(path) as f:
        for lineno, line in enumerate(f, start=1):
            s = line.strip()
            if not s or s.startswith(_HEADER_PREFIXES):
                continue
            fields = s.split()
            if len(fields) < 3:
                raise ValueError(f"{path}:{lineno}: expected at least 3 fields, got {len(fields)}")
            try:
                start, end = int(fields[1]), int(fields[2])
            except ValueError as e:
                raise ValueError(f"{path}:{lineno}: invalid coordinates: {e}") from e
            value: Optional[float] = None
            if len(fields) >= 5:
                value = _parse_optional_float(fields[4])
            elif len(fields) == 4:
                try:
                    value = _parse_optional_float(fields[3])
                except ValueError:
                    value = None  # BED name column without a score
            yield TrackRecord(fields[0], start, end, value)


def format_value(v: float) -> str:
    return f"{float(v):.12g}"


def write_track(
    path: str | Path,
    entries: Iterable[tuple[str, Interval, float]],
    *,
    bedgraph: bool = False,
) -> Path:
    """Write ``(chrom, interval, value)`` entries as BED or bedGraph lines.

    BED lines are ``chrom start end_exclusive . score``; bedGraph lines are
    ``chrom start end_exclusive value``. Empty intervals are skipped.
    """
    path = Path(path)
    ensure_dir(path.parent)
    with path.open("w") as f:
        for chrom, interval, value in entries:
            if interval.is_empty():
                continue
            if bedgraph:
                f.write(f"{chrom}\t{interval.start}\t{interval.end_exclusive}\t{format_value(value)}\n")
            else:
                f.write(f"{chrom}\t{interval.start}\t{interval.end_exclusive}\t.\t{format_value(value)}\n")
    return path

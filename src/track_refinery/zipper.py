from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence

import pandas as pd

from .errors import InvalidRangeError, OrderingViolationError, SourceEmptyError
from .reporting import ensure_dir
from .tracks import format_value, iter_track_lines

logger = logging.getLogger(__name__)

# (chrom, start, end_exclusive, value)
Record = tuple[str, int, int, Optional[float]]


@dataclass(frozen=True)
class ZipperConfig:
    """Layout every zipped source must follow.

    interval_length: ``end_exclusive - start`` of every record
    alignment: required ``start % interval_length``
    default_value: used where a source has no record, or a record has no value
    """

    interval_length: int
    alignment: int = 0
    default_value: float = 0.0

    def __post_init__(self) -> None:
        if self.alignment < 0:
            raise InvalidRangeError(f"alignment cannot be negative, received {self.alignment}")
        if self.interval_length <= 0:
            raise InvalidRangeError(f"interval_length must be positive, received {self.interval_length}")
        if self.alignment >= self.interval_length:
            raise InvalidRangeError(
                f"alignment must be smaller than interval_length {self.interval_length}, received {self.alignment}"
            )


@dataclass(frozen=True)
class ZippedRow:
    chrom: str
    start: int
    end_exclusive: int
    values: tuple[float, ...]


class TrackReserve:
    """Read cursor over one pre-sorted source.

    Holds the current record and the chromosomes already left behind, and
    validates every record it reads against the :class:`ZipperConfig`.
    """

    def __init__(self, records: Iterable[Sequence], config: ZipperConfig, name: str = "") -> None:
        self._it = iter(records)
        self.config = config
        self.name = name
        self.current: Optional[Record] = None
        self.past_chroms: set[str] = set()
        self.advance()

    def _fail(self, msg: str) -> OrderingViolationError:
        where = f"{self.name}: " if self.name else ""
        return OrderingViolationError(where + msg)

    def advance(self) -> Optional[Record]:
        item = next(self._it, None)
        if item is None:
            if self.current is not None:
                self.past_chroms.add(self.current[0])
            self.current = None
            return None

        chrom, start, end_exclusive, value = item[0], int(item[1]), int(item[2]), item[3]
        length = self.config.interval_length

        if chrom in self.past_chroms:
            raise self._fail(f"different chromosomes cannot interleave, encountered chromosome {chrom} again")
        if end_exclusive - start != length:
            raise self._fail(
                f"record ({chrom}, {start}, {end_exclusive}) has length {end_exclusive - start}, "
                f"expected interval_length {length}"
            )
        if start % length != self.config.alignment:
            raise self._fail(
                f"record ({chrom}, {start}, {end_exclusive}) is misaligned: "
                f"start % {length} = {start % length}, expected {self.config.alignment}"
            )

        if self.current is not None:
            old_chrom, old_start, old_end_exclusive, _ = self.current
            if old_chrom == chrom:
                if start <= old_start:
                    raise self._fail(
                        f"starts must be strictly increasing on {chrom}, new start {start} <= old start {old_start}"
                    )
                if start < old_end_exclusive:
                    raise self._fail(
                        f"the intervals must not overlap, new start {start} < old end_exclusive {old_end_exclusive}"
                    )
            else:
                if chrom < old_chrom:
                    raise self._fail(
                        f"the chromosomes must be sorted in increasing order, new chrom {chrom} < old chrom {old_chrom}"
                    )
                self.past_chroms.add(old_chrom)

        self.current = (chrom, start, end_exclusive, None if value is None else float(value))
        return self.current


class KWayMergeZipper:
    """Merge N pre-refined, pre-binned, sorted sources into wide rows.

    Each ``next()`` emits one :class:`ZippedRow` at the smallest
    ``(chrom, start)`` among the sources' current records; sources without a
    record there contribute ``default_value``. Any ordering or layout
    violation raises :class:`OrderingViolationError` and ends the merge.
    """

    def __init__(
        self,
        sources: Sequence[Iterable[Sequence]],
        config: ZipperConfig,
        names: Optional[Sequence[str]] = None,
    ) -> None:
        if not sources:
            raise SourceEmptyError("the zipper needs at least one source")
        names = list(names) if names is not None else [f"source {i}" for i in range(len(sources))]
        if len(names) != len(sources):
            raise ValueError(f"got {len(names)} names for {len(sources)} sources")
        self.config = config
        self.reserves = [TrackReserve(s, config, n) for s, n in zip(sources, names)]
        self._failed = False

    def __iter__(self) -> "KWayMergeZipper":
        return self

    def __next__(self) -> ZippedRow:
        if self._failed:
            raise StopIteration

        chroms = [r.current[0] for r in self.reserves if r.current is not None]
        if not chroms:
            raise StopIteration
        min_chrom = min(chroms)
        min_start = min(r.current[1] for r in self.reserves if r.current is not None and r.current[0] == min_chrom)

        default = self.config.default_value
        values: list[float] = []
        try:
            for r in self.reserves:
                cur = r.current
                if cur is not None and cur[0] == min_chrom and cur[1] == min_start:
                    values.append(default if cur[3] is None else cur[3])
                    r.advance()
                else:
                    values.append(default)
        except OrderingViolationError:
            self._failed = True
            raise

        return ZippedRow(min_chrom, min_start, min_start + self.config.interval_length, tuple(values))


class RefinedTrackZipper:
    """Zip refined track files (``chrom start end_exclusive [value]`` lines)."""

    def __init__(self, paths: Sequence[str | Path], config: ZipperConfig) -> None:
        if not paths:
            raise SourceEmptyError("at least one refined track path is required")
        self.paths = [Path(p) for p in paths]
        self.config = config

    def __iter__(self) -> Iterator[ZippedRow]:
        return KWayMergeZipper(
            [iter_track_lines(p) for p in self.paths],
            self.config,
            names=[p.as_posix() for p in self.paths],
        )

    def write_to_file(self, out_path: str | Path) -> Path:
        """Write rows as ``chrom start end_exclusive v_1 .. v_N``; returns the path.

        Rows go to a temporary sibling that replaces ``out_path`` only once the
        merge has finished, so a failed merge leaves no table behind.
        """
        out_path = Path(out_path)
        ensure_dir(out_path.parent)
        tmp = out_path.with_name(out_path.name + ".tmp")
        n = 0
        try:
            with tmp.open("w") as f:
                for row in self:
                    cols = [row.chrom, str(row.start), str(row.end_exclusive)]
                    cols.extend(format_value(v) for v in row.values)
                    f.write("\t".join(cols) + "\n")
                    n += 1
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
        tmp.replace(out_path)
        logger.debug("zipped %d rows from %d sources into %s", n, len(self.paths), out_path)
        return out_path

    def to_dataframe(self) -> pd.DataFrame:
        rows = list(self)
        data = {
            "chrom": [r.chrom for r in rows],
            "start": [r.start for r in rows],
            "end": [r.end_exclusive for r in rows],
        }
        for i in range(len(self.paths)):
            data[f"value_{i + 1}"] = [r.values[i] for r in rows]
        return pd.DataFrame(data)


def read_path_list(path: str | Path) -> list[Path]:
    """Paths listed one per line; blank lines are ignored."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(str(path))
    return [Path(line.strip()) for line in path.read_text().splitlines() if line.strip()]

from __future__ import annotations

from bisect import bisect_left, bisect_right
from typing import Iterable, Iterator

import numpy as np
import pandas as pd

from .errors import InvalidRangeError
from .interval import Interval


class Partition:
    """Disjoint, ascending sequence of ``(Interval, value)`` entries for one chromosome.

    Consecutive entries satisfy ``prev.end < next.start``. Gaps mean "no data",
    not zero. Entries are kept in three parallel lists so that the entries
    touched by :meth:`aggregate` can be located by bisection on starts and ends
    (both are sorted because the entries are disjoint).
    """

    __slots__ = ("_starts", "_ends", "_values")

    def __init__(self, entries: Iterable[tuple[Interval, float]] = ()) -> None:
        self._starts: list[int] = []
        self._ends: list[int] = []
        self._values: list[float] = []
        for interval, value in entries:
            self.aggregate(interval, value)

    @classmethod
    def from_sorted(cls, entries: Iterable[tuple[Interval, float]]) -> "Partition":
        """Build from entries that are already disjoint and ascending.

        Raises:
            InvalidRangeError: if an entry is empty or overlaps / precedes its predecessor.
        """
        p = cls()
        for interval, value in entries:
            if interval.is_empty():
                raise InvalidRangeError(f"Cannot insert empty interval {interval}")
            if p._ends and interval.start <= p._ends[-1]:
                raise InvalidRangeError(
                    f"Entries must be disjoint and ascending: {interval} after end {p._ends[-1]}"
                )
            p._starts.append(interval.start)
            p._ends.append(interval.end)
            p._values.append(float(value))
        return p

    def aggregate(self, interval: Interval, value: float) -> None:
        """Fold ``value`` into every point of ``interval``.

        Points already present get ``old + value``; uncovered points of the
        interval become new entries with ``value``. Adjacent pieces are not
        merged even when their values coincide.

        Finding the k touched entries is O(log n); splicing their replacements
        into the backing lists shifts the tail, so one call is O(n + k) worst case.
        """
        if interval.is_empty():
            raise InvalidRangeError(f"Cannot aggregate an empty interval {interval}")

        value = float(value)
        start, end = interval.start, interval.end

        # entries [lo, hi) are exactly the ones overlapping [start, end]
        lo = bisect_left(self._ends, start)
        hi = bisect_right(self._starts, end)

        starts: list[int] = []
        ends: list[int] = []
        values: list[float] = []

        cursor = start  # first point of the new interval not yet emitted
        for i in range(lo, hi):
            s, e, v = self._starts[i], self._ends[i], self._values[i]
            if s < start:
                starts.append(s)
                ends.append(start - 1)
                values.append(v)
            elif s > cursor:
                starts.append(cursor)
                ends.append(s - 1)
                values.append(value)

            ov_s = max(s, start)
            ov_e = min(e, end)
            starts.append(ov_s)
            ends.append(ov_e)
            values.append(v + value)
            cursor = ov_e + 1

            if e > end:
                starts.append(end + 1)
                ends.append(e)
                values.append(v)

        if cursor <= end:
            starts.append(cursor)
            ends.append(end)
            values.append(value)

        self._starts[lo:hi] = starts
        self._ends[lo:hi] = ends
        self._values[lo:hi] = values

    def __len__(self) -> int:
        return len(self._starts)

    def __bool__(self) -> bool:
        return bool(self._starts)

    def __iter__(self) -> Iterator[tuple[Interval, float]]:
        for s, e, v in zip(self._starts, self._ends, self._values):
            yield Interval(s, e), v

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Partition):
            return NotImplemented
        return (
            self._starts == other._starts
            and self._ends == other._ends
            and self._values == other._values
        )

    def __repr__(self) -> str:
        body = ", ".join(f"{iv}={v:g}" for iv, v in self)
        return f"Partition({body})"

    def value_at(self, pos: int) -> float | None:
        i = bisect_right(self._starts, pos) - 1
        if i >= 0 and self._ends[i] >= pos:
            return self._values[i]
        return None

    def overlaps(self, interval: Interval) -> bool:
        """Whether any entry shares a point with ``interval``."""
        if interval.is_empty():
            return False
        i = bisect_left(self._ends, interval.start)
        return i < len(self._starts) and self._starts[i] <= interval.end

    def to_dataframe(self, chrom: str | None = None) -> pd.DataFrame:
        """Entries as a table with half-open ``end`` (BED convention)."""
        df = pd.DataFrame(
            {
                "start": np.asarray(self._starts, dtype=np.int64),
                "end": np.asarray(self._ends, dtype=np.int64) + 1,
                "value": np.asarray(self._values, dtype=np.float64),
            }
        )
        if chrom is not None:
            df.insert(0, "chrom", chrom)
        return df

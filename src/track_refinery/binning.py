from __future__ import annotations

from enum import Enum
from typing import Iterable, Iterator, Optional

from .errors import InvalidRangeError
from .interval import Interval


class Aggregation(str, Enum):
    """How the values falling into one bin are combined.

    SUM: length-weighted sum, ``sum(value * overlap)``.
    AVERAGE: length-weighted mean over the covered base pairs of the bin.
    """

    SUM = "sum"
    AVERAGE = "mean"

    @classmethod
    def parse(cls, agg: "str | Aggregation") -> "Aggregation":
        if isinstance(agg, Aggregation):
            return agg
        key = str(agg).lower()
        if key == "sum":
            return cls.SUM
        if key in {"mean", "average", "avg"}:
            return cls.AVERAGE
        raise ValueError(f"Unknown agg={agg!r}; expected 'mean' or 'sum'")


def bin_of(pos: int, bin_size: int) -> Interval:
    """The zero-aligned bin ``[k*bin_size, (k+1)*bin_size - 1]`` containing ``pos``."""
    k = pos // bin_size
    return Interval(k * bin_size, (k + 1) * bin_size - 1)


class BinnedIntervalIter:
    """Rebin a sorted, disjoint ``(Interval, value)`` stream into fixed-width bins.

    Bins are zero-aligned and emitted whole; bins with no covering input are
    omitted. A ``bin_size`` of 0 passes the input through unchanged. The output
    is itself a sorted, disjoint stream, so it can be binned again with the
    same or a coarser ``bin_size``.
    """

    def __init__(
        self,
        stream: Iterable[tuple[Interval, float]],
        bin_size: int,
        agg: "str | Aggregation" = Aggregation.AVERAGE,
    ) -> None:
        bin_size = int(bin_size)
        if bin_size < 0:
            raise InvalidRangeError(f"bin_size must be non-negative, received {bin_size}")
        self.bin_size = bin_size
        self.agg = Aggregation.parse(agg)
        self._it: Iterator[tuple[Interval, float]] = iter(stream)

        # unconsumed remainder of the current input entry
        self._pending: Optional[tuple[int, int, float]] = None
        # bin under accumulation
        self._bin: Optional[Interval] = None
        self._total = 0.0
        self._covered = 0

    def __iter__(self) -> "BinnedIntervalIter":
        return self

    def _flush(self) -> tuple[Interval, float]:
        bin_ = self._bin
        if self.agg is Aggregation.SUM:
            value = self._total
        else:
            value = self._total / self._covered
        self._bin = None
        self._total = 0.0
        self._covered = 0
        return bin_, value

    def __next__(self) -> tuple[Interval, float]:
        if self.bin_size == 0:
            interval, value = next(self._it)
            return interval, value

        while True:
            if self._pending is None:
                item = next(self._it, None)
                if item is None:
                    if self._bin is not None:
                        return self._flush()
                    raise StopIteration
                interval, value = item
                if interval.is_empty():
                    continue
                self._pending = (interval.start, interval.end, float(value))

            start, end, value = self._pending
            if self._bin is not None and start > self._bin.end:
                return self._flush()
            if self._bin is None:
                self._bin = bin_of(start, self.bin_size)

            ov_end = min(end, self._bin.end)
            ov = ov_end - start + 1
            self._total += value * ov
            self._covered += ov
            self._pending = (ov_end + 1, end, value) if end > ov_end else None


def weighted_sum(stream: Iterable[tuple[Interval, float]]) -> float:
    """Sum of ``value * size`` over a stream."""
    return float(sum(value * interval.size() for interval, value in stream))

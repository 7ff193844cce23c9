from __future__ import annotations

from typing import Any, Iterable, Iterator, Optional, Sequence

from .errors import OrderingViolationError, SourceEmptyError
from .interval import Interval


class _Cursor:
    """Read cursor over one sorted, disjoint ``(Interval, value)`` stream."""

    __slots__ = ("_it", "index", "current")

    def __init__(self, stream: Iterable[tuple[Interval, Any]], index: int) -> None:
        self._it = iter(stream)
        self.index = index
        self.current: Optional[tuple[Interval, Any]] = None
        self.advance()

    def advance(self) -> None:
        prev = self.current[0] if self.current is not None else None
        for interval, value in self._it:
            if interval.is_empty():
                continue
            if prev is not None and interval.start <= prev.end:
                raise OrderingViolationError(
                    f"source {self.index}: interval {interval} does not follow {prev}"
                )
            self.current = (interval, value)
            return
        self.current = None


class CommonRefinementZipper:
    """Lazy common refinement of N sorted, disjoint interval/value streams.

    Each call to ``next()`` yields ``(interval, values)`` where ``values[i]`` is
    source ``i``'s value on the whole of ``interval`` or ``None`` when source
    ``i`` has no entry there. Output intervals are disjoint, ascending and
    cover exactly the union of the inputs; gaps are skipped.

    Only the current entry of each source is held in memory.
    """

    def __init__(self, streams: Sequence[Iterable[tuple[Interval, Any]]]) -> None:
        if not streams:
            raise SourceEmptyError("common refinement needs at least one source")
        self._cursors = [_Cursor(s, i) for i, s in enumerate(streams)]
        self._pos: Optional[int] = None  # every point < _pos has been emitted

    def __iter__(self) -> "CommonRefinementZipper":
        return self

    def __next__(self) -> tuple[Interval, list[Optional[Any]]]:
        active = [c for c in self._cursors if c.current is not None]
        if not active:
            raise StopIteration

        def eff_start(c: _Cursor) -> int:
            s = c.current[0].start
            return s if self._pos is None else max(s, self._pos)

        lo = min(eff_start(c) for c in active)

        hi: Optional[int] = None
        covering: list[_Cursor] = []
        for c in active:
            interval = c.current[0]
            if interval.start <= lo:
                covering.append(c)
                boundary = interval.end
            else:
                boundary = interval.start - 1
            if hi is None or boundary < hi:
                hi = boundary

        values: list[Optional[Any]] = [None] * len(self._cursors)
        for c in covering:
            values[c.index] = c.current[1]

        # exhaust every cursor sharing this boundary before moving past it
        for c in covering:
            if c.current[0].end == hi:
                c.advance()

        self._pos = hi + 1
        return Interval(lo, hi), values


class FlatRefinementZipper:
    """Fused two-way refinement of an already zipped stream with one more source.

    ``zipped`` yields ``(interval, [v_1..v_n])`` (e.g. a :class:`CommonRefinementZipper`),
    ``stream`` yields ``(interval, value)``; output rows are
    ``(interval, [v_1..v_n, value])`` with ``None`` filling whichever side is absent.
    Folding N sources this way never materialises more than one row per side.
    """

    def __init__(
        self,
        zipped: Iterable[tuple[Interval, list[Optional[Any]]]],
        stream: Iterable[tuple[Interval, Any]],
        width: int,
    ) -> None:
        self._inner = CommonRefinementZipper([zipped, stream])
        self.width = int(width)

    def __iter__(self) -> "FlatRefinementZipper":
        return self

    def __next__(self) -> tuple[Interval, list[Optional[Any]]]:
        interval, (left, right) = next(self._inner)
        row = list(left) if left is not None else [None] * self.width
        row.append(right)
        return interval, row


def common_refinement_zip(*streams: Iterable[tuple[Interval, Any]]) -> CommonRefinementZipper:
    return CommonRefinementZipper(list(streams))


def refine_all(streams: Sequence[Iterable[tuple[Interval, Any]]]) -> Iterator[tuple[Interval, list[Optional[Any]]]]:
    """Fold ``streams`` one at a time through :class:`FlatRefinementZipper`."""
    if not streams:
        raise SourceEmptyError("common refinement needs at least one source")
    zipped: Iterable[tuple[Interval, list[Optional[Any]]]] = CommonRefinementZipper([streams[0]])
    for width, stream in enumerate(streams[1:], start=1):
        zipped = FlatRefinementZipper(zipped, stream, width)
    return iter(zipped)

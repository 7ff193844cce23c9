from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidRangeError

COORD_MIN = -(2**63)
COORD_MAX = 2**63 - 1


@dataclass(frozen=True, order=True)
class Interval:
    """Closed integer interval ``[start, end]``.

    A zero-width interval (``end == start - 1``) is the empty interval; anything
    narrower is rejected.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.end < self.start - 1:
            raise InvalidRangeError(f"Invalid interval: start {self.start} > end {self.end}")
        if self.start < COORD_MIN or self.end > COORD_MAX:
            raise InvalidRangeError(f"Interval [{self.start}, {self.end}] exceeds the 64-bit coordinate range")

    @classmethod
    def from_half_open(cls, start: int, end_exclusive: int) -> "Interval":
        return cls(int(start), int(end_exclusive) - 1)

    @classmethod
    def empty(cls, at: int = 0) -> "Interval":
        return cls(at, at - 1)

    @property
    def end_exclusive(self) -> int:
        return self.end + 1

    def size(self) -> int:
        return self.end - self.start + 1

    def is_empty(self) -> bool:
        return self.end < self.start

    def overlaps(self, other: "Interval") -> bool:
        if self.is_empty() or other.is_empty():
            return False
        return not (self.end < other.start or other.end < self.start)

    def intersect(self, other: "Interval") -> "Interval":
        """Intersection of two intervals; the empty interval when they are disjoint."""
        if not self.overlaps(other):
            return Interval.empty()
        return Interval(max(self.start, other.start), min(self.end, other.end))

    def __str__(self) -> str:
        return f"[{self.start}, {self.end}]"

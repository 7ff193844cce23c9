from __future__ import annotations


class TrackRefineryError(ValueError):
    """Base class for invariant violations detected by the core."""


class InvalidRangeError(TrackRefineryError):
    """Non-positive interval length, negative alignment or non-positive record length."""


class NormalizationError(TrackRefineryError):
    pass


class OrderingViolationError(TrackRefineryError):
    """A pre-sorted source is misordered, misaligned or has a wrong record length."""


class SourceEmptyError(TrackRefineryError):
    pass

"""Track refinery.

Core idea: per-chromosome scored intervals from several sources are folded into
disjoint partitions, refined against each other and binned, so tracks can be
zipped, correlated, compared by their top-k bins and linearly mixed.
"""

from .binning import Aggregation, BinnedIntervalIter
from .chroms import union_zip
from .correlation import ValueTransform, compute_track_correlations, weighted_correlation
from .errors import (
    InvalidRangeError,
    NormalizationError,
    OrderingViolationError,
    SourceEmptyError,
    TrackRefineryError,
)
from .interval import Interval
from .mixture import linear_mixture
from .partition import Partition
from .refinement import CommonRefinementZipper, FlatRefinementZipper, common_refinement_zip
from .refinery import TrackRefinery
from .top_k import get_top_k, get_top_k_fraction_overlap_ratio, get_top_k_overlap_ratio
from .zipper import KWayMergeZipper, RefinedTrackZipper, ZipperConfig

__all__ = [
    "Aggregation",
    "BinnedIntervalIter",
    "CommonRefinementZipper",
    "FlatRefinementZipper",
    "Interval",
    "InvalidRangeError",
    "KWayMergeZipper",
    "NormalizationError",
    "OrderingViolationError",
    "Partition",
    "RefinedTrackZipper",
    "SourceEmptyError",
    "TrackRefinery",
    "TrackRefineryError",
    "ValueTransform",
    "ZipperConfig",
    "common_refinement_zip",
    "compute_track_correlations",
    "get_top_k",
    "get_top_k_fraction_overlap_ratio",
    "get_top_k_overlap_ratio",
    "linear_mixture",
    "union_zip",
    "weighted_correlation",
]

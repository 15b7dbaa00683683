from __future__ import annotations

from .metrics_aggregator import CacheEntry, MetricsAggregator, merge_results
from .snapshot_series import SnapshotSeries

__all__ = [
    "CacheEntry",
    "MetricsAggregator",
    "SnapshotSeries",
    "merge_results",
]

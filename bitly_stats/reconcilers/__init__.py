"""Reconciliation of remote click statistics into the stats file."""

from bitly_stats.reconcilers.link_stats import (
    LinkStatsReconciler,
    yesterday_cutoff,
)

__all__ = [
    "LinkStatsReconciler",
    "yesterday_cutoff",
]

"""Aggregation queries over the local bill collection."""

from bill_tracker.queries.aggregation import (
    filtered_bills,
    group_total,
    group_totals,
    grouped_bills,
    monthly_stats,
)

__all__ = [
    "filtered_bills",
    "group_total",
    "group_totals",
    "grouped_bills",
    "monthly_stats",
]

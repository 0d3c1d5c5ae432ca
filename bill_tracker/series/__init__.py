"""Bill series generation and month arithmetic."""

from bill_tracker.series.engine import SeriesEngine, SeriesPlan
from bill_tracker.series.months import (
    MonthSequence,
    add_months,
    month_label,
    next_month,
    parse_month,
)

__all__ = [
    "MonthSequence",
    "SeriesEngine",
    "SeriesPlan",
    "add_months",
    "month_label",
    "next_month",
    "parse_month",
]

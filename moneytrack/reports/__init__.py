"""Spending summaries over mirrored expenses."""

from moneytrack.reports.summary import (
    CATEGORY_COLORS,
    OTHER_CATEGORY,
    CategorySummary,
    ExpenseSummary,
    SummaryPeriod,
    calculate_summary,
    filter_by_period,
    period_start,
    summarize_period,
)

__all__ = [
    "CATEGORY_COLORS",
    "OTHER_CATEGORY",
    "CategorySummary",
    "ExpenseSummary",
    "SummaryPeriod",
    "calculate_summary",
    "filter_by_period",
    "period_start",
    "summarize_period",
]

"""
Spending Summaries

Per-period spending totals broken down by category.

DESIGN DECISION: Summaries are computed from the expenses already mirrored
in memory. They never hit the store and never estimate: an empty period
has no summary at all rather than a summary of zeros.
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from moneytrack.models.ledger import Expense, ExpenseCategory


OTHER_CATEGORY = "Other"

CATEGORY_COLORS: dict[str, str] = {
    ExpenseCategory.FOOD.value: "#FF6384",
    ExpenseCategory.TRANSPORT.value: "#36A2EB",
    ExpenseCategory.BILLS.value: "#FFCE56",
    ExpenseCategory.ENTERTAINMENT.value: "#4BC0C0",
    ExpenseCategory.SHOPPING.value: "#9966FF",
    OTHER_CATEGORY: "#FF9F40",
}


class SummaryPeriod(str, Enum):
    DAY = "Day"
    WEEK = "Week"
    MONTH = "Month"
    YEAR = "Year"


class CategorySummary(BaseModel):
    """Spending in one category over a period."""

    name: str
    amount: Decimal = Decimal("0")
    color: str
    percentage: int = Field(
        default=0,
        ge=0,
        le=100,
        description="Share of the period total, rounded to a whole percent"
    )


class ExpenseSummary(BaseModel):
    period: SummaryPeriod
    total_amount: Decimal
    categories: list[CategorySummary] = Field(default_factory=list)


def period_start(period: SummaryPeriod, now: Optional[dt.date] = None) -> dt.date:
    """
    First day of the period containing `now`.

    Weeks start on Sunday.
    """
    today = now or dt.date.today()
    period = SummaryPeriod(period)

    if period == SummaryPeriod.DAY:
        return today
    if period == SummaryPeriod.WEEK:
        # date.weekday() counts from Monday
        return today - dt.timedelta(days=(today.weekday() + 1) % 7)
    if period == SummaryPeriod.MONTH:
        return today.replace(day=1)
    return today.replace(month=1, day=1)


def filter_by_period(
    expenses: Iterable[Expense],
    period: SummaryPeriod,
    now: Optional[dt.date] = None,
) -> list[Expense]:
    """Expenses dated from the start of the period up to and including `now`."""
    today = now or dt.date.today()
    start = period_start(period, today)
    return [expense for expense in expenses if start <= expense.date <= today]


def calculate_summary(
    expenses: Iterable[Expense],
    period: SummaryPeriod,
) -> Optional[ExpenseSummary]:
    """
    Total and per-category breakdown of `expenses`.

    Categories appear in order of first occurrence. Blank categories are
    counted as "Other".

    Returns:
        None if there are no expenses
    """
    expenses = list(expenses)
    if not expenses:
        return None

    categories: dict[str, CategorySummary] = {}
    total = Decimal("0")

    for expense in expenses:
        name = expense.category.strip() or OTHER_CATEGORY
        if name not in categories:
            categories[name] = CategorySummary(
                name=name,
                color=CATEGORY_COLORS.get(name, CATEGORY_COLORS[OTHER_CATEGORY]),
            )
        categories[name].amount += expense.amount
        total += expense.amount

    for category in categories.values():
        share = category.amount / total * 100
        category.percentage = int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    return ExpenseSummary(
        period=SummaryPeriod(period),
        total_amount=total,
        categories=list(categories.values()),
    )


def summarize_period(
    expenses: Iterable[Expense],
    period: SummaryPeriod,
    now: Optional[dt.date] = None,
) -> Optional[ExpenseSummary]:
    """Summary of the expenses falling in the current `period`."""
    return calculate_summary(filter_by_period(expenses, period, now), period)

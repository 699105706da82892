"""
Tests for spending summaries.
"""

import datetime as dt
from decimal import Decimal

from moneytrack.models.ledger import Expense
from moneytrack.reports import (
    CATEGORY_COLORS,
    SummaryPeriod,
    calculate_summary,
    filter_by_period,
    period_start,
    summarize_period,
)

from tests.conftest import make_expense


# A Wednesday
NOW = dt.date(2024, 5, 15)


class TestPeriodStart:
    """Tests for period boundaries."""

    def test_day(self):
        assert period_start(SummaryPeriod.DAY, NOW) == NOW

    def test_week_starts_on_sunday(self):
        assert period_start(SummaryPeriod.WEEK, NOW) == dt.date(2024, 5, 12)

    def test_week_on_a_sunday(self):
        sunday = dt.date(2024, 5, 12)
        assert period_start(SummaryPeriod.WEEK, sunday) == sunday

    def test_month(self):
        assert period_start(SummaryPeriod.MONTH, NOW) == dt.date(2024, 5, 1)

    def test_year(self):
        assert period_start("Year", NOW) == dt.date(2024, 1, 1)


class TestFilterByPeriod:
    """Tests for selecting the expenses of a period."""

    def test_excludes_future_and_earlier(self):
        expenses = [
            make_expense("april", dt.date(2024, 4, 30)),
            make_expense("may-1", dt.date(2024, 5, 1)),
            make_expense("today", NOW),
            make_expense("future", dt.date(2024, 5, 20)),
        ]
        result = filter_by_period(expenses, SummaryPeriod.MONTH, NOW)
        assert [e.id for e in result] == ["may-1", "today"]


class TestCalculateSummary:
    """Tests for the category breakdown."""

    def test_no_expenses_has_no_summary(self):
        assert calculate_summary([], SummaryPeriod.MONTH) is None

    def test_totals_and_percentages(self):
        expenses = [
            make_expense("e1", NOW, amount="30", category="Food"),
            make_expense("e2", NOW, amount="10", category="Transport"),
            make_expense("e3", NOW, amount="20", category="Food"),
        ]
        summary = calculate_summary(expenses, SummaryPeriod.MONTH)

        assert summary.total_amount == Decimal("60")
        assert [c.name for c in summary.categories] == ["Food", "Transport"]
        food, transport = summary.categories
        assert food.amount == Decimal("50")
        assert food.percentage == 83
        assert transport.percentage == 17
        assert food.color == CATEGORY_COLORS["Food"]

    def test_half_percent_rounds_up(self):
        expenses = [
            make_expense("e1", NOW, amount="1", category="Bills"),
            make_expense("e2", NOW, amount="7", category="Shopping"),
        ]
        summary = calculate_summary(expenses, SummaryPeriod.DAY)
        assert [c.percentage for c in summary.categories] == [13, 88]

    def test_unknown_category_uses_other_color(self):
        summary = calculate_summary(
            [make_expense("e1", NOW, category="Pets")],
            SummaryPeriod.WEEK,
        )
        assert summary.categories[0].color == CATEGORY_COLORS["Other"]
        assert summary.categories[0].percentage == 100

    def test_blank_category_counts_as_other(self):
        # Rows written by older clients can carry an empty category
        blank = Expense.model_construct(
            id="e1",
            title="Misc",
            amount=Decimal("5"),
            category="",
            date=NOW,
            account_id="acc1",
            user_id="user-1",
        )
        summary = calculate_summary([blank], SummaryPeriod.DAY)
        assert summary.categories[0].name == "Other"

    def test_summarize_period(self):
        expenses = [
            make_expense("old", dt.date(2023, 12, 31), amount="99"),
            make_expense("new", dt.date(2024, 2, 1), amount="5"),
        ]
        summary = summarize_period(expenses, SummaryPeriod.YEAR, NOW)
        assert summary.total_amount == Decimal("5")
        assert summary.period == SummaryPeriod.YEAR

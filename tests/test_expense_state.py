"""
Tests for ExpenseStateManager and the pure sort/filter helpers.
"""

import datetime as dt
from decimal import Decimal

import pytest

from moneytrack.exceptions import RemoteError, ValidationError
from moneytrack.models.audit import AuditEventType
from moneytrack.models.ledger import SortOrder
from moneytrack.services.storage import EXPENSE_COLLECTION, StorageError
from moneytrack.state import LoadStatus, filter_expenses, sort_expenses

from tests.conftest import USER_ID, expense_row, make_expense


def ids(expenses) -> list[str]:
    return [expense.id for expense in expenses]


MIXED = [
    make_expense("jan-food", dt.date(2024, 1, 31), category="Food"),
    make_expense("feb-food-1", dt.date(2024, 2, 1), category="Food"),
    make_expense("feb-bills", dt.date(2024, 2, 10), category="Bills"),
    make_expense("feb-food-2", dt.date(2024, 2, 28), category="Food"),
    make_expense("feb-food-3", dt.date(2024, 2, 14), category="Food"),
    make_expense("mar-food", dt.date(2024, 3, 1), category="Food"),
]


class TestSortExpenses:
    """Tests for the date ordering."""

    def test_desc_is_most_recent_first(self):
        assert ids(sort_expenses(MIXED, SortOrder.DESC))[:2] == ["mar-food", "feb-food-2"]

    def test_asc_reverses_desc(self):
        """Test sorting a desc list ascending reverses it exactly."""
        desc = sort_expenses(MIXED, "desc")
        assert sort_expenses(desc, "asc") == list(reversed(desc))

    def test_sorting_twice_is_idempotent(self):
        desc = sort_expenses(MIXED, SortOrder.DESC)
        assert sort_expenses(desc, SortOrder.DESC) == desc

    def test_same_day_keeps_input_order(self):
        same_day = [
            make_expense("first", dt.date(2024, 2, 1)),
            make_expense("second", dt.date(2024, 2, 1)),
        ]
        assert ids(sort_expenses(same_day, SortOrder.DESC)) == ["first", "second"]
        assert ids(sort_expenses(same_day, SortOrder.ASC)) == ["first", "second"]


class TestFilterExpenses:
    """Tests for the pure filter."""

    def test_february_food_ascending(self):
        """Test a date range plus category filter, oldest first."""
        result = filter_expenses(
            MIXED,
            start_date=dt.date(2024, 2, 1),
            end_date=dt.date(2024, 2, 28),
            categories=["Food"],
            sort_order="asc",
        )
        assert ids(result) == ["feb-food-1", "feb-food-3", "feb-food-2"]

    def test_missing_bounds_are_open(self):
        result = filter_expenses(MIXED, end_date=dt.date(2024, 1, 31))
        assert ids(result) == ["jan-food"]

    def test_empty_categories_match_all(self):
        assert len(filter_expenses(MIXED, categories=[])) == len(MIXED)

    def test_datetime_bounds_compare_by_day(self):
        result = filter_expenses(
            MIXED,
            start_date=dt.datetime(2024, 3, 1, 23, 59),
            end_date=dt.datetime(2024, 3, 1, 0, 0),
        )
        assert ids(result) == ["mar-food"]

    def test_filter_does_not_mutate_input(self):
        source = list(MIXED)
        filter_expenses(source, categories=["Bills"], sort_order="asc")
        assert source == MIXED


class TestExpenseLoad:
    """Tests for load()."""

    @pytest.mark.asyncio
    async def test_load_publishes_sorted_lists(self, seeded_store, expense_manager):
        await expense_manager.load()

        state = expense_manager.state
        assert state.status == LoadStatus.READY
        assert ids(state.all) == ["e3", "e2", "e1"]
        assert state.filtered == state.all

    @pytest.mark.asyncio
    async def test_load_uses_remembered_sort_order(self, seeded_store, expense_manager):
        await expense_manager.load()
        expense_manager.filter_expenses(sort_order="asc")

        await expense_manager.load()

        assert ids(expense_manager.expenses) == ["e1", "e2", "e3"]
        assert expense_manager.state.active_filter is None

    @pytest.mark.asyncio
    async def test_load_failure_clears_both_lists(self, seeded_store, expense_manager):
        await expense_manager.load()
        seeded_store.fail_next("select", EXPENSE_COLLECTION, StorageError("network down"))

        await expense_manager.load()

        state = expense_manager.state
        assert state.status == LoadStatus.ERROR
        assert state.all == () and state.filtered == ()
        assert "Failed to get expenses" in state.error


class TestExpenseMutations:
    """Tests for add, update and delete."""

    @pytest.mark.asyncio
    async def test_add_inserts_at_sorted_position(self, seeded_store, expense_manager, audit_logger):
        await expense_manager.load()

        expense = await expense_manager.add_expense({
            "title": "Groceries",
            "amount": Decimal("30"),
            "category": "Food",
            "date": dt.date(2024, 2, 15),
            "account_id": "acc1",
            "user_id": USER_ID,
        })

        assert ids(expense_manager.expenses) == ["e3", expense.id, "e2", "e1"]
        assert ids(expense_manager.filtered) == ["e3", expense.id, "e2", "e1"]
        assert seeded_store.writes(EXPENSE_COLLECTION) == [("insert", EXPENSE_COLLECTION)]
        assert audit_logger.events[-1].event_type == AuditEventType.EXPENSE_ADDED

    @pytest.mark.asyncio
    async def test_add_invalid_draft_makes_no_call(self, seeded_store, expense_manager):
        await expense_manager.load()

        with pytest.raises(ValidationError, match="Please enter a valid positive number"):
            await expense_manager.add_expense({
                "title": "Refund",
                "amount": Decimal("-5"),
                "category": "Food",
                "date": dt.date(2024, 2, 15),
                "account_id": "acc1",
                "user_id": USER_ID,
            })

        assert seeded_store.writes(EXPENSE_COLLECTION) == []
        assert len(expense_manager.expenses) == 3

    @pytest.mark.asyncio
    async def test_title_update_patches_in_place(self, seeded_store, expense_manager):
        await expense_manager.load()
        selects_before = seeded_store.calls.count(("select", EXPENSE_COLLECTION))

        updated = await expense_manager.update_expense("e2", {"title": "Train"})

        assert updated.title == "Train"
        assert expense_manager.get_expense("e2").title == "Train"
        assert seeded_store.calls.count(("select", EXPENSE_COLLECTION)) == selects_before

    @pytest.mark.asyncio
    async def test_date_update_reloads(self, seeded_store, expense_manager):
        await expense_manager.load()

        await expense_manager.update_expense("e1", {"date": dt.date(2024, 3, 1)})

        assert ids(expense_manager.expenses) == ["e1", "e3", "e2"]

    @pytest.mark.asyncio
    async def test_delete_removes_from_both_lists(self, seeded_store, expense_manager):
        await expense_manager.load()
        expense_manager.filter_expenses(categories=["Food"])
        selects_before = seeded_store.calls.count(("select", EXPENSE_COLLECTION))

        await expense_manager.delete_expense("e3")

        assert "e3" not in ids(expense_manager.expenses)
        assert "e3" not in ids(expense_manager.filtered)
        assert seeded_store.calls.count(("select", EXPENSE_COLLECTION)) == selects_before

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_expense(self, seeded_store, expense_manager):
        await expense_manager.load()
        seeded_store.fail_next("delete", EXPENSE_COLLECTION, StorageError("permission denied"))

        with pytest.raises(RemoteError, match="Failed to delete expense"):
            await expense_manager.delete_expense("e3")

        assert "e3" in ids(expense_manager.expenses)
        assert expense_manager.state.status == LoadStatus.ERROR

    @pytest.mark.asyncio
    async def test_restore_is_idempotent(self, seeded_store, expense_manager):
        await expense_manager.load()
        expense = expense_manager.get_expense("e2")

        expense_manager.restore_expense(expense)

        assert ids(expense_manager.expenses) == ["e3", "e2", "e1"]


class TestExpenseView:
    """Tests for filter_expenses() and change_sort_order() on the manager."""

    @pytest.mark.asyncio
    async def test_filter_is_pure_over_all(self, seeded_store, expense_manager):
        await expense_manager.load()
        all_before = expense_manager.expenses

        first = expense_manager.filter_expenses(categories=["Food"], sort_order="asc")
        second = expense_manager.filter_expenses(categories=["Food"], sort_order="asc")

        assert first == second
        assert ids(first) == ["e1", "e3"]
        assert expense_manager.expenses == all_before
        assert expense_manager.sort_order == SortOrder.ASC
        assert expense_manager.state.active_filter.categories == ("Food",)

    @pytest.mark.asyncio
    async def test_change_sort_order_resorts_filtered_only(self, seeded_store, expense_manager):
        await expense_manager.load()
        expense_manager.filter_expenses(categories=["Food"])
        calls_before = len(seeded_store.calls)

        result = expense_manager.change_sort_order(SortOrder.ASC)

        assert ids(result) == ["e1", "e3"]
        assert ids(expense_manager.expenses) == ["e3", "e2", "e1"]
        assert len(seeded_store.calls) == calls_before

    @pytest.mark.asyncio
    async def test_sign_out_clears_both_lists(self, seeded_store, session, expense_manager):
        expense_manager.start()
        await expense_manager.flush()
        assert len(expense_manager.expenses) == 3

        session.sign_out()

        assert expense_manager.state.status == LoadStatus.IDLE
        assert expense_manager.expenses == [] and expense_manager.filtered == []
        expense_manager.close()

    @pytest.mark.asyncio
    async def test_remote_change_triggers_reload(self, seeded_store, expense_manager):
        expense_manager.start()
        await expense_manager.flush()

        await seeded_store.insert(
            EXPENSE_COLLECTION,
            expense_row("remote", "2024-03-01", user_id=USER_ID),
        )
        await expense_manager.flush()

        assert ids(expense_manager.expenses)[0] == "remote"
        expense_manager.close()

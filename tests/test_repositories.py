"""
Tests for the Account and Expense repositories.
"""

import datetime as dt
from decimal import Decimal

import pytest

from moneytrack.exceptions import DuplicateMainAccountError, RemoteError, ValidationError
from moneytrack.models.ledger import MAIN_ACCOUNT_NAME, AccountDraft, ExpenseDraft
from moneytrack.repositories import (
    AccountRepository,
    ExpenseRepository,
    parse_date,
    serialize_date,
)
from moneytrack.services.storage import (
    ACCOUNT_COLLECTION,
    EXPENSE_COLLECTION,
    DuplicateError,
    InMemoryStore,
    NotFoundError,
    StorageError,
)

from tests.conftest import USER_ID, account_row, expense_row


def main_draft(user_id: str = USER_ID) -> AccountDraft:
    return AccountDraft(
        name=MAIN_ACCOUNT_NAME,
        currency="USD",
        balance=Decimal("0"),
        color="#FF6384",
        user_id=user_id,
    )


class TestDateConversion:
    """Tests for the wire date format."""

    def test_serialize_date(self):
        assert serialize_date(dt.date(2024, 2, 1)) == "2024-02-01"
        assert serialize_date(dt.datetime(2024, 2, 1, 18, 30)) == "2024-02-01"

    def test_parse_bare_date(self):
        assert parse_date("2024-02-01") == dt.date(2024, 2, 1)

    def test_parse_timestamp_with_z_suffix(self):
        assert parse_date("2024-02-01T10:00:00.000Z") == dt.date(2024, 2, 1)

    def test_parse_rejects_empty(self):
        with pytest.raises(ValueError):
            parse_date("")


class TestAccountRepository:
    """Tests for AccountRepository."""

    @pytest.mark.asyncio
    async def test_list_orders_by_name(self):
        store = InMemoryStore()
        store.seed(ACCOUNT_COLLECTION, [
            account_row("a2", name="Savings"),
            account_row("a1", name="Cash"),
        ])
        accounts = await AccountRepository(store).list(USER_ID)
        assert [a.name for a in accounts] == ["Cash", "Savings"]

    @pytest.mark.asyncio
    async def test_list_skips_malformed_rows(self):
        store = InMemoryStore()
        store.seed(ACCOUNT_COLLECTION, [
            account_row("a1"),
            {**account_row("bad"), "currency": "XXX"},
        ])
        accounts = await AccountRepository(store).list(USER_ID)
        assert [a.id for a in accounts] == ["a1"]

    @pytest.mark.asyncio
    async def test_create_validates_before_store_call(self):
        store = InMemoryStore()
        with pytest.raises(ValidationError):
            await AccountRepository(store).create({"name": "Wallet"})
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_create_main_account_returns_existing(self):
        """Test Main Account creation is idempotent."""
        store = InMemoryStore()
        store.seed(ACCOUNT_COLLECTION, [account_row("main", name=MAIN_ACCOUNT_NAME)])

        account = await AccountRepository(store).create(main_draft())

        assert account.id == "main"
        assert store.writes(ACCOUNT_COLLECTION) == []

    @pytest.mark.asyncio
    async def test_create_recovers_from_insert_conflict(self):
        """Test a uniqueness violation on insert re-fetches the winner."""
        store = InMemoryStore()
        repo = AccountRepository(store)

        async def racing_insert(collection, row):
            # Another client wins the race between our check and our insert
            store.seed(ACCOUNT_COLLECTION, [account_row("winner", name=MAIN_ACCOUNT_NAME)])
            raise DuplicateError("duplicate key value violates unique constraint")

        store.insert = racing_insert
        account = await repo.create(main_draft())
        assert account.id == "winner"

    @pytest.mark.asyncio
    async def test_create_conflict_without_existing_raises(self):
        store = InMemoryStore()
        store.fail_next("insert", ACCOUNT_COLLECTION, DuplicateError("conflict"))
        with pytest.raises(DuplicateMainAccountError):
            await AccountRepository(store).create(main_draft())

    @pytest.mark.asyncio
    async def test_get_missing_account(self):
        with pytest.raises(NotFoundError):
            await AccountRepository(InMemoryStore()).get("nope")

    @pytest.mark.asyncio
    async def test_update_sends_only_set_fields(self):
        store = InMemoryStore()
        store.seed(ACCOUNT_COLLECTION, [account_row("a1", balance="100")])
        account = await AccountRepository(store).update("a1", {"balance": Decimal("70")})
        assert account.balance == Decimal("70")
        assert account.name == "Cash"

    @pytest.mark.asyncio
    async def test_delete_does_not_protect_main_account(self):
        """Test protection is left to the state manager."""
        store = InMemoryStore()
        store.seed(ACCOUNT_COLLECTION, [account_row("main", name=MAIN_ACCOUNT_NAME)])
        await AccountRepository(store).delete("main")
        assert store.rows(ACCOUNT_COLLECTION) == []

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self):
        store = InMemoryStore()
        store.fail_next("select", ACCOUNT_COLLECTION, RuntimeError("socket closed"))
        with pytest.raises(StorageError, match="Failed to list accounts: socket closed"):
            await AccountRepository(store).list(USER_ID)


class TestExpenseRepository:
    """Tests for ExpenseRepository."""

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self):
        store = InMemoryStore()
        store.seed(EXPENSE_COLLECTION, [
            expense_row("e1", "2024-01-15"),
            expense_row("e2", "2024-03-01"),
            expense_row("e3", "2024-02-10"),
        ])
        expenses = await ExpenseRepository(store).list(USER_ID)
        assert [e.id for e in expenses] == ["e2", "e3", "e1"]

    @pytest.mark.asyncio
    async def test_dates_round_trip_through_wire_form(self):
        store = InMemoryStore()
        expense = await ExpenseRepository(store).create(ExpenseDraft(
            title="Lunch",
            amount=Decimal("12.50"),
            category="Food",
            date=dt.date(2024, 2, 1),
            account_id="acc1",
            user_id=USER_ID,
        ))
        assert store.rows(EXPENSE_COLLECTION)[0]["date"] == "2024-02-01"
        assert expense.date == dt.date(2024, 2, 1)
        assert expense.amount == Decimal("12.50")

    @pytest.mark.asyncio
    async def test_reads_timestamp_dates(self):
        store = InMemoryStore()
        store.seed(EXPENSE_COLLECTION, [expense_row("e1", "2024-02-01T23:10:00Z")])
        expense = await ExpenseRepository(store).get("e1")
        assert expense.date == dt.date(2024, 2, 1)

    @pytest.mark.asyncio
    async def test_update_serializes_date(self):
        store = InMemoryStore()
        store.seed(EXPENSE_COLLECTION, [expense_row("e1", "2024-02-01")])
        await ExpenseRepository(store).update("e1", {"date": dt.date(2024, 3, 5)})
        assert store.rows(EXPENSE_COLLECTION)[0]["date"] == "2024-03-05"

    @pytest.mark.asyncio
    async def test_store_failure_names_the_operation(self):
        store = InMemoryStore()
        store.fail_next("insert", EXPENSE_COLLECTION, StorageError("permission denied"))
        with pytest.raises(RemoteError, match="Failed to add expense: permission denied"):
            await ExpenseRepository(store).create({
                "title": "Lunch",
                "amount": "5",
                "category": "Food",
                "date": "2024-02-01",
                "account_id": "acc1",
                "user_id": USER_ID,
            })

    @pytest.mark.asyncio
    async def test_not_found_passes_through(self):
        with pytest.raises(NotFoundError):
            await ExpenseRepository(InMemoryStore()).delete("nope")

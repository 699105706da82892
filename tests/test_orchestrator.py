"""
Tests for the application wiring.
"""

import datetime as dt
from decimal import Decimal

import pytest

from moneytrack.models.ledger import MAIN_ACCOUNT_NAME, User
from moneytrack.orchestrator import LedgerApp, create_app_components
from moneytrack.reports import SummaryPeriod
from moneytrack.services.storage import InMemoryStore
from moneytrack.state import LoadStatus


class TestCreateAppComponents:
    """Tests for the factory."""

    def test_defaults_to_memory_store(self):
        app = create_app_components()
        assert isinstance(app.store, InMemoryStore)

    def test_unconfigured_sheets_fall_back_to_memory(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        app = create_app_components(use_sheets=True)

        assert isinstance(app.store, InMemoryStore)


class TestLedgerApp:
    """End-to-end flow against the in-memory store."""

    @pytest.mark.asyncio
    async def test_session_flow(self):
        app = LedgerApp(InMemoryStore(), coalesce_window=0)
        app.start()
        assert app.accounts.state.status == LoadStatus.IDLE

        await app.sign_in(User(id="u1", email="u1@example.com"))
        main = app.accounts.main_account
        assert main is not None and main.name == MAIN_ACCOUNT_NAME

        expense = await app.add_expense({
            "title": "Coffee",
            "amount": Decimal("4.50"),
            "category": "Food",
            "date": dt.date(2024, 5, 14),
            "account_id": main.id,
            "user_id": "u1",
        })
        await app.flush()

        assert app.accounts.main_account.balance == Decimal("-4.50")
        assert app.total_balance_usd() == Decimal("-4.50")
        assert [e.id for e in app.expenses.expenses] == [expense.id]

        summary = app.summary(SummaryPeriod.MONTH, now=dt.date(2024, 5, 15))
        assert summary.total_amount == Decimal("4.50")

        await app.delete_expense(expense.id)
        await app.flush()
        assert app.accounts.main_account.balance == Decimal("0.00")
        assert app.expenses.expenses == []

        await app.sign_out()
        assert app.accounts.state.status == LoadStatus.IDLE
        assert app.expenses.state.status == LoadStatus.IDLE
        app.close()

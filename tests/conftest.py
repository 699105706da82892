"""
Shared fixtures.

Everything runs against InMemoryStore. No network.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional

import pytest

from moneytrack.audit import AuditLogger
from moneytrack.balance import BalanceAdjuster
from moneytrack.models.ledger import MAIN_ACCOUNT_NAME, Expense, User
from moneytrack.repositories import AccountRepository, ExpenseRepository
from moneytrack.services.session import SessionContext
from moneytrack.services.storage import ACCOUNT_COLLECTION, EXPENSE_COLLECTION, InMemoryStore
from moneytrack.state import AccountStateManager, ExpenseStateManager


USER_ID = "user-1"


def account_row(
    account_id: str,
    name: str = "Cash",
    balance: str = "0",
    currency: str = "USD",
    user_id: str = USER_ID,
) -> dict:
    return {
        "id": account_id,
        "name": name,
        "currency": currency,
        "balance": balance,
        "color": "#36A2EB",
        "user_id": user_id,
    }


def expense_row(
    expense_id: str,
    date: str,
    amount: str = "10",
    category: str = "Food",
    account_id: str = "acc1",
    title: Optional[str] = None,
    user_id: str = USER_ID,
) -> dict:
    return {
        "id": expense_id,
        "title": title or f"Expense {expense_id}",
        "amount": amount,
        "category": category,
        "date": date,
        "account_id": account_id,
        "user_id": user_id,
    }


def make_expense(
    expense_id: str,
    date: dt.date,
    amount: str = "10",
    category: str = "Food",
    account_id: str = "acc1",
) -> Expense:
    return Expense(
        id=expense_id,
        title=f"Expense {expense_id}",
        amount=Decimal(amount),
        category=category,
        date=date,
        account_id=account_id,
        user_id=USER_ID,
    )


@pytest.fixture
def user() -> User:
    return User(id=USER_ID, email="user@example.com")


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def session(user) -> SessionContext:
    return SessionContext(user)


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def account_repo(store) -> AccountRepository:
    return AccountRepository(store)


@pytest.fixture
def expense_repo(store) -> ExpenseRepository:
    return ExpenseRepository(store)


@pytest.fixture
def account_manager(account_repo, session, audit_logger) -> AccountStateManager:
    return AccountStateManager(account_repo, session, audit_logger, coalesce_window=0)


@pytest.fixture
def expense_manager(expense_repo, session, audit_logger) -> ExpenseStateManager:
    return ExpenseStateManager(expense_repo, session, audit_logger, coalesce_window=0)


@pytest.fixture
def adjuster(account_manager, expense_manager, audit_logger) -> BalanceAdjuster:
    return BalanceAdjuster(account_manager, expense_manager, audit_logger)


@pytest.fixture
def seeded_store(store) -> InMemoryStore:
    """Main Account with 0, acc1 (USD 100) and three expenses on acc1."""
    store.seed(ACCOUNT_COLLECTION, [
        account_row("main", name=MAIN_ACCOUNT_NAME),
        account_row("acc1", name="Wallet", balance="100"),
    ])
    store.seed(EXPENSE_COLLECTION, [
        expense_row("e1", "2024-01-15", amount="12.50", category="Food"),
        expense_row("e2", "2024-02-10", amount="40", category="Transport"),
        expense_row("e3", "2024-02-20", amount="8", category="Food"),
    ])
    return store

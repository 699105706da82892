"""In-memory state managers mirroring the remote collections."""

from moneytrack.state.accounts import AccountsState, AccountStateManager
from moneytrack.state.base import LoadStatus, ReloadCoalescer, StateManager
from moneytrack.state.expenses import (
    ExpenseFilter,
    ExpensesState,
    ExpenseStateManager,
    filter_expenses,
    sort_expenses,
)

__all__ = [
    "AccountsState",
    "AccountStateManager",
    "ExpenseFilter",
    "ExpensesState",
    "ExpenseStateManager",
    "LoadStatus",
    "ReloadCoalescer",
    "StateManager",
    "filter_expenses",
    "sort_expenses",
]

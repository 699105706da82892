"""
Repositories Package

CRUD facades over the remote store's Account and Expense collections.
"""

from moneytrack.repositories.accounts import AccountRepository
from moneytrack.repositories.expenses import (
    ExpenseRepository,
    parse_date,
    serialize_date,
)

__all__ = [
    "AccountRepository",
    "ExpenseRepository",
    "parse_date",
    "serialize_date",
]

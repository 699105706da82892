"""
Data Models Package

This package contains all Pydantic models used in moneytrack.
All data flowing between the remote store and the state managers
must conform to these schemas.
"""

from moneytrack.models.ledger import (
    ACCOUNT_COLORS,
    DEFAULT_ACCOUNT_COLOR,
    MAIN_ACCOUNT_NAME,
    Account,
    AccountDraft,
    AccountUpdate,
    Currency,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseUpdate,
    SortOrder,
    User,
    ValidationIssue,
)
from moneytrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "ACCOUNT_COLORS",
    "DEFAULT_ACCOUNT_COLOR",
    "MAIN_ACCOUNT_NAME",
    "Account",
    "AccountDraft",
    "AccountUpdate",
    "Currency",
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "ExpenseUpdate",
    "SortOrder",
    "User",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

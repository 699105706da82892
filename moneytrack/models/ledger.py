"""
Core Data Models for moneytrack

These models define the strict schemas for all data flowing between the
remote store, the repositories and the in-memory state managers.
They are designed to:
1. Enforce type safety at runtime
2. Keep money as Decimal end to end
3. Be serializable for the remote store and for logging
4. Separate "drafts" (user input, may be incomplete) from stored records

DESIGN DECISION: Drafts have every field optional. Missing fields are
reported by the validator with a clear message instead of surfacing as a
pydantic error at construction time.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


# =============================================================================
# CONSTANTS
# =============================================================================

MAIN_ACCOUNT_NAME = "Main Account"

DEFAULT_ACCOUNT_COLOR = "#FF6384"

ACCOUNT_COLORS = [
    "#FF6384",
    "#36A2EB",
    "#FFCE56",
    "#4BC0C0",
    "#9966FF",
    "#FF9F40",
]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Currency(str, Enum):
    """Currencies an account can be denominated in."""
    USD = "USD"
    UAH = "UAH"
    EUR = "EUR"
    GBP = "GBP"


class ExpenseCategory(str, Enum):
    """
    Suggested expense categories.

    These are suggestions only. Expense.category is free text and any
    value is accepted.
    """
    FOOD = "Food"
    TRANSPORT = "Transport"
    BILLS = "Bills"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"


class SortOrder(str, Enum):
    """Date ordering for expense lists."""
    DESC = "desc"  # Most recent first
    ASC = "asc"    # Oldest first


# =============================================================================
# AUTH BOUNDARY
# =============================================================================

class User(BaseModel):
    """Authenticated user as reported by the auth provider."""

    id: str = Field(
        ...,
        min_length=1,
        description="Owning user identifier"
    )
    email: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# ACCOUNT MODELS
# =============================================================================

class Account(BaseModel):
    """
    A stored monetary account.

    The balance is signed and denominated in the account's currency.
    It is stored as-is by the remote store and maintained by the
    balance adjustment protocol.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        description="Identifier assigned by the remote store"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display label"
    )
    currency: Currency
    balance: Decimal = Field(
        ...,
        description="Signed balance in the account currency"
    )
    color: str = Field(
        ...,
        description="Opaque display tag"
    )
    user_id: str

    @property
    def is_main(self) -> bool:
        """Is this the per-user Main Account?"""
        return self.name == MAIN_ACCOUNT_NAME


class AccountDraft(BaseModel):
    """
    Input for creating an account.

    All fields are optional here, the validator decides what is missing.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    currency: Optional[str] = None
    balance: Optional[Decimal] = None
    color: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def is_main(self) -> bool:
        return self.name == MAIN_ACCOUNT_NAME


class AccountUpdate(BaseModel):
    """Partial update of an account. Only explicitly set fields are sent."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    currency: Optional[Currency] = None
    balance: Optional[Decimal] = None
    color: Optional[str] = None

    def to_patch(self) -> dict[str, Any]:
        """Fields explicitly set on this update, in wire form."""
        return self.model_dump(mode="json", exclude_unset=True)


# =============================================================================
# EXPENSE MODELS
# =============================================================================

class Expense(BaseModel):
    """
    A stored expense.

    The amount is positive and denominated in the currency of the
    linked account.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive amount in the linked account's currency"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Free text, see ExpenseCategory for suggestions"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date the expense happened on"
    )
    account_id: str
    user_id: str


class ExpenseDraft(BaseModel):
    """Input for creating an expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = None
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    date: Optional[dt.date] = None
    account_id: Optional[str] = None
    user_id: Optional[str] = None


class ExpenseUpdate(BaseModel):
    """Partial update of an expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    category: Optional[str] = None
    date: Optional[dt.date] = None
    account_id: Optional[str] = None

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    @property
    def touches_ordering(self) -> bool:
        """Does this update change sort position or filter membership?"""
        return bool(self.model_fields_set & {"amount", "date", "category"})

    @property
    def touches_balance(self) -> bool:
        """Does this update change which balance the expense is charged to, or by how much?"""
        return bool(self.model_fields_set & {"amount", "account_id"})


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Issue severity; only errors block the action"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )

"""
Ledger exceptions.

Store failures (RemoteError, NotFoundError) come from the storage layer
and are re-exported here so callers have one place to import from.
"""

from decimal import Decimal
from typing import Optional

from moneytrack.models.ledger import ValidationIssue
from moneytrack.services.storage.interface import (
    NotFoundError,
    StorageError as RemoteError,
)


class LedgerError(Exception):
    """Base exception for ledger rule violations."""
    pass


class ValidationError(LedgerError):
    """Required field missing or malformed."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        message = "; ".join(issue.message for issue in issues) or "Validation failed"
        super().__init__(message)


class DuplicateMainAccountError(LedgerError):
    """A create or rename would produce a second Main Account."""

    def __init__(
        self,
        message: str = "Main Account already exists",
        existing_id: Optional[str] = None,
    ):
        self.existing_id = existing_id
        super().__init__(message)


class ProtectedAccountError(LedgerError):
    """Attempted deletion of the Main Account."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__("Cannot delete Main Account")


class PartialAdjustmentError(LedgerError):
    """
    One leg of a balance adjustment succeeded and the other failed.

    The ledger is left inconsistent. The intended compensating delta is
    recorded in the adjustment journal and can be replayed explicitly.
    """

    def __init__(
        self,
        account_id: str,
        failed_leg: str,
        pending_delta: Decimal,
        cause: Exception,
    ):
        self.account_id = account_id
        self.failed_leg = failed_leg
        self.pending_delta = pending_delta
        self.cause = cause
        super().__init__(
            f"Balance adjustment for account {account_id} incomplete: "
            f"{failed_leg} failed ({cause})"
        )


__all__ = [
    "DuplicateMainAccountError",
    "LedgerError",
    "NotFoundError",
    "PartialAdjustmentError",
    "ProtectedAccountError",
    "RemoteError",
    "ValidationError",
]

"""
Audit Models for moneytrack

Every mutation of accounts, expenses and balances is logged for audit
purposes. This provides:
1. Traceability of every balance change
2. Debugging information when the two legs of a balance adjustment diverge
3. Ability to reconstruct what the client did to the remote store

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"
    MAIN_ACCOUNT_CREATED = "main_account_created"
    DUPLICATE_MAIN_ACCOUNT_REMOVED = "duplicate_main_account_removed"
    PROTECTED_ACCOUNT_REJECTED = "protected_account_rejected"

    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Balance adjustment protocol
    BALANCE_ADJUSTED = "balance_adjusted"
    BALANCE_ADJUSTMENT_PARTIAL = "balance_adjustment_partial"

    # State managers
    LOAD_FAILED = "load_failed"

    # Remote store
    REMOTE_STORE_ERROR = "remote_store_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity ('account' or 'expense')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Remote store ID of the entity this event relates to"
    )
    user_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., both legs of one balance adjustment)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(account_id, name, user_id)
        event = AuditEventBuilder.balance_adjusted(account_id, delta, correlation_id)
    """

    @staticmethod
    def account_created(
        account_id: str,
        name: str,
        user_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            user_id=user_id,
            description=f"Account created: {name}",
            details={"name": name},
        )

    @staticmethod
    def main_account_created(
        account_id: str,
        user_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MAIN_ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            user_id=user_id,
            description="Default Main Account created on first load",
        )

    @staticmethod
    def account_updated(
        account_id: str,
        fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_UPDATED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def account_deleted(account_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            entity_type="account",
            entity_id=account_id,
            description="Account deleted",
        )

    @staticmethod
    def duplicate_main_account_removed(
        account_id: str,
        kept_id: str,
        deleted: bool,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_MAIN_ACCOUNT_REMOVED,
            severity=AuditSeverity.INFO if deleted else AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            description=(
                "Duplicate Main Account removed"
                if deleted
                else "Failed to remove duplicate Main Account"
            ),
            details={"kept_id": kept_id, "deleted": deleted},
            error_message=error_message,
        )

    @staticmethod
    def protected_account_rejected(account_id: str, action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROTECTED_ACCOUNT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            description=f"Rejected {action} of the Main Account",
            details={"action": action},
        )

    @staticmethod
    def expense_added(
        expense_id: str,
        account_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense added: {amount}",
            details={"account_id": account_id, "amount": str(amount)},
        )

    @staticmethod
    def expense_updated(expense_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def expense_deleted(
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense deleted",
        )

    @staticmethod
    def balance_adjusted(
        account_id: str,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_ADJUSTED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Balance adjusted by {delta}",
            details={"delta": str(delta), "new_balance": str(new_balance)},
        )

    @staticmethod
    def balance_adjustment_partial(
        account_id: str,
        failed_leg: str,
        pending_delta: Decimal,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_ADJUSTMENT_PARTIAL,
            severity=AuditSeverity.ERROR,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Balance adjustment left inconsistent: {failed_leg} failed",
            details={"failed_leg": failed_leg, "pending_delta": str(pending_delta)},
            error_message=error_message,
        )

    @staticmethod
    def load_failed(
        collection: str,
        error_message: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=collection.lower(),
            user_id=user_id,
            description=f"Failed to load {collection} rows",
            error_message=error_message,
        )

    @staticmethod
    def remote_store_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_STORE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Remote store error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )

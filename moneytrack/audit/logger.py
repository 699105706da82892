"""
Audit Logger

DESIGN DECISION: Every mutation the ledger sends to the remote store is logged.
This provides:
1. Traceability of every balance change
2. Debugging capability when the two legs of an adjustment diverge
3. A local history the presentation layer can show

The audit logger:
- Is async so callers await it the same way they await store calls
- Never raises (logging failures must not break the main flow)
- Supports correlation IDs to tie both legs of one adjustment together
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from moneytrack.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through the stdlib root logger at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level, logging.INFO))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An in-memory, append-only history (for the current process)
    """

    def __init__(self, history_size: int = 500):
        self._logger = structlog.get_logger("moneytrack.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    @property
    def events(self) -> list[AuditEvent]:
        """Logged events, oldest first."""
        return list(self._history)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be logged.
        """
        self._history.append(event)
        try:
            log_dict = event.to_log_dict()
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            logging.getLogger(__name__).error("audit log failed: %s", e)
            return False
        return True

    async def log_account_created(self, account_id: str, name: str, user_id: str) -> None:
        await self.log(AuditEventBuilder.account_created(account_id, name, user_id))

    async def log_main_account_created(self, account_id: str, user_id: str) -> None:
        await self.log(AuditEventBuilder.main_account_created(account_id, user_id))

    async def log_account_updated(self, account_id: str, fields: list[str]) -> None:
        await self.log(AuditEventBuilder.account_updated(account_id, fields))

    async def log_account_deleted(self, account_id: str) -> None:
        await self.log(AuditEventBuilder.account_deleted(account_id))

    async def log_duplicate_removed(
        self,
        account_id: str,
        kept_id: str,
        deleted: bool,
        error_message: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.duplicate_main_account_removed(
            account_id=account_id,
            kept_id=kept_id,
            deleted=deleted,
            error_message=error_message,
        ))

    async def log_protected_rejected(self, account_id: str, action: str) -> None:
        await self.log(AuditEventBuilder.protected_account_rejected(account_id, action))

    async def log_expense_added(self, expense, correlation_id: Optional[UUID] = None) -> None:
        await self.log(AuditEventBuilder.expense_added(
            expense_id=expense.id,
            account_id=expense.account_id,
            amount=expense.amount,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(self, expense_id: str, fields: list[str]) -> None:
        await self.log(AuditEventBuilder.expense_updated(expense_id, fields))

    async def log_expense_deleted(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(expense_id, correlation_id))

    async def log_balance_adjusted(self, account_id, delta, new_balance, correlation_id=None) -> None:
        await self.log(AuditEventBuilder.balance_adjusted(
            account_id=account_id,
            delta=delta,
            new_balance=new_balance,
            correlation_id=correlation_id,
        ))

    async def log_partial_adjustment(
        self,
        account_id,
        failed_leg,
        pending_delta,
        error_message,
        correlation_id=None,
    ) -> None:
        await self.log(AuditEventBuilder.balance_adjustment_partial(
            account_id=account_id,
            failed_leg=failed_leg,
            pending_delta=pending_delta,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_load_failed(
        self,
        collection: str,
        error_message: str,
        user_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.load_failed(collection, error_message, user_id))

    async def log_remote_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.remote_store_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a compound operation (e.g., add expense +
    debit account) and pass it to every event it produces.
    """
    return uuid4()

"""
Balance Adjustment Protocol

Keeps Account.balance in line with the expenses charged to it.

Creating or deleting an expense and changing the balance are two
independent calls against the remote store. There is no shared
transaction, so either call can succeed while the other fails.

DESIGN DECISION: The stored balance is the source of truth. It is never
recomputed from the expense rows. Instead, every intended balance change
is written to an AdjustmentJournal BEFORE any call is issued:
- both legs succeed -> the entry is marked applied
- one leg fails     -> the entry is marked pending with the delta still
                       owed, and PartialAdjustmentError is raised
- nothing is compensated automatically; settle_pending() replays pending
  entries when the caller decides to

Editing an expense's amount or account reverses the old charge and
applies the new one.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

import structlog
from pydantic import BaseModel, Field

from moneytrack.audit import AuditLogger, create_correlation_id
from moneytrack.exceptions import LedgerError, PartialAdjustmentError, RemoteError
from moneytrack.models.ledger import Expense, ExpenseDraft, ExpenseUpdate
from moneytrack.state.accounts import AccountStateManager
from moneytrack.state.expenses import ExpenseStateManager
from moneytrack.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class AdjustmentStatus(str, Enum):
    INTENDED = "intended"  # Recorded, calls in flight
    APPLIED = "applied"
    PENDING = "pending"    # A leg failed, delta still owed
    SETTLED = "settled"    # Pending delta replayed successfully


class PendingAdjustment(BaseModel):
    """A balance change the ledger intends to make, or still owes."""

    entry_id: UUID = Field(default_factory=uuid4)
    account_id: str
    delta: Decimal
    reason: str
    correlation_id: UUID
    status: AdjustmentStatus = AdjustmentStatus.INTENDED
    error_message: Optional[str] = None
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AdjustmentJournal:
    """In-process log of intended balance deltas."""

    def __init__(self):
        self._entries: dict[UUID, PendingAdjustment] = {}

    def record(
        self,
        account_id: str,
        delta: Decimal,
        reason: str,
        correlation_id: UUID,
    ) -> PendingAdjustment:
        entry = PendingAdjustment(
            account_id=account_id,
            delta=delta,
            reason=reason,
            correlation_id=correlation_id,
        )
        self._entries[entry.entry_id] = entry
        return entry

    def _set(self, entry_id: UUID, **changes) -> PendingAdjustment:
        entry = self._entries[entry_id].model_copy(update=changes)
        self._entries[entry_id] = entry
        return entry

    def mark_applied(self, entry_id: UUID) -> PendingAdjustment:
        return self._set(entry_id, status=AdjustmentStatus.APPLIED)

    def mark_pending(
        self,
        entry_id: UUID,
        error_message: str,
        delta: Optional[Decimal] = None,
    ) -> PendingAdjustment:
        """Mark an entry as owed. `delta` replaces the recorded one when the owed change differs."""
        changes = {"status": AdjustmentStatus.PENDING, "error_message": error_message}
        if delta is not None:
            changes["delta"] = delta
        return self._set(entry_id, **changes)

    def mark_settled(self, entry_id: UUID) -> PendingAdjustment:
        return self._set(entry_id, status=AdjustmentStatus.SETTLED, error_message=None)

    def discard(self, entry_id: UUID) -> None:
        """Forget an intent whose calls all failed. Nothing is owed."""
        self._entries.pop(entry_id, None)

    def pending(self) -> list[PendingAdjustment]:
        return [e for e in self._entries.values() if e.status == AdjustmentStatus.PENDING]

    @property
    def entries(self) -> list[PendingAdjustment]:
        return list(self._entries.values())


def balance_deltas(before: Expense, after: Expense) -> dict[str, Decimal]:
    """
    Balance changes implied by editing `before` into `after`.

    Same account: one net delta. Different accounts: the old account is
    credited back and the new one debited.
    """
    if before.account_id == after.account_id:
        delta = before.amount - after.amount
        return {after.account_id: delta} if delta else {}
    return {
        before.account_id: before.amount,
        after.account_id: -after.amount,
    }


class BalanceAdjuster:
    """
    Applies expense changes together with their balance changes.

    Usage:
        adjuster = BalanceAdjuster(account_manager, expense_manager)
        expense = await adjuster.add_expense(draft)
    """

    def __init__(
        self,
        accounts: AccountStateManager,
        expenses: ExpenseStateManager,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
    ):
        self._accounts = accounts
        self._expenses = expenses
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or LedgerValidator()
        self.journal = AdjustmentJournal()

    async def _mark_partial(
        self,
        entry: PendingAdjustment,
        failed_leg: str,
        owed: Decimal,
        cause: Exception,
    ) -> PartialAdjustmentError:
        self.journal.mark_pending(entry.entry_id, str(cause), delta=owed)
        logger.error(
            "balance_adjustment_partial",
            account_id=entry.account_id,
            failed_leg=failed_leg,
            pending_delta=str(owed),
            correlation_id=str(entry.correlation_id),
            error=str(cause),
        )
        await self._audit.log_partial_adjustment(
            account_id=entry.account_id,
            failed_leg=failed_leg,
            pending_delta=owed,
            error_message=str(cause),
            correlation_id=entry.correlation_id,
        )
        return PartialAdjustmentError(entry.account_id, failed_leg, owed, cause)

    async def add_expense(self, draft: Union[ExpenseDraft, dict]) -> Expense:
        """
        Create an expense and debit its account.

        Both calls are issued together and both are awaited. Neither is
        rolled back if the other fails.

        Raises:
            ValidationError: Before any call, if the draft is incomplete
            PartialAdjustmentError: If exactly one of the two calls failed
            RemoteError: If both failed (the expense error is raised)
        """
        if isinstance(draft, dict):
            draft = ExpenseDraft.model_validate(draft)
        self._validator.require_valid(draft)

        correlation_id = create_correlation_id()
        account = self._accounts.get_account(draft.account_id)
        if account is None:
            logger.warning("expense_account_unknown", account_id=draft.account_id)
            return await self._expenses.add_expense(draft, correlation_id)

        delta = -draft.amount
        entry = self.journal.record(account.id, delta, "add expense", correlation_id)

        expense_result, balance_result = await asyncio.gather(
            self._expenses.add_expense(draft, correlation_id),
            self._accounts.adjust_balance(account.id, delta, correlation_id),
            return_exceptions=True,
        )
        expense_failed = isinstance(expense_result, Exception)
        balance_failed = isinstance(balance_result, Exception)

        if expense_failed and balance_failed:
            self.journal.discard(entry.entry_id)
            raise expense_result
        if balance_failed:
            # Expense stored, debit still owed
            raise await self._mark_partial(
                entry, "balance update", delta, balance_result
            ) from balance_result
        if expense_failed:
            # Debit applied for an expense that does not exist: owe it back
            raise await self._mark_partial(
                entry, "expense create", -delta, expense_result
            ) from expense_result

        self.journal.mark_applied(entry.entry_id)
        return expense_result

    async def delete_expense(self, expense_id: str) -> None:
        """
        Delete an expense, then credit its account.

        The credit is only issued once the delete has succeeded. A failed
        delete changes no balance and puts the expense back in the lists.
        """
        expense = await self._expenses.find_expense(expense_id)
        correlation_id = create_correlation_id()
        entry = self.journal.record(
            expense.account_id, expense.amount, "delete expense", correlation_id
        )

        try:
            await self._expenses.delete_expense(expense_id, correlation_id)
        except (RemoteError, LedgerError):
            self.journal.discard(entry.entry_id)
            self._expenses.restore_expense(expense)
            raise

        try:
            await self._accounts.adjust_balance(expense.account_id, expense.amount, correlation_id)
        except RemoteError as e:
            raise await self._mark_partial(entry, "balance update", expense.amount, e) from e

        self.journal.mark_applied(entry.entry_id)

    async def update_expense(
        self,
        expense_id: str,
        partial: Union[ExpenseUpdate, dict],
    ) -> Expense:
        """
        Update an expense and move its charge when amount or account change.

        Raises:
            PartialAdjustmentError: If the expense was updated but a balance
                change failed (the first failure is reported)
        """
        if isinstance(partial, dict):
            partial = ExpenseUpdate.model_validate(partial)

        if not partial.touches_balance:
            return await self._expenses.update_expense(expense_id, partial)

        before = await self._expenses.find_expense(expense_id)
        after = await self._expenses.update_expense(expense_id, partial)

        correlation_id = create_correlation_id()
        entries = [
            self.journal.record(account_id, delta, "update expense", correlation_id)
            for account_id, delta in balance_deltas(before, after).items()
        ]
        results = await asyncio.gather(
            *(
                self._accounts.adjust_balance(e.account_id, e.delta, correlation_id)
                for e in entries
            ),
            return_exceptions=True,
        )

        first_error: Optional[PartialAdjustmentError] = None
        for entry, result in zip(entries, results):
            if isinstance(result, Exception):
                error = await self._mark_partial(entry, "balance update", entry.delta, result)
                first_error = first_error or error
            else:
                self.journal.mark_applied(entry.entry_id)
        if first_error is not None:
            raise first_error from first_error.cause
        return after

    async def settle_pending(self) -> list[PendingAdjustment]:
        """
        Replay every pending delta.

        Entries that fail again stay pending and are logged.

        Returns:
            The entries settled by this call
        """
        settled = []
        for entry in self.journal.pending():
            try:
                await self._accounts.adjust_balance(
                    entry.account_id, entry.delta, entry.correlation_id
                )
            except RemoteError as e:
                logger.warning(
                    "pending_adjustment_still_failing",
                    account_id=entry.account_id,
                    entry_id=str(entry.entry_id),
                    error=str(e),
                )
                self.journal.mark_pending(entry.entry_id, str(e))
                continue
            settled.append(self.journal.mark_settled(entry.entry_id))
        logger.info("pending_adjustments_settled", count=len(settled))
        return settled

"""
Expense Repository

CRUD facade over the Expense collection.

Dates travel as ISO-8601 strings on the wire and as datetime.date
everywhere else. The conversion happens here, in both directions, so
callers never see the wire form.
"""

import datetime as dt
from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError as ModelValidationError

from moneytrack.models.ledger import Expense, ExpenseDraft, ExpenseUpdate
from moneytrack.repositories.base import StoreRepository
from moneytrack.services.storage.interface import (
    EXPENSE_COLLECTION,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


def serialize_date(value: Union[dt.date, dt.datetime]) -> str:
    """Calendar date to its ISO-8601 wire form."""
    if isinstance(value, dt.datetime):
        value = value.date()
    return value.isoformat()


def parse_date(value: Any) -> dt.date:
    """
    Wire value to a calendar date.

    Accepts bare dates ("2024-02-01") and full timestamps, including the
    "Z" suffix hosted stores emit ("2024-02-01T10:00:00.000Z").
    """
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str) or not value:
        raise ValueError(f"Invalid date value: {value!r}")
    text = value.strip()
    if "T" in text or " " in text:
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return dt.datetime.fromisoformat(text).date()
    return dt.date.fromisoformat(text)


class ExpenseRepository(StoreRepository):
    """Reads and writes Expense rows."""

    collection = EXPENSE_COLLECTION

    def _row_to_expense(self, row: dict[str, Any]) -> Optional[Expense]:
        try:
            return Expense.model_validate({**row, "date": parse_date(row.get("date"))})
        except (ModelValidationError, ValueError) as e:
            logger.warning("malformed_expense_row", row_id=row.get("id"), error=str(e))
            return None

    def _to_wire(self, fields: dict[str, Any]) -> dict[str, Any]:
        wire = dict(fields)
        if wire.get("date") is not None:
            wire["date"] = serialize_date(wire["date"])
        if wire.get("amount") is not None:
            wire["amount"] = str(wire["amount"])
        return wire

    async def _call(self, operation: str, awaitable):
        # Store failures surface as "Failed to <operation>: <cause>"
        try:
            return await self._run(operation, awaitable)
        except NotFoundError:
            raise
        except StorageError as e:
            if str(e).startswith("Failed to "):
                raise
            raise StorageError(f"Failed to {operation}: {e}") from e

    async def list(self, user_id: Optional[str] = None) -> list[Expense]:
        """All expenses (of `user_id` if given), most recent first."""
        rows = await self._call("get expenses", self._store.select(
            self.collection,
            filters={"user_id": user_id} if user_id else None,
            order_by="date",
            descending=True,
        ))
        expenses = [self._row_to_expense(row) for row in rows]
        return [expense for expense in expenses if expense is not None]

    async def get(self, expense_id: str) -> Expense:
        rows = await self._call("get expense", self._store.select(
            self.collection,
            filters={"id": expense_id},
        ))
        expense = self._row_to_expense(rows[0]) if rows else None
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return expense

    async def create(self, draft: Union[ExpenseDraft, dict]) -> Expense:
        """
        Create an expense.

        Raises:
            ValidationError: If a required field is missing or the amount is not positive
            StorageError: If the store call fails
        """
        if isinstance(draft, dict):
            draft = ExpenseDraft.model_validate(draft)
        self._validator.require_valid(draft)

        row = await self._call("add expense", self._store.insert(
            self.collection,
            self._to_wire(draft.model_dump()),
        ))
        expense = self._row_to_expense(row)
        if expense is None:
            raise StorageError("Failed to add expense: store returned an unreadable row")
        return expense

    async def update(
        self,
        expense_id: str,
        partial: Union[ExpenseUpdate, dict],
    ) -> Expense:
        if isinstance(partial, dict):
            partial = ExpenseUpdate.model_validate(partial)
        self._validator.require_valid(partial)

        row = await self._call("update expense", self._store.update(
            self.collection,
            expense_id,
            self._to_wire(partial.to_patch()),
        ))
        expense = self._row_to_expense(row)
        if expense is None:
            raise StorageError("Failed to update expense: store returned an unreadable row")
        return expense

    async def delete(self, expense_id: str) -> None:
        await self._call("delete expense", self._store.delete(self.collection, expense_id))

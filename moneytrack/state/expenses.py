"""
Expense State Manager

Keeps two parallel sequences for the current user:
- `all`: every expense, authoritative
- `filtered`: the view shown to the user, derived from `all` by the active
  date range / category filter and sort order

DESIGN DECISION: Adding an expense patches both sequences locally instead
of reloading. A reload right after submitting the form makes the list
visibly flicker. Updates that move an expense (date) or change its filter
membership (category, amount) fall back to a full reload.
"""

import datetime as dt
from typing import Iterable, Optional, Sequence, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict

from moneytrack.audit import AuditLogger
from moneytrack.exceptions import LedgerError, RemoteError
from moneytrack.models.ledger import Expense, ExpenseDraft, ExpenseUpdate, SortOrder
from moneytrack.repositories.expenses import ExpenseRepository
from moneytrack.services.session import SessionContext
from moneytrack.state.base import LoadStatus, StateManager


logger = structlog.get_logger(__name__)


# =============================================================================
# PURE HELPERS
# =============================================================================

def sort_expenses(
    expenses: Iterable[Expense],
    order: Union[SortOrder, str] = SortOrder.DESC,
) -> list[Expense]:
    """
    Sort by date. Stable: expenses on the same day keep their relative order.

    "desc" puts the most recent first, "asc" the oldest first.
    """
    return sorted(expenses, key=lambda e: e.date, reverse=SortOrder(order) == SortOrder.DESC)


def _as_date(value: Union[dt.date, dt.datetime, None]) -> Optional[dt.date]:
    if isinstance(value, dt.datetime):
        return value.date()
    return value


def filter_expenses(
    expenses: Iterable[Expense],
    start_date: Union[dt.date, dt.datetime, None] = None,
    end_date: Union[dt.date, dt.datetime, None] = None,
    categories: Optional[Sequence[str]] = None,
    sort_order: Union[SortOrder, str] = SortOrder.DESC,
) -> list[Expense]:
    """
    Select and sort expenses.

    Both date bounds are inclusive and compared at day level. A missing
    bound leaves that side open. An empty category list matches every
    category.
    """
    start = _as_date(start_date)
    end = _as_date(end_date)
    wanted = set(categories or ())

    selected = [
        expense for expense in expenses
        if (start is None or expense.date >= start)
        and (end is None or expense.date <= end)
        and (not wanted or expense.category in wanted)
    ]
    return sort_expenses(selected, sort_order)


# =============================================================================
# STATE
# =============================================================================

class ExpenseFilter(BaseModel):
    """The filter currently applied to the `filtered` view."""
    model_config = ConfigDict(frozen=True)

    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    categories: tuple[str, ...] = ()


class ExpensesState(BaseModel):
    """Published snapshot of the expense lists."""
    model_config = ConfigDict(frozen=True)

    status: LoadStatus = LoadStatus.IDLE
    all: tuple[Expense, ...] = ()
    filtered: tuple[Expense, ...] = ()
    sort_order: SortOrder = SortOrder.DESC
    active_filter: Optional[ExpenseFilter] = None
    error: Optional[str] = None


class ExpenseStateManager(StateManager[ExpensesState]):
    """Mirrors the Expense collection for the signed-in user."""

    def __init__(
        self,
        repository: ExpenseRepository,
        session: SessionContext,
        audit_logger: Optional[AuditLogger] = None,
        coalesce_window: Optional[float] = None,
    ):
        super().__init__(repository, session, audit_logger, coalesce_window)

    def _initial_state(self) -> ExpensesState:
        return ExpensesState()

    @property
    def expenses(self) -> list[Expense]:
        return list(self._state.all)

    @property
    def filtered(self) -> list[Expense]:
        return list(self._state.filtered)

    @property
    def sort_order(self) -> SortOrder:
        return self._state.sort_order

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        for expense in self._state.all:
            if expense.id == expense_id:
                return expense
        return None

    async def find_expense(self, expense_id: str) -> Expense:
        """
        Look up an expense, locally first, then in the store.

        Raises:
            NotFoundError: If the store has no such expense either
        """
        expense = self.get_expense(expense_id)
        if expense is not None:
            return expense
        return await self._repo.get(expense_id)

    async def load(self) -> None:
        """
        Fetch the user's expenses and publish them sorted.

        Resets `filtered` to the full list. Never raises; a failed load
        publishes ERROR with both sequences cleared.
        """
        user_id = self._session.user_id
        if user_id is None:
            self._publish(lambda _: ExpensesState())
            return

        self._publish(lambda s: s.model_copy(update={"status": LoadStatus.LOADING}))

        try:
            expenses = await self._repo.list(user_id)
        except (RemoteError, LedgerError) as e:
            logger.error("expense_load_failed", user_id=user_id, error=str(e))
            await self._audit.log_load_failed(self._repo.collection, str(e), user_id)
            if self._is_current(user_id):
                self._publish(lambda s: ExpensesState(
                    status=LoadStatus.ERROR,
                    sort_order=s.sort_order,
                    error=str(e),
                ))
            return

        if not self._is_current(user_id):
            logger.info("stale_expense_load_discarded", user_id=user_id)
            return

        def publish_loaded(state: ExpensesState) -> ExpensesState:
            ordered = tuple(sort_expenses(expenses, state.sort_order))
            return ExpensesState(
                status=LoadStatus.READY,
                all=ordered,
                filtered=ordered,
                sort_order=state.sort_order,
            )

        self._publish(publish_loaded)
        logger.debug("expenses_loaded", user_id=user_id, count=len(expenses))

    def _record_failure(self, operation: str, error: Exception) -> None:
        logger.error("expense_mutation_failed", operation=operation, error=str(error))
        if isinstance(error, RemoteError):
            self._publish(lambda s: s.model_copy(update={
                "status": LoadStatus.ERROR,
                "error": str(error),
            }))
        else:
            self._publish(lambda s: s.model_copy(update={"error": str(error)}))

    async def add_expense(
        self,
        draft: Union[ExpenseDraft, dict],
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """Create an expense and insert it at its sorted position in both sequences."""
        if isinstance(draft, dict):
            draft = ExpenseDraft.model_validate(draft)

        try:
            expense = await self._repo.create(draft)
        except (RemoteError, LedgerError) as e:
            self._record_failure("add expense", e)
            raise

        def insert(state: ExpensesState) -> ExpensesState:
            return state.model_copy(update={
                "status": LoadStatus.READY,
                "all": tuple(sort_expenses(state.all + (expense,), state.sort_order)),
                "filtered": tuple(sort_expenses(state.filtered + (expense,), state.sort_order)),
                "error": None,
            })

        self._publish(insert)
        await self._audit.log_expense_added(expense, correlation_id)
        return expense

    async def update_expense(
        self,
        expense_id: str,
        partial: Union[ExpenseUpdate, dict],
    ) -> Expense:
        """
        Update an expense.

        Reloads when amount, date or category change; patches the record
        in place otherwise.
        """
        if isinstance(partial, dict):
            partial = ExpenseUpdate.model_validate(partial)

        try:
            updated = await self._repo.update(expense_id, partial)
        except (RemoteError, LedgerError) as e:
            self._record_failure("update expense", e)
            raise

        await self._audit.log_expense_updated(expense_id, sorted(partial.model_fields_set))

        if partial.touches_ordering:
            await self.load()
            return updated

        def patch(state: ExpensesState) -> ExpensesState:
            def replace(expenses: tuple[Expense, ...]) -> tuple[Expense, ...]:
                return tuple(updated if e.id == expense_id else e for e in expenses)
            return state.model_copy(update={
                "all": replace(state.all),
                "filtered": replace(state.filtered),
                "error": None,
            })

        self._publish(patch)
        return updated

    async def delete_expense(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Delete an expense and drop it from both sequences without reloading."""
        try:
            await self._repo.delete(expense_id)
        except (RemoteError, LedgerError) as e:
            self._record_failure("delete expense", e)
            raise

        def remove(state: ExpensesState) -> ExpensesState:
            return state.model_copy(update={
                "all": tuple(e for e in state.all if e.id != expense_id),
                "filtered": tuple(e for e in state.filtered if e.id != expense_id),
                "error": None,
            })

        self._publish(remove)
        await self._audit.log_expense_deleted(expense_id, correlation_id)

    def restore_expense(self, expense: Expense) -> None:
        """Put an expense back into both sequences, e.g. after a failed delete."""

        def restore(state: ExpensesState) -> ExpensesState:
            if any(e.id == expense.id for e in state.all):
                return state
            return state.model_copy(update={
                "all": tuple(sort_expenses(state.all + (expense,), state.sort_order)),
                "filtered": tuple(sort_expenses(state.filtered + (expense,), state.sort_order)),
            })

        self._publish(restore)

    def filter_expenses(
        self,
        start_date: Union[dt.date, dt.datetime, None] = None,
        end_date: Union[dt.date, dt.datetime, None] = None,
        categories: Optional[Sequence[str]] = None,
        sort_order: Union[SortOrder, str, None] = None,
    ) -> list[Expense]:
        """
        Recompute `filtered` from `all`.

        `all` is never modified. The sort order given here is remembered
        for later loads and inserts.
        """
        order = SortOrder(sort_order) if sort_order is not None else self._state.sort_order
        active = ExpenseFilter(
            start_date=_as_date(start_date),
            end_date=_as_date(end_date),
            categories=tuple(categories or ()),
        )

        def apply(state: ExpensesState) -> ExpensesState:
            selected = filter_expenses(
                state.all,
                start_date=active.start_date,
                end_date=active.end_date,
                categories=active.categories,
                sort_order=order,
            )
            return state.model_copy(update={
                "filtered": tuple(selected),
                "sort_order": order,
                "active_filter": active,
            })

        return list(self._publish(apply).filtered)

    def change_sort_order(self, order: Union[SortOrder, str]) -> list[Expense]:
        """Re-sort the current `filtered` view only. Nothing is refetched or re-filtered."""
        order = SortOrder(order)

        def resort(state: ExpensesState) -> ExpensesState:
            return state.model_copy(update={
                "filtered": tuple(sort_expenses(state.filtered, order)),
                "sort_order": order,
            })

        return list(self._publish(resort).filtered)

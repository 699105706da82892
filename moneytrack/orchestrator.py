"""
Main Orchestrator for moneytrack

Ties the components together for an embedding application:
1. Remote store (Google Sheets or in-memory)
2. Repositories over the Account and Expense collections
3. State managers bound to the session
4. The balance adjustment protocol on top of both managers

DESIGN DECISION: Expense writes that move money go through the
BalanceAdjuster, never straight to the expense manager. The app exposes
the adjuster's operations so callers cannot forget the balance leg.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional, Union

import structlog

from moneytrack.audit import AuditLogger, configure_logging
from moneytrack.balance import BalanceAdjuster, total_balance_usd
from moneytrack.config import get_settings, validate_all_settings
from moneytrack.models.ledger import Expense, ExpenseDraft, ExpenseUpdate, User
from moneytrack.reports import ExpenseSummary, SummaryPeriod, summarize_period
from moneytrack.repositories import AccountRepository, ExpenseRepository
from moneytrack.services.session import SessionContext
from moneytrack.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsStore,
    InMemoryStore,
    RemoteStoreInterface,
)
from moneytrack.state import AccountStateManager, ExpenseStateManager
from moneytrack.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class LedgerApp:
    """
    Bundle of every ledger component sharing one store and one session.

    Usage:
        app = create_app_components()
        app.start()
        app.session.sign_in(user)
        await app.flush()
        await app.add_expense({...})
    """

    def __init__(
        self,
        store: RemoteStoreInterface,
        session: Optional[SessionContext] = None,
        audit_logger: Optional[AuditLogger] = None,
        coalesce_window: Optional[float] = None,
    ):
        self.store = store
        self.session = session or SessionContext()
        self.audit_logger = audit_logger or AuditLogger()

        validator = LedgerValidator()
        self.account_repository = AccountRepository(store, validator)
        self.expense_repository = ExpenseRepository(store, validator)

        self.accounts = AccountStateManager(
            self.account_repository,
            self.session,
            audit_logger=self.audit_logger,
            coalesce_window=coalesce_window,
        )
        self.expenses = ExpenseStateManager(
            self.expense_repository,
            self.session,
            audit_logger=self.audit_logger,
            coalesce_window=coalesce_window,
        )
        self.balance = BalanceAdjuster(
            self.accounts,
            self.expenses,
            audit_logger=self.audit_logger,
            validator=validator,
        )

    def start(self) -> None:
        self.accounts.start()
        self.expenses.start()
        logger.info("ledger_started", store=type(self.store).__name__)

    def close(self) -> None:
        self.accounts.close()
        self.expenses.close()
        logger.info("ledger_closed")

    async def flush(self) -> None:
        """Wait for both managers' scheduled reloads."""
        await self.accounts.flush()
        await self.expenses.flush()

    async def sign_in(self, user: User) -> None:
        self.session.sign_in(user)
        await self.flush()

    async def sign_out(self) -> None:
        self.session.sign_out()
        await self.flush()

    # -------------------------------------------------------------------------
    # Money-moving operations
    # -------------------------------------------------------------------------

    async def add_expense(self, draft: Union[ExpenseDraft, dict]) -> Expense:
        return await self.balance.add_expense(draft)

    async def update_expense(
        self,
        expense_id: str,
        partial: Union[ExpenseUpdate, dict],
    ) -> Expense:
        return await self.balance.update_expense(expense_id, partial)

    async def delete_expense(self, expense_id: str) -> None:
        await self.balance.delete_expense(expense_id)

    # -------------------------------------------------------------------------
    # Display aggregates
    # -------------------------------------------------------------------------

    def total_balance_usd(self) -> Decimal:
        return total_balance_usd(self.accounts.accounts)

    def summary(
        self,
        period: SummaryPeriod = SummaryPeriod.MONTH,
        now: Optional[dt.date] = None,
    ) -> Optional[ExpenseSummary]:
        return summarize_period(self.expenses.expenses, period, now)


def create_app_components(
    use_sheets: bool = False,
    session: Optional[SessionContext] = None,
) -> LedgerApp:
    """
    Factory function to create all application components.

    Args:
        use_sheets: Whether to back the ledger with Google Sheets.
                    Falls back to the in-memory store when Sheets is not
                    configured.
        session: Session to bind the managers to. A fresh one by default.

    Returns:
        A LedgerApp that has not been started yet
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    store: RemoteStoreInterface = InMemoryStore()
    if use_sheets:
        status = validate_all_settings()
        if status["google_sheets"]:
            store = GoogleSheetsStore(GoogleSheetsClient())
        else:
            # Sheets not configured - continue in memory
            logger.warning("sheets_not_configured", error=status.get("google_sheets_error"))

    return LedgerApp(store, session=session)

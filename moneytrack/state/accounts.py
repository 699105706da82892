"""
Account State Manager

Keeps the authoritative in-memory list of the current user's accounts.

Rules enforced here:
1. At most one "Main Account" per user. Duplicates found on load are
   deleted (best effort), keeping the first one the repository returns.
2. A user with no accounts gets a default Main Account on load.
3. The Main Account can never be deleted.
4. Every update round-trips through a full reload. Balances change often
   and the mirrored list must never drift from the store.
"""

import asyncio
from decimal import Decimal
from typing import Awaitable, Callable, Optional, TypeVar, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict

from moneytrack.audit import AuditLogger
from moneytrack.config import get_settings
from moneytrack.exceptions import (
    DuplicateMainAccountError,
    LedgerError,
    ProtectedAccountError,
    RemoteError,
)
from moneytrack.models.ledger import (
    MAIN_ACCOUNT_NAME,
    Account,
    AccountDraft,
    AccountUpdate,
)
from moneytrack.repositories.accounts import AccountRepository
from moneytrack.services.session import SessionContext
from moneytrack.state.base import LoadStatus, StateManager


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class AccountsState(BaseModel):
    """Published snapshot of the account list."""
    model_config = ConfigDict(frozen=True)

    status: LoadStatus = LoadStatus.IDLE
    accounts: tuple[Account, ...] = ()
    error: Optional[str] = None


def _is_duplicate_main(error: Exception) -> bool:
    return (
        isinstance(error, DuplicateMainAccountError)
        or "Main Account already exists" in str(error)
    )


class AccountStateManager(StateManager[AccountsState]):
    """
    Mirrors the Account collection for the signed-in user.

    Usage:
        manager = AccountStateManager(AccountRepository(store), session)
        manager.start()
        await manager.flush()
        manager.main_account
    """

    def __init__(
        self,
        repository: AccountRepository,
        session: SessionContext,
        audit_logger: Optional[AuditLogger] = None,
        coalesce_window: Optional[float] = None,
    ):
        super().__init__(repository, session, audit_logger, coalesce_window)
        app_settings = get_settings().app
        self._default_currency = app_settings.default_currency
        self._default_color = app_settings.default_account_color
        self._balance_locks: dict[str, asyncio.Lock] = {}

    def _initial_state(self) -> AccountsState:
        return AccountsState()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def accounts(self) -> list[Account]:
        return list(self._state.accounts)

    def get_account(self, account_id: str) -> Optional[Account]:
        for account in self._state.accounts:
            if account.id == account_id:
                return account
        return None

    @property
    def main_account(self) -> Optional[Account]:
        for account in self._state.accounts:
            if account.is_main:
                return account
        return None

    @property
    def default_account(self) -> Optional[Account]:
        """Account preselected for new expenses: the Main Account, else the first one."""
        main = self.main_account
        if main is not None:
            return main
        return self._state.accounts[0] if self._state.accounts else None

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    async def load(self) -> None:
        """
        Fetch, heal and publish the user's accounts.

        Never raises. A failed load publishes ERROR with an empty list.
        """
        user_id = self._session.user_id
        if user_id is None:
            self._publish(lambda _: AccountsState())
            return

        self._publish(lambda s: s.model_copy(update={"status": LoadStatus.LOADING}))

        try:
            accounts = await self._fetch_and_heal(user_id)
        except (RemoteError, LedgerError) as e:
            if not _is_duplicate_main(e):
                await self._fail_load(user_id, e)
                return
            # Another client created the Main Account between our fetch and insert
            logger.warning("main_account_race_retry", user_id=user_id)
            try:
                accounts = await self._repo.list(user_id)
            except (RemoteError, LedgerError) as retry_error:
                await self._fail_load(user_id, retry_error)
                return

        if not self._is_current(user_id):
            logger.info("stale_account_load_discarded", user_id=user_id)
            return

        self._publish(lambda _: AccountsState(
            status=LoadStatus.READY,
            accounts=tuple(accounts),
        ))
        logger.debug("accounts_loaded", user_id=user_id, count=len(accounts))

    async def _fetch_and_heal(self, user_id: str) -> list[Account]:
        accounts = await self._repo.list(user_id)
        accounts = await self._remove_duplicate_main_accounts(accounts)

        if not accounts:
            main = await self._repo.create(AccountDraft(
                name=MAIN_ACCOUNT_NAME,
                currency=self._default_currency,
                balance=Decimal("0"),
                color=self._default_color,
                user_id=user_id,
            ))
            await self._audit.log_main_account_created(main.id, user_id)
            accounts = await self._repo.list(user_id)

        return accounts

    async def _remove_duplicate_main_accounts(self, accounts: list[Account]) -> list[Account]:
        mains = [account for account in accounts if account.is_main]
        if len(mains) <= 1:
            return accounts

        kept, duplicates = mains[0], mains[1:]
        logger.warning(
            "duplicate_main_accounts_found",
            kept_id=kept.id,
            duplicate_ids=[d.id for d in duplicates],
        )

        for duplicate in duplicates:
            try:
                await self._repo.delete(duplicate.id)
            except RemoteError as e:
                # Non-fatal: the duplicate is hidden locally and retried next load
                logger.warning(
                    "duplicate_main_account_delete_failed",
                    account_id=duplicate.id,
                    error=str(e),
                )
                await self._audit.log_duplicate_removed(
                    duplicate.id, kept.id, deleted=False, error_message=str(e)
                )
            else:
                await self._audit.log_duplicate_removed(duplicate.id, kept.id, deleted=True)

        duplicate_ids = {d.id for d in duplicates}
        return [account for account in accounts if account.id not in duplicate_ids]

    async def _fail_load(self, user_id: str, error: Exception) -> None:
        logger.error("account_load_failed", user_id=user_id, error=str(error))
        await self._audit.log_load_failed(self._repo.collection, str(error), user_id)
        if not self._is_current(user_id):
            return
        self._publish(lambda _: AccountsState(
            status=LoadStatus.ERROR,
            error=str(error),
        ))

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def _mutate(self, operation: str, action: Callable[[], Awaitable[T]]) -> T:
        """
        Run a mutation with the READY -> LOADING -> READY|ERROR transition.

        The account list is kept on failure; only the error is recorded.
        """
        previous = self._state.status
        self._publish(lambda s: s.model_copy(update={"status": LoadStatus.LOADING}))
        try:
            return await action()
        except LedgerError as e:
            self._publish(lambda s: s.model_copy(update={"status": previous, "error": str(e)}))
            raise
        except RemoteError as e:
            logger.error("account_mutation_failed", operation=operation, error=str(e))
            await self._audit.log_remote_error(operation, str(e))
            self._publish(lambda s: s.model_copy(update={
                "status": LoadStatus.ERROR,
                "error": str(e),
            }))
            raise

    async def _fetch(self) -> list[Account]:
        user_id = self._session.user_id
        if user_id is None:
            return []
        return await self._repo.list(user_id)

    def _publish_accounts(self, accounts: list[Account]) -> None:
        self._publish(lambda _: AccountsState(
            status=LoadStatus.READY,
            accounts=tuple(accounts),
        ))

    async def _reconcile_main_account(self) -> Optional[str]:
        """Reload and report the id of whichever Main Account is now stored."""
        await self.load()
        main = self.main_account
        return main.id if main else None

    async def add_account(self, draft: Union[AccountDraft, dict]) -> str:
        """
        Create an account and append it to the list.

        Returns:
            The new account's id

        Raises:
            DuplicateMainAccountError: If a Main Account already exists.
                Raised without any repository write; `existing_id` names
                the Main Account found after reconciling.
        """
        if isinstance(draft, dict):
            draft = AccountDraft.model_validate(draft)

        if draft.is_main and self.main_account is not None:
            logger.warning("duplicate_main_account_rejected", user_id=draft.user_id)
            existing_id = await self._reconcile_main_account()
            raise DuplicateMainAccountError(existing_id=existing_id)

        try:
            account = await self._mutate("create account", lambda: self._repo.create(draft))
        except DuplicateMainAccountError:
            existing_id = await self._reconcile_main_account()
            raise DuplicateMainAccountError(existing_id=existing_id)

        def append(state: AccountsState) -> AccountsState:
            # Idempotent Main Account creation may hand back a known record
            known = any(a.id == account.id for a in state.accounts)
            accounts = state.accounts if known else state.accounts + (account,)
            return AccountsState(status=LoadStatus.READY, accounts=accounts)

        self._publish(append)
        await self._audit.log_account_created(account.id, account.name, account.user_id)
        return account.id

    async def update_account(
        self,
        account_id: str,
        partial: Union[AccountUpdate, dict],
    ) -> Account:
        """
        Update an account, then reload the full list.

        Raises:
            DuplicateMainAccountError: If renaming to "Main Account" while
                another account already has that name
        """
        if isinstance(partial, dict):
            partial = AccountUpdate.model_validate(partial)

        if partial.name == MAIN_ACCOUNT_NAME:
            other = next(
                (a for a in self._state.accounts if a.is_main and a.id != account_id),
                None,
            )
            if other is not None:
                raise DuplicateMainAccountError(existing_id=other.id)

        async def update_and_reload() -> tuple[Account, list[Account]]:
            updated = await self._repo.update(account_id, partial)
            return updated, await self._fetch()

        updated, accounts = await self._mutate("update account", update_and_reload)
        self._publish_accounts(accounts)
        await self._audit.log_account_updated(account_id, sorted(partial.model_fields_set))
        return updated

    async def delete_account(self, account_id: str) -> None:
        """
        Delete an account and its expenses, then reload.

        Raises:
            ProtectedAccountError: For the Main Account. The list is unchanged.
            NotFoundError: If the account does not exist
        """
        account = self.get_account(account_id)
        if account is None:
            account = await self._repo.get(account_id)

        if account.is_main:
            await self._audit.log_protected_rejected(account_id, "delete")
            raise ProtectedAccountError(account_id)

        async def delete_and_reload() -> list[Account]:
            await self._repo.delete(account_id)
            return await self._fetch()

        accounts = await self._mutate("delete account", delete_and_reload)
        self._publish_accounts(accounts)
        await self._audit.log_account_deleted(account_id)

    async def adjust_balance(
        self,
        account_id: str,
        delta: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """
        Add `delta` to the stored balance.

        Reads the latest stored balance rather than the mirrored one.
        Adjustments to the same account are serialized so overlapping
        calls cannot both read the old balance.
        """
        lock = self._balance_locks.setdefault(account_id, asyncio.Lock())
        async with lock:
            current = await self._repo.get(account_id)
            new_balance = current.balance + Decimal(delta)
            updated = await self.update_account(account_id, AccountUpdate(balance=new_balance))
        await self._audit.log_balance_adjusted(account_id, delta, new_balance, correlation_id)
        return updated

"""
Account Repository

CRUD facade over the Account collection. Owns the Main Account
uniqueness rule at the storage boundary.

DESIGN DECISION: Creating a Main Account is idempotent. If the user
already has one, the existing record is returned instead of inserting a
second row. The same answer is given when the store itself rejects the
insert with a uniqueness violation (two clients racing to create it).
Retries and races therefore converge on one Main Account.

Protecting the Main Account from deletion is NOT done here; that rule
belongs to the AccountStateManager.
"""

from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError as ModelValidationError

from moneytrack.exceptions import DuplicateMainAccountError
from moneytrack.models.ledger import (
    MAIN_ACCOUNT_NAME,
    Account,
    AccountDraft,
    AccountUpdate,
)
from moneytrack.repositories.base import StoreRepository
from moneytrack.services.storage.interface import (
    ACCOUNT_COLLECTION,
    DuplicateError,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


class AccountRepository(StoreRepository):
    """Reads and writes Account rows."""

    collection = ACCOUNT_COLLECTION

    def _row_to_account(self, row: dict[str, Any]) -> Optional[Account]:
        try:
            return Account.model_validate(row)
        except ModelValidationError as e:
            logger.warning("malformed_account_row", row_id=row.get("id"), error=str(e))
            return None

    def _draft_to_row(self, draft: AccountDraft) -> dict[str, Any]:
        return {
            "name": draft.name,
            "currency": draft.currency,
            "balance": str(draft.balance),
            "color": draft.color,
            "user_id": draft.user_id,
        }

    async def list(self, user_id: Optional[str] = None) -> list[Account]:
        """All accounts (of `user_id` if given), ordered by name ascending."""
        rows = await self._run("list accounts", self._store.select(
            self.collection,
            filters={"user_id": user_id} if user_id else None,
            order_by="name",
        ))
        accounts = [self._row_to_account(row) for row in rows]
        return [account for account in accounts if account is not None]

    async def get(self, account_id: str) -> Account:
        rows = await self._run("get account", self._store.select(
            self.collection,
            filters={"id": account_id},
        ))
        account = self._row_to_account(rows[0]) if rows else None
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return account

    async def find_main_account(self, user_id: str) -> Optional[Account]:
        rows = await self._run("find main account", self._store.select(
            self.collection,
            filters={"name": MAIN_ACCOUNT_NAME, "user_id": user_id},
        ))
        for row in rows:
            account = self._row_to_account(row)
            if account is not None:
                return account
        return None

    async def create(self, draft: Union[AccountDraft, dict]) -> Account:
        """
        Create an account.

        Raises:
            ValidationError: If a required field is missing
            DuplicateMainAccountError: If the store rejects a Main Account
                insert and no existing Main Account can be found
            StorageError: If the store call fails
        """
        if isinstance(draft, dict):
            draft = AccountDraft.model_validate(draft)
        self._validator.require_valid(draft)

        if draft.is_main:
            existing = await self.find_main_account(draft.user_id)
            if existing is not None:
                logger.info(
                    "main_account_exists",
                    user_id=draft.user_id,
                    account_id=existing.id,
                )
                return existing

        try:
            row = await self._run("create account", self._store.insert(
                self.collection,
                self._draft_to_row(draft),
            ))
        except DuplicateError as e:
            if not draft.is_main:
                raise
            logger.warning("main_account_insert_conflict", user_id=draft.user_id)
            existing = await self.find_main_account(draft.user_id)
            if existing is None:
                raise DuplicateMainAccountError() from e
            return existing

        account = self._row_to_account(row)
        if account is None:
            raise StorageError("Failed to create account: store returned an unreadable row")
        return account

    async def update(
        self,
        account_id: str,
        partial: Union[AccountUpdate, dict],
    ) -> Account:
        if isinstance(partial, dict):
            partial = AccountUpdate.model_validate(partial)
        row = await self._run("update account", self._store.update(
            self.collection,
            account_id,
            partial.to_patch(),
        ))
        account = self._row_to_account(row)
        if account is None:
            raise StorageError(f"Failed to update account {account_id}: store returned an unreadable row")
        return account

    async def delete(self, account_id: str) -> None:
        """
        Delete an account.

        The store cascades the delete to the account's Expense rows.
        """
        await self._run("delete account", self._store.delete(self.collection, account_id))

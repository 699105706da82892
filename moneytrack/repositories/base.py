"""
Shared plumbing for repositories over the remote store.
"""

from typing import Awaitable, Optional, TypeVar

import structlog

from moneytrack.services.storage.interface import (
    ChangeHandler,
    NotFoundError,
    RemoteStoreInterface,
    StorageError,
    Subscription,
)
from moneytrack.validation import LedgerValidator


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class StoreRepository:
    """
    Base class for CRUD facades over one collection.

    Store errors are logged and propagated. Anything the store raises that
    is not already a StorageError is wrapped so callers only ever handle
    the storage exception hierarchy.
    """

    collection: str = ""

    def __init__(
        self,
        store: RemoteStoreInterface,
        validator: Optional[LedgerValidator] = None,
    ):
        self._store = store
        self._validator = validator or LedgerValidator()

    def subscribe(self, handler: ChangeHandler) -> Subscription:
        """Receive change notifications for this collection."""
        return self._store.subscribe(self.collection, handler)

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except NotFoundError as e:
            logger.warning(
                "row_not_found",
                collection=self.collection,
                operation=operation,
                error=str(e),
            )
            raise
        except StorageError as e:
            logger.error(
                "store_call_failed",
                collection=self.collection,
                operation=operation,
                error=str(e),
            )
            raise
        except Exception as e:
            logger.error(
                "store_call_failed",
                collection=self.collection,
                operation=operation,
                error=str(e),
            )
            raise StorageError(f"Failed to {operation}: {e}") from e

"""
Abstract Remote Store Interface

DESIGN DECISION: The hosted row store is an external collaborator.
We define the narrow interface the ledger consumes from it. This allows us to:
1. Swap the backing service without touching repositories or state managers
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building an ORM.
Row-level CRUD on named collections plus a change feed.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel


logger = structlog.get_logger(__name__)


ACCOUNT_COLLECTION = "Account"
EXPENSE_COLLECTION = "Expense"


class ChangeType(str, Enum):
    """Kind of row change carried by a notification."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """
    A change notification for one row.

    Consumers that only care that "something in this collection changed"
    can ignore everything but the collection.
    """

    collection: str
    change_type: ChangeType
    row_id: Optional[str] = None


ChangeHandler = Callable[[ChangeEvent], Any]


class Subscription:
    """Handle returned by subscribe(). Call unsubscribe() to stop receiving events."""

    def __init__(self, feed: "ChangeFeed", collection: str, handler: ChangeHandler):
        self._feed = feed
        self._collection = collection
        self._handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self._collection, self._handler)
            self.active = False


class ChangeFeed:
    """
    Per-collection fan-out of change events.

    Handlers are called synchronously, in subscription order. A failing
    handler is logged and does not stop delivery to the others.
    """

    def __init__(self):
        self._handlers: dict[str, list[ChangeHandler]] = {}

    def subscribe(self, collection: str, handler: ChangeHandler) -> Subscription:
        self._handlers.setdefault(collection, []).append(handler)
        return Subscription(self, collection, handler)

    def _remove(self, collection: str, handler: ChangeHandler) -> None:
        handlers = self._handlers.get(collection, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: ChangeEvent) -> None:
        for handler in list(self._handlers.get(event.collection, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "change_handler_failed",
                    collection=event.collection,
                    change_type=event.change_type.value,
                    error=str(e),
                )

    def subscriber_count(self, collection: str) -> int:
        return len(self._handlers.get(collection, []))


class RemoteStoreInterface(ABC):
    """
    Abstract interface for the hosted row store.

    Any backend (hosted Postgres, Google Sheets, in-memory) must implement
    these methods. Rows are plain dicts in wire form: ids and text as str,
    money as decimal strings or numbers, dates as ISO-8601 strings.
    """

    @abstractmethod
    async def select(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Read rows from a collection.

        Args:
            collection: Collection name
            filters: Equality filters, {field: value}
            order_by: Field to order by
            descending: Reverse the ordering

        Returns:
            Matching rows

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a row.

        Returns:
            The stored row including the generated id

        Raises:
            DuplicateError: If a uniqueness constraint is violated
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        collection: str,
        row_id: str,
        partial: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Update fields of an existing row.

        Returns:
            The stored row after the update

        Raises:
            NotFoundError: If the row doesn't exist
            DuplicateError: If a uniqueness constraint is violated
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, row_id: str) -> None:
        """
        Delete a row.

        Raises:
            NotFoundError: If the row doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def subscribe(self, collection: str, handler: ChangeHandler) -> Subscription:
        """
        Subscribe to insert/update/delete notifications on a collection.

        Returns:
            Subscription with an unsubscribe() method
        """
        pass


class StorageError(Exception):
    """Base exception for remote store operations."""
    pass


class NotFoundError(StorageError):
    """Row not found in the remote store."""
    pass


class DuplicateError(StorageError):
    """Write rejected by a uniqueness constraint."""
    pass


class ConnectionError(StorageError):
    """Could not connect to the remote store."""
    pass

"""
Storage Services Package

Provides the abstract remote store interface and concrete implementations.
The hosted store is an external collaborator; Google Sheets and an
in-memory store implement the same interface.
"""

from moneytrack.services.storage.interface import (
    ACCOUNT_COLLECTION,
    EXPENSE_COLLECTION,
    ChangeEvent,
    ChangeFeed,
    ChangeHandler,
    ChangeType,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RemoteStoreInterface,
    StorageError,
    Subscription,
)
from moneytrack.services.storage.schema import (
    CascadeRule,
    UniqueIndex,
    ledger_schema,
)
from moneytrack.services.storage.memory import InMemoryStore
from moneytrack.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsStore,
)

__all__ = [
    # Interface
    "ACCOUNT_COLLECTION",
    "EXPENSE_COLLECTION",
    "ChangeEvent",
    "ChangeFeed",
    "ChangeHandler",
    "ChangeType",
    "RemoteStoreInterface",
    "Subscription",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Schema
    "CascadeRule",
    "UniqueIndex",
    "ledger_schema",
    # Implementations
    "InMemoryStore",
    "GoogleSheetsClient",
    "GoogleSheetsStore",
]

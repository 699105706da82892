"""
Services Package

External collaborators of the ledger:
- storage: the remote row store (interface + implementations)
- session: the current authenticated user
"""

from moneytrack.services.session import SessionContext
from moneytrack.services.storage import (
    ChangeEvent,
    ChangeType,
    DuplicateError,
    GoogleSheetsStore,
    InMemoryStore,
    NotFoundError,
    RemoteStoreInterface,
    StorageError,
)

__all__ = [
    # Session
    "SessionContext",
    # Storage
    "ChangeEvent",
    "ChangeType",
    "DuplicateError",
    "GoogleSheetsStore",
    "InMemoryStore",
    "NotFoundError",
    "RemoteStoreInterface",
    "StorageError",
]

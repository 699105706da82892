"""
In-Memory Remote Store

A dict-backed implementation of the remote store interface. Used for
tests and for running without a configured backend.

It reproduces the two pieces of store-side behavior the ledger relies on:
- partial unique indexes (one Main Account per user)
- cascading deletes (deleting an Account deletes its Expense rows)

Every successful write publishes a ChangeEvent, like the hosted change feed.
"""

import copy
from typing import Any, Optional
from uuid import uuid4

from moneytrack.services.storage.interface import (
    ChangeEvent,
    ChangeFeed,
    ChangeHandler,
    ChangeType,
    NotFoundError,
    RemoteStoreInterface,
    Subscription,
)
from moneytrack.services.storage.schema import (
    CascadeRule,
    UniqueIndex,
    check_unique,
    ledger_schema,
)


class InMemoryStore(RemoteStoreInterface):
    """
    Remote store kept in process memory.

    Rows are deep-copied on the way in and out so callers can never
    mutate stored state by accident.
    """

    def __init__(
        self,
        unique_indexes: Optional[list[UniqueIndex]] = None,
        cascades: Optional[list[CascadeRule]] = None,
    ):
        if unique_indexes is None and cascades is None:
            unique_indexes, cascades = ledger_schema()
        self._indexes = unique_indexes or []
        self._cascades = cascades or []
        self._rows: dict[str, dict[str, dict[str, Any]]] = {}
        self._feed = ChangeFeed()
        self._failures: list[tuple[str, str, Exception]] = []
        # (operation, collection) for every call, for assertions in tests
        self.calls: list[tuple[str, str]] = []

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def seed(self, collection: str, rows: list[dict[str, Any]]) -> None:
        """Insert rows directly, bypassing constraints and notifications."""
        table = self._rows.setdefault(collection, {})
        for row in rows:
            stored = copy.deepcopy(row)
            stored.setdefault("id", str(uuid4()))
            table[stored["id"]] = stored

    def fail_next(self, operation: str, collection: str, error: Exception) -> None:
        """Make the next `operation` on `collection` raise `error`."""
        self._failures.append((operation, collection, error))

    def rows(self, collection: str) -> list[dict[str, Any]]:
        """Snapshot of every stored row in a collection, in insertion order."""
        return [copy.deepcopy(row) for row in self._rows.get(collection, {}).values()]

    def writes(self, collection: Optional[str] = None) -> list[tuple[str, str]]:
        """Recorded insert/update/delete calls."""
        return [
            call for call in self.calls
            if call[0] != "select" and (collection is None or call[1] == collection)
        ]

    # ------------------------------------------------------------------
    # RemoteStoreInterface
    # ------------------------------------------------------------------

    def _check_failure(self, operation: str, collection: str) -> None:
        self.calls.append((operation, collection))
        for index, (op, coll, error) in enumerate(self._failures):
            if op == operation and coll == collection:
                del self._failures[index]
                raise error

    def _check_unique(self, collection: str, candidate: dict[str, Any]) -> None:
        check_unique(
            self._indexes,
            collection,
            candidate,
            self._rows.get(collection, {}).values(),
        )

    async def select(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        self._check_failure("select", collection)
        rows = [
            copy.deepcopy(row)
            for row in self._rows.get(collection, {}).values()
            if all(row.get(key) == value for key, value in (filters or {}).items())
        ]
        if order_by:
            rows.sort(key=lambda row: str(row.get(order_by, "")), reverse=descending)
        return rows

    async def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        self._check_failure("insert", collection)
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid4()))
        self._check_unique(collection, stored)
        self._rows.setdefault(collection, {})[stored["id"]] = stored
        self._feed.publish(ChangeEvent(
            collection=collection,
            change_type=ChangeType.INSERT,
            row_id=stored["id"],
        ))
        return copy.deepcopy(stored)

    async def update(
        self,
        collection: str,
        row_id: str,
        partial: dict[str, Any],
    ) -> dict[str, Any]:
        self._check_failure("update", collection)
        table = self._rows.get(collection, {})
        if row_id not in table:
            raise NotFoundError(f"{collection} row not found: {row_id}")
        candidate = {**table[row_id], **copy.deepcopy(partial), "id": row_id}
        self._check_unique(collection, candidate)
        table[row_id] = candidate
        self._feed.publish(ChangeEvent(
            collection=collection,
            change_type=ChangeType.UPDATE,
            row_id=row_id,
        ))
        return copy.deepcopy(candidate)

    async def delete(self, collection: str, row_id: str) -> None:
        self._check_failure("delete", collection)
        table = self._rows.get(collection, {})
        if row_id not in table:
            raise NotFoundError(f"{collection} row not found: {row_id}")
        del table[row_id]

        for rule in self._cascades:
            if rule.parent != collection:
                continue
            children = self._rows.get(rule.child, {})
            for child_id in [cid for cid, child in children.items() if child.get(rule.column) == row_id]:
                del children[child_id]
                self._feed.publish(ChangeEvent(
                    collection=rule.child,
                    change_type=ChangeType.DELETE,
                    row_id=child_id,
                ))

        self._feed.publish(ChangeEvent(
            collection=collection,
            change_type=ChangeType.DELETE,
            row_id=row_id,
        ))

    def subscribe(self, collection: str, handler: ChangeHandler) -> Subscription:
        return self._feed.subscribe(collection, handler)

    def subscriber_count(self, collection: str) -> int:
        return self._feed.subscriber_count(collection)

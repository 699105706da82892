"""
Store-side constraints of the ledger schema.

The hosted store enforces these with a partial unique index and a
foreign key with ON DELETE CASCADE. Local store implementations
apply the same rules so the ledger sees identical behavior.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable

from moneytrack.models.ledger import MAIN_ACCOUNT_NAME
from moneytrack.services.storage.interface import (
    ACCOUNT_COLLECTION,
    EXPENSE_COLLECTION,
    DuplicateError,
)


@dataclass(frozen=True)
class UniqueIndex:
    """
    Uniqueness over `columns` for rows matching `where`.

    With an empty `where` this is a plain unique constraint.
    """
    collection: str
    columns: tuple[str, ...]
    where: dict[str, Any] = field(default_factory=dict)
    name: str = "unique_index"

    def applies_to(self, row: dict[str, Any]) -> bool:
        return all(row.get(key) == value for key, value in self.where.items())

    def key(self, row: dict[str, Any]) -> tuple:
        return tuple(row.get(column) for column in self.columns)


@dataclass(frozen=True)
class CascadeRule:
    """Deleting a `parent` row deletes `child` rows whose `column` references it."""
    parent: str
    child: str
    column: str


def ledger_schema() -> tuple[list[UniqueIndex], list[CascadeRule]]:
    """Constraints of the Account/Expense schema."""
    indexes = [
        UniqueIndex(
            collection=ACCOUNT_COLLECTION,
            columns=("user_id",),
            where={"name": MAIN_ACCOUNT_NAME},
            name="one_main_account_per_user",
        ),
    ]
    cascades = [
        CascadeRule(
            parent=ACCOUNT_COLLECTION,
            child=EXPENSE_COLLECTION,
            column="account_id",
        ),
    ]
    return indexes, cascades


def check_unique(
    indexes: Iterable[UniqueIndex],
    collection: str,
    candidate: dict[str, Any],
    existing: Iterable[dict[str, Any]],
) -> None:
    """Raise DuplicateError if `candidate` collides with any `existing` row."""
    existing = list(existing)
    for index in indexes:
        if index.collection != collection or not index.applies_to(candidate):
            continue
        for row in existing:
            if row.get("id") == candidate.get("id"):
                continue
            if index.applies_to(row) and index.key(row) == index.key(candidate):
                raise DuplicateError(
                    f"duplicate key value violates unique constraint \"{index.name}\""
                )

"""
Google Sheets Remote Store

DESIGN DECISION: Google Sheets can stand in for the hosted row store because:
1. Users can view their accounts and expenses directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (the ledger never relied on them anyway)
- No change feed: notifications are only published for writes made
  through this process
- Limited query capabilities (we filter and order in Python)

One worksheet per collection, one row per record, header row first.
"""

from typing import Any, Optional
from uuid import uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from moneytrack.config import get_settings
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
from moneytrack.services.storage.schema import check_unique, ledger_schema


logger = structlog.get_logger(__name__)


# Column mappings per collection
ACCOUNT_COLUMNS = [
    "id",
    "name",
    "currency",
    "balance",
    "color",
    "user_id",
]

EXPENSE_COLUMNS = [
    "id",
    "title",
    "amount",
    "category",
    "date",
    "account_id",
    "user_id",
]

COLLECTION_COLUMNS = {
    ACCOUNT_COLLECTION: ACCOUNT_COLUMNS,
    EXPENSE_COLLECTION: EXPENSE_COLUMNS,
}


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def sheet_name(self, collection: str) -> str:
        if collection == ACCOUNT_COLLECTION:
            return self._settings.accounts_sheet_name
        if collection == EXPENSE_COLLECTION:
            return self._settings.expenses_sheet_name
        raise StorageError(f"Unknown collection: {collection}")

    def get_sheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        columns = COLLECTION_COLUMNS[collection]
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self.sheet_name(collection))
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self.sheet_name(collection),
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class GoogleSheetsStore(RemoteStoreInterface):
    """
    Google Sheets implementation of the remote store.

    Every cell is stored as text. Repositories parse values back into
    typed models, so numbers and dates round-trip through their string form.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._indexes, self._cascades = ledger_schema()
        self._feed = ChangeFeed()

    def _row_to_dict(self, collection: str, row: list) -> dict[str, Any]:
        """Convert a spreadsheet row to a wire dict."""
        columns = COLLECTION_COLUMNS[collection]

        # Handle missing trailing cells gracefully
        def safe_get(index: int) -> str:
            try:
                return row[index]
            except IndexError:
                return ""

        return {column: safe_get(i) for i, column in enumerate(columns)}

    def _dict_to_row(self, collection: str, data: dict[str, Any]) -> list:
        """Convert a wire dict to a spreadsheet row."""
        return [
            "" if data.get(column) is None else str(data.get(column))
            for column in COLLECTION_COLUMNS[collection]
        ]

    def _all_rows(self, collection: str) -> list[tuple[int, dict[str, Any]]]:
        """(sheet row number, record) for every non-empty row."""
        sheet = self._client.get_sheet(collection)
        records = []
        # Start from 2 (row 1 is header)
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0]:
                records.append((idx, self._row_to_dict(collection, row)))
        return records

    def _publish(self, collection: str, change_type: ChangeType, row_id: str) -> None:
        self._feed.publish(ChangeEvent(
            collection=collection,
            change_type=change_type,
            row_id=row_id,
        ))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def select(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        try:
            rows = [
                record for _, record in self._all_rows(collection)
                if all(record.get(key) == str(value) for key, value in (filters or {}).items())
            ]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {collection}: {e}")

        if order_by:
            rows.sort(key=lambda record: record.get(order_by, ""), reverse=descending)
        return rows

    async def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        stored = {key: value for key, value in row.items()}
        stored.setdefault("id", str(uuid4()))
        stored = self._row_to_dict(collection, self._dict_to_row(collection, stored))
        try:
            existing = [record for _, record in self._all_rows(collection)]
            check_unique(self._indexes, collection, stored, existing)
            sheet = self._client.get_sheet(collection)
            sheet.append_row(self._dict_to_row(collection, stored), value_input_option="RAW")
        except (DuplicateError, StorageError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert into {collection}: {e}")

        self._publish(collection, ChangeType.INSERT, stored["id"])
        return stored

    async def update(
        self,
        collection: str,
        row_id: str,
        partial: dict[str, Any],
    ) -> dict[str, Any]:
        try:
            records = self._all_rows(collection)
            for idx, record in records:
                if record["id"] != row_id:
                    continue
                candidate = {**record, **partial, "id": row_id}
                candidate = self._row_to_dict(collection, self._dict_to_row(collection, candidate))
                check_unique(
                    self._indexes,
                    collection,
                    candidate,
                    [other for _, other in records],
                )
                sheet = self._client.get_sheet(collection)
                sheet.update(
                    range_name=f"A{idx}",
                    values=[self._dict_to_row(collection, candidate)],
                    value_input_option="RAW",
                )
                break
            else:
                raise NotFoundError(f"{collection} row not found: {row_id}")
        except (DuplicateError, NotFoundError, StorageError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {collection}: {e}")

        self._publish(collection, ChangeType.UPDATE, row_id)
        return candidate

    def _delete_where(self, collection: str, column: str, value: str) -> list[str]:
        """Delete every row whose `column` equals `value`. Returns deleted ids."""
        sheet = self._client.get_sheet(collection)
        matches = [
            (idx, record["id"])
            for idx, record in self._all_rows(collection)
            if record.get(column) == value
        ]
        # Bottom-up so earlier row numbers stay valid
        for idx, _ in reversed(matches):
            sheet.delete_rows(idx)
        return [row_id for _, row_id in matches]

    async def delete(self, collection: str, row_id: str) -> None:
        try:
            deleted = self._delete_where(collection, "id", row_id)
            if not deleted:
                raise NotFoundError(f"{collection} row not found: {row_id}")

            cascaded = []
            for rule in self._cascades:
                if rule.parent == collection:
                    cascaded.extend(
                        (rule.child, child_id)
                        for child_id in self._delete_where(rule.child, rule.column, row_id)
                    )
        except (NotFoundError, StorageError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete from {collection}: {e}")

        for child_collection, child_id in cascaded:
            self._publish(child_collection, ChangeType.DELETE, child_id)
        self._publish(collection, ChangeType.DELETE, row_id)

    def subscribe(self, collection: str, handler: ChangeHandler) -> Subscription:
        logger.debug("sheets_subscription_local_only", collection=collection)
        return self._feed.subscribe(collection, handler)

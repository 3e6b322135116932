"""
Google Sheets Ledger Store

DESIGN DECISION: Google Sheets is the persisted backend because:
1. Non-technical users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions: a balance write and a transaction-record write are
  two separate requests (the ledger flags partial completion)
- Reads are served from the last fetched snapshot. Another client
  editing the sheet is only seen after the next refresh()

Each collection lives in its own worksheet, one entity per row,
keyed by the first column.
"""

from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from finboard.config import GoogleSheetsSettings, get_settings
from finboard.models.ledger import Collection
from finboard.services.storage.interface import (
    ENTITY_MODELS,
    ConnectionError,
    Entity,
    LedgerStorePort,
    NotFoundError,
    StorageError,
)


# Column layout per worksheet. The first column is the entity key.
COLUMNS: dict[Collection, list[str]] = {
    Collection.ACCOUNTS: [
        "id",
        "name",
        "type",
        "opening_balance",
        "balance",
        "currency",
    ],
    Collection.TRANSACTIONS: [
        "id",
        "account_id",
        "amount",
        "type",
        "category",
        "date",
        "description",
    ],
    Collection.HOLDINGS: [
        "symbol",
        "name",
        "quantity",
        "average_cost",
        "current_price",
        "last_updated",
    ],
}


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

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

    def sheet_name(self, collection: Collection) -> str:
        return {
            Collection.ACCOUNTS: self._settings.accounts_sheet_name,
            Collection.TRANSACTIONS: self._settings.transactions_sheet_name,
            Collection.HOLDINGS: self._settings.holdings_sheet_name,
        }[collection]

    def get_worksheet(self, collection: Collection) -> gspread.Worksheet:
        """Get or create the worksheet for a collection."""
        spreadsheet = self.get_spreadsheet()
        title = self.sheet_name(collection)
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(COLUMNS[collection]),
            )
            sheet.append_row(COLUMNS[collection])
        return sheet


class GoogleSheetsLedgerStore(LedgerStorePort):
    """
    Persisted implementation of LedgerStorePort.

    Writes are request/response calls against the sheet. After every
    successful write the affected collection is fetched again and
    pushed to subscribers, so read() reflects the write once it
    returns.

    Once a row change is committed, write() and delete() no longer
    raise. If the follow-up fetch fails, the change is applied to the
    local snapshot instead and the collection is marked stale until
    the next successful refresh().
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__()
        self._client = client or GoogleSheetsClient()
        self._snapshots: dict[Collection, list] = {
            collection: [] for collection in Collection
        }
        self._stale: set[Collection] = set()

    def _entity_to_row(self, collection: Collection, entity: Entity) -> list[str]:
        """Convert an entity to a spreadsheet row."""
        data = entity.model_dump(mode="json")
        return [
            "" if data.get(column) is None else str(data[column])
            for column in COLUMNS[collection]
        ]

    def _row_to_entity(self, collection: Collection, row: list) -> Entity:
        """Convert a spreadsheet row to an entity."""
        values: dict[str, Any] = {}
        for index, column in enumerate(COLUMNS[collection]):
            value = row[index] if index < len(row) else ""
            if value != "":
                values[column] = value
        return ENTITY_MODELS[collection].model_validate(values)

    def _find_row(self, sheet: gspread.Worksheet, key: str) -> Optional[int]:
        """1-based row index of the entity with this key (row 1 is the header)."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == key:
                return idx
        return None

    def read(self, collection: Collection) -> list:
        return [entity.model_copy() for entity in self._snapshots[collection]]

    async def load(self) -> None:
        """Fetch every collection (initial subscription fill)."""
        for collection in Collection:
            await self.refresh(collection)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def refresh(self, collection: Collection) -> list:
        """Re-read a collection from the sheet and notify subscribers."""
        try:
            sheet = self._client.get_worksheet(collection)
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {collection.value}: {e}")

        entities = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                entities.append(self._row_to_entity(collection, row))
            except (ValidationError, ValueError) as e:
                self._logger.warning(
                    "sheet_row_skipped",
                    collection=collection.value,
                    key=row[0],
                    error=str(e),
                )

        self._snapshots[collection] = entities
        self._stale.discard(collection)
        self._notify(collection)
        return self.read(collection)

    def is_stale(self, collection: Collection) -> bool:
        """True when the snapshot was patched locally after a failed fetch."""
        return collection in self._stale

    async def _refresh_after_commit(
        self,
        collection: Collection,
        key: str,
        entity: Optional[Entity] = None,
    ) -> None:
        """
        Refresh after a committed row change.

        The sheet already holds the change, so a failed fetch must not
        surface as a failed write. The snapshot is patched with the
        committed change (upsert `entity`, or drop `key` when entity is
        None) and subscribers are notified.
        """
        try:
            await self.refresh(collection)
            return
        except StorageError as e:
            self._logger.warning(
                "sheet_refresh_failed_after_commit",
                collection=collection.value,
                key=key,
                error=str(e),
            )

        snapshot = [item for item in self._snapshots[collection] if item.key != key]
        if entity is not None:
            current_keys = [item.key for item in self._snapshots[collection]]
            position = current_keys.index(key) if key in current_keys else len(snapshot)
            snapshot.insert(position, entity.model_copy())
        self._snapshots[collection] = snapshot
        self._stale.add(collection)
        self._notify(collection)

    async def write(self, collection: Collection, entity: Entity) -> bool:
        """Insert or update the entity's row."""
        expected = ENTITY_MODELS[collection]
        if not isinstance(entity, expected):
            raise StorageError(
                f"Cannot write {type(entity).__name__} to {collection.value}; "
                f"expected {expected.__name__}"
            )
        self._write_row(collection, entity)
        await self._refresh_after_commit(collection, entity.key, entity)
        return True

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _write_row(self, collection: Collection, entity: Entity) -> None:
        """
        Upsert one row in a single request.

        The key is looked up again on every attempt, so a retried
        append whose first response was lost updates the row instead
        of appending a duplicate.
        """
        try:
            sheet = self._client.get_worksheet(collection)
            row = self._entity_to_row(collection, entity)
            idx = self._find_row(sheet, entity.key)
            if idx is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(
                    range_name=f"A{idx}",
                    values=[row],
                    value_input_option="RAW",
                )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write {collection.value} {entity.key}: {e}")

    async def delete(self, collection: Collection, key: str) -> bool:
        """Delete the entity's row."""
        try:
            sheet = self._client.get_worksheet(collection)
            idx = self._find_row(sheet, key)
            if idx is None:
                raise NotFoundError(f"{collection.value} entry not found: {key}")
            sheet.delete_rows(idx)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {collection.value} {key}: {e}")

        await self._refresh_after_commit(collection, key)
        return True

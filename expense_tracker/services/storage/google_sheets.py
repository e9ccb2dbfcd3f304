"""
Google Sheets Storage Implementation

DESIGN DECISION: The spreadsheet is the database. Users also open and edit
it by hand, so the store must cope with whatever it finds there:
1. Rows written before identifiers existed (repaired on every read)
2. Partially filled rows (decoded leniently by the codec)
3. Tabs created, renamed or reordered between two API calls

TRADEOFFS:
- No primary key index: identifiers are resolved by scanning a column,
  and the row map is rebuilt for every operation (never cached)
- No transactions: a structural edit made in the sheet between resolving a
  row number and writing to it can make the write land on another row.
  This race is accepted; there is no version check and no lock.
- No retries here: idempotent calls are retried by GoogleSheetsClient,
  everything else surfaces as StoreError on the first failure.
- gspread is blocking, so each public coroutine runs its body in a worker
  thread (asyncio.to_thread) and the event loop keeps serving requests,
  including while a transport retry waits.
"""

import asyncio
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

import gspread
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.config import GoogleSheetsSettings, get_settings
from expense_tracker.models.records import (
    SavingsGoal,
    SavingsGoalCreate,
    SavingsGoalPatch,
    Transaction,
    TransactionCreate,
    normalize_identifier,
)
from expense_tracker.services.storage.codec import (
    RowCodec,
    SAVINGS_COLUMNS,
    SavingsGoalCodec,
    TransactionCodec,
)
from expense_tracker.services.storage.credentials import CredentialResolver
from expense_tracker.services.storage.interface import (
    DuplicateError,
    InvalidRecordError,
    NotFoundError,
    SavingsStorageInterface,
    StoreError,
    TransactionStorageInterface,
)
from expense_tracker.services.storage.migration import (
    backfill_identifiers,
    is_blank_row,
    new_identifier,
)

logger = structlog.get_logger(__name__)

# Only calls that can safely run twice are retried
transport_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class Collection(str, Enum):
    """Logical record sets, each bound to one tab."""
    TRANSACTIONS = "expenses"
    SAVINGS = "savings goals"


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and owns the transport retry policy. The opened
    spreadsheet handle is reused; tab metadata is fetched fresh on every call.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        credential_resolver: Optional[CredentialResolver] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._settings = settings or get_settings().google_sheets
        self._resolver = credential_resolver or CredentialResolver(self._settings)
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    def connect(self) -> gspread.Client:
        """
        Authorize against Google Sheets.

        CredentialError from the resolver propagates unchanged and is not retried.
        """
        if self._client is None:
            credentials = self._resolver.resolve()
            self._client = gspread.authorize(credentials)
        return self._client

    @transport_retry
    def _open(self) -> gspread.Spreadsheet:
        return self.connect().open_by_key(self._settings.spreadsheet_id)

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            try:
                self._spreadsheet = self._open()
            except gspread.exceptions.SpreadsheetNotFound as e:
                raise StoreError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
            logger.info("spreadsheet_opened", spreadsheet_id=self._settings.spreadsheet_id)
        return self._spreadsheet

    @transport_retry
    def worksheets(self) -> list[gspread.Worksheet]:
        """One metadata round-trip: the current list of tabs, in order."""
        return self.get_spreadsheet().worksheets()

    def add_worksheet(self, title: str, cols: int) -> gspread.Worksheet:
        return self.get_spreadsheet().add_worksheet(title=title, rows=1000, cols=cols)

    @transport_retry
    def read_range(self, worksheet: gspread.Worksheet, range_name: str) -> list[list[str]]:
        return worksheet.get_values(range_name)

    @transport_retry
    def write_range(
        self,
        worksheet: gspread.Worksheet,
        range_name: str,
        values: list[list[str]],
    ) -> None:
        worksheet.update(
            range_name=range_name,
            values=values,
            value_input_option=self._settings.value_input_option,
        )

    @transport_retry
    def write_cells(self, worksheet: gspread.Worksheet, data: list[dict]) -> None:
        """Write several disjoint ranges in one batched call."""
        worksheet.batch_update(data, value_input_option=self._settings.value_input_option)

    def append_row(self, worksheet: gspread.Worksheet, row: list[str]) -> None:
        worksheet.append_row(
            row,
            value_input_option=self._settings.value_input_option,
            table_range="A1",
        )

    def delete_row(self, worksheet: gspread.Worksheet, row_number: int) -> None:
        """Structural delete: later rows shift up by one."""
        worksheet.delete_rows(row_number)


class SheetLocator:
    """
    Resolves a collection to its tab.

    The transaction ledger is always the first tab, whatever its title.
    Savings goals live in a tab with a fixed title, created on demand.
    """

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _title(self, collection: Collection) -> Optional[str]:
        if collection is Collection.SAVINGS:
            return self._client.settings.savings_sheet_name
        return None

    def locate(self, collection: Collection) -> Optional[gspread.Worksheet]:
        """Return the collection's tab, or None if it does not exist yet."""
        worksheets = self._client.worksheets()
        title = self._title(collection)
        if title is None:
            if not worksheets:
                raise StoreError("Spreadsheet has no tabs")
            return worksheets[0]
        for worksheet in worksheets:
            if worksheet.title == title:
                return worksheet
        return None

    def ensure_exists(self, collection: Collection) -> gspread.Worksheet:
        worksheet = self.locate(collection)
        if worksheet is not None:
            return worksheet
        title = self._title(collection)
        worksheet = self._client.add_worksheet(title, cols=len(SAVINGS_COLUMNS))
        logger.info("worksheet_created", collection=collection.value, title=title)
        return worksheet


class _SheetRecordStorage:
    """
    Shared row mechanics for one collection.

    Subclasses set `collection` and `codec`.
    """

    collection: Collection
    codec: RowCodec

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        locator: Optional[SheetLocator] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Callable[[], str] = new_identifier,
    ):
        self._client = client or GoogleSheetsClient()
        self._locator = locator or SheetLocator(self._client)
        self._clock = clock or datetime.now
        self._id_factory = id_factory

    def _timestamp(self) -> str:
        return self._clock().strftime(self._client.settings.timestamp_format)

    @property
    def _full_range(self) -> str:
        return f"A:{self.codec.last_column_letter}"

    @property
    def _id_range(self) -> str:
        letter = self.codec.id_column_letter
        return f"{letter}:{letter}"

    def _read(self, worksheet: gspread.Worksheet, range_name: str) -> list[list[str]]:
        """Read a range, dropping trailing blank rows."""
        rows = [list(row) for row in self._client.read_range(worksheet, range_name)]
        while rows and is_blank_row(rows[-1]):
            rows.pop()
        return rows

    def _materialize(self, worksheet: gspread.Worksheet) -> list[list[str]]:
        """
        Read the whole collection and repair missing identifiers.

        Every pending cell (header label and per-row identifiers) is written
        back in one batched call before returning.
        """
        rows = self._read(worksheet, self._full_range)
        if not rows:
            return []

        patched, pending = backfill_identifiers(
            rows,
            self.codec.id_column,
            id_factory=self._id_factory,
        )
        if pending:
            self._client.write_cells(worksheet, [write.as_batch_entry() for write in pending])
            logger.info(
                "identifiers_backfilled",
                collection=self.collection.value,
                cells=len(pending),
                rows=[write.row for write in pending],
            )
        return patched

    def _decode_all(self, rows: list[list[str]]) -> list[Any]:
        return [self.codec.decode(row) for row in rows[1:] if not is_blank_row(row)]

    @staticmethod
    def _row_map(rows: list[list[str]], column: int) -> dict[str, int]:
        """Identifier -> 1-based row number, scanning data rows top to bottom."""
        index: dict[str, int] = {}
        for row_number, row in enumerate(rows[1:], start=2):
            if len(row) <= column:
                continue
            identifier = normalize_identifier(row[column])
            if identifier and identifier not in index:
                index[identifier] = row_number
        return index

    def _resolve(self, rows: list[list[str]], column: int, identifier: str) -> int:
        row_number = self._row_map(rows, column).get(normalize_identifier(identifier))
        if row_number is None:
            raise NotFoundError(f"{self._label} not found: {identifier}")
        return row_number

    @property
    def _label(self) -> str:
        return "Record"

    def _ensure_header(self, worksheet: gspread.Worksheet) -> None:
        """Write the canonical header if row 1 is empty."""
        last = self.codec.last_column_letter
        first_row = self._read(worksheet, f"A1:{last}1")
        if not first_row:
            self._client.write_range(worksheet, f"A1:{last}1", [self.codec.header()])
            logger.info("header_written", collection=self.collection.value)

    def _overwrite(self, worksheet: gspread.Worksheet, row_number: int, record: Any) -> None:
        last = self.codec.last_column_letter
        self._client.write_range(
            worksheet,
            f"A{row_number}:{last}{row_number}",
            [self.codec.encode(record)],
        )
        logger.info(
            "row_overwritten",
            collection=self.collection.value,
            row=row_number,
            id=record.id,
        )

    def _delete(self, worksheet: gspread.Worksheet, identifier: str) -> None:
        rows = self._read(worksheet, self._id_range)
        row_number = self._resolve(rows, 0, identifier)
        self._client.delete_row(worksheet, row_number)
        logger.info(
            "row_deleted",
            collection=self.collection.value,
            row=row_number,
            id=normalize_identifier(identifier),
        )


class GoogleSheetsTransactionStorage(_SheetRecordStorage, TransactionStorageInterface):
    """
    Transactions in the first tab, columns A..I, identifier in column I.

    Identifiers and creation timestamps are assigned here, never by callers.
    """

    collection = Collection.TRANSACTIONS
    codec = TransactionCodec()

    @property
    def _label(self) -> str:
        return "Transaction"

    async def list_transactions(self) -> list[Transaction]:
        try:
            return await asyncio.to_thread(self._list)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to list transactions: {e}") from e

    async def create_transaction(self, data: TransactionCreate) -> Transaction:
        try:
            return await asyncio.to_thread(self._create, data)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to add transaction: {e}") from e

    async def update_transaction(
        self,
        transaction_id: str,
        data: TransactionCreate,
    ) -> Transaction:
        try:
            return await asyncio.to_thread(self._update, transaction_id, data)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to update transaction: {e}") from e

    async def delete_transaction(self, transaction_id: str) -> None:
        try:
            await asyncio.to_thread(self._remove, transaction_id)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to delete transaction: {e}") from e

    def _list(self) -> list[Transaction]:
        worksheet = self._locator.locate(self.collection)
        return self._decode_all(self._materialize(worksheet))

    def _create(self, data: TransactionCreate) -> Transaction:
        worksheet = self._locator.locate(self.collection)
        self._ensure_header(worksheet)
        transaction = Transaction(
            id=self._id_factory(),
            timestamp=self._timestamp(),
            **data.model_dump(),
        )
        self._client.append_row(worksheet, self.codec.encode(transaction))
        logger.info(
            "record_appended",
            collection=self.collection.value,
            id=transaction.id,
            type=transaction.kind.value,
            amount=str(transaction.amount),
        )
        return transaction

    def _update(self, transaction_id: str, data: TransactionCreate) -> Transaction:
        worksheet = self._locator.locate(self.collection)
        rows = self._read(worksheet, self._full_range)
        row_number = self._resolve(rows, self.codec.id_column, transaction_id)
        existing = self.codec.decode(rows[row_number - 1])
        transaction = Transaction(
            id=existing.id,
            timestamp=existing.timestamp,
            **data.model_dump(),
        )
        self._overwrite(worksheet, row_number, transaction)
        return transaction

    def _remove(self, transaction_id: str) -> None:
        worksheet = self._locator.locate(self.collection)
        self._delete(worksheet, transaction_id)


class GoogleSheetsSavingsStorage(_SheetRecordStorage, SavingsStorageInterface):
    """
    Savings goals in a named tab, columns A..F, identifier in column A.

    The caller assigns identifiers; a duplicate is rejected on create.
    """

    collection = Collection.SAVINGS
    codec = SavingsGoalCodec()

    @property
    def _label(self) -> str:
        return "Saving goal"

    def _require_worksheet(self) -> gspread.Worksheet:
        worksheet = self._locator.locate(self.collection)
        if worksheet is None:
            raise NotFoundError(
                f"Savings sheet not found: {self._client.settings.savings_sheet_name}"
            )
        return worksheet

    async def list_goals(self) -> list[SavingsGoal]:
        try:
            return await asyncio.to_thread(self._list)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to list savings goals: {e}") from e

    async def create_goal(self, data: SavingsGoalCreate) -> SavingsGoal:
        try:
            return await asyncio.to_thread(self._create, data)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to add saving goal: {e}") from e

    async def update_goal(self, goal_id: str, patch: SavingsGoalPatch) -> SavingsGoal:
        try:
            return await asyncio.to_thread(self._update, goal_id, patch)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to update saving goal: {e}") from e

    async def delete_goal(self, goal_id: str) -> None:
        try:
            await asyncio.to_thread(self._remove, goal_id)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to delete saving goal: {e}") from e

    def _list(self) -> list[SavingsGoal]:
        worksheet = self._locator.locate(self.collection)
        if worksheet is None:
            # Tab not created yet: no goals, not an error
            return []
        return self._decode_all(self._materialize(worksheet))

    def _create(self, data: SavingsGoalCreate) -> SavingsGoal:
        worksheet = self._locator.ensure_exists(self.collection)
        self._ensure_header(worksheet)

        ids = self._read(worksheet, self._id_range)
        if data.id in self._row_map(ids, 0):
            raise DuplicateError(f"Saving goal already exists: {data.id}")

        goal = SavingsGoal(last_updated=self._timestamp(), **data.model_dump())
        self._client.append_row(worksheet, self.codec.encode(goal))
        logger.info("record_appended", collection=self.collection.value, id=goal.id)
        return goal

    def _update(self, goal_id: str, patch: SavingsGoalPatch) -> SavingsGoal:
        worksheet = self._require_worksheet()
        rows = self._read(worksheet, self._full_range)
        row_number = self._resolve(rows, self.codec.id_column, goal_id)
        existing = self.codec.decode(rows[row_number - 1])
        try:
            changes = patch.changes_from(existing)
        except ValueError as e:
            raise InvalidRecordError(f"Invalid saving goal update: {e}") from e
        goal = existing.model_copy(
            update={**changes, "last_updated": self._timestamp()}
        )
        self._overwrite(worksheet, row_number, goal)
        return goal

    def _remove(self, goal_id: str) -> None:
        worksheet = self._require_worksheet()
        self._delete(worksheet, goal_id)

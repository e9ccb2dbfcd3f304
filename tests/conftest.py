"""
Shared fixtures.

FakeSpreadsheet / FakeWorksheet implement the handful of gspread calls the
store makes, against plain lists of strings. No test touches the network.
"""

import asyncio
import itertools
import re
from datetime import datetime, timedelta

import gspread
import pytest
from tenacity import wait_none

from expense_tracker.config import GoogleSheetsSettings
from expense_tracker.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsSavingsStorage,
    GoogleSheetsTransactionStorage,
    SheetLocator,
)

_RANGE_RE = re.compile(r"^([A-Z]+)(\d*)(?::([A-Z]+)(\d*))?$")


def _col_index(letters: str) -> int:
    index = 0
    for char in letters:
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index


def parse_range(range_name: str) -> tuple[int, int | None, int, int]:
    """Return (first_row, last_row or None, first_col, last_col), all 1-based."""
    match = _RANGE_RE.match(range_name)
    if not match:
        raise ValueError(f"Unsupported range: {range_name}")
    start_col, start_row, end_col, end_row = match.groups()
    end_col = end_col or start_col
    end_row = end_row if match.group(3) else start_row
    return (
        int(start_row) if start_row else 1,
        int(end_row) if end_row else None,
        _col_index(start_col),
        _col_index(end_col),
    )


class FakeWorksheet:
    def __init__(self, title: str, sheet_id: int, rows=None):
        self.title = title
        self.id = sheet_id
        self.rows = [[str(cell) for cell in row] for row in (rows or [])]
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()
        # name -> exceptions raised, one per call, before the call succeeds
        self.errors: dict[str, list[Exception]] = {}

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")
        pending = self.errors.get(name)
        if pending:
            raise pending.pop(0)

    def calls_to(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    def _set(self, row: int, col: int, value: str) -> None:
        while len(self.rows) < row:
            self.rows.append([])
        cells = self.rows[row - 1]
        while len(cells) < col:
            cells.append("")
        cells[col - 1] = str(value)

    def get_values(self, range_name: str):
        self._record("get_values", range_name)
        first_row, last_row, first_col, last_col = parse_range(range_name)
        last_row = last_row or len(self.rows)
        block = []
        for row in self.rows[first_row - 1:last_row]:
            cells = row[first_col - 1:last_col]
            while cells and cells[-1] == "":
                cells.pop()
            block.append(cells)
        while block and not block[-1]:
            block.pop()
        width = max((len(cells) for cells in block), default=0)
        return [cells + [""] * (width - len(cells)) for cells in block]

    def batch_update(self, data, value_input_option=None):
        self._record("batch_update", data, value_input_option)
        for entry in data:
            row, _, col, _ = parse_range(entry["range"])
            for r_offset, values in enumerate(entry["values"]):
                for c_offset, value in enumerate(values):
                    self._set(row + r_offset, col + c_offset, value)

    def update(self, range_name=None, values=None, value_input_option=None):
        self._record("update", range_name, values, value_input_option)
        row, _, col, _ = parse_range(range_name)
        for r_offset, cells in enumerate(values):
            for c_offset, value in enumerate(cells):
                self._set(row + r_offset, col + c_offset, value)

    def append_row(self, values, value_input_option=None, table_range=None):
        self._record("append_row", list(values), value_input_option, table_range)
        last = 0
        for index, row in enumerate(self.rows, start=1):
            if any(cell.strip() for cell in row):
                last = index
        del self.rows[last:]
        self.rows.append([str(value) for value in values])

    def delete_rows(self, start_index, end_index=None):
        self._record("delete_rows", start_index, end_index)
        end_index = end_index or start_index
        del self.rows[start_index - 1:end_index]


class FakeSpreadsheet:
    def __init__(self, *worksheets: FakeWorksheet):
        self._worksheets = list(worksheets)
        self.metadata_fetches = 0

    def worksheets(self):
        self.metadata_fetches += 1
        return list(self._worksheets)

    def add_worksheet(self, title, rows, cols):
        worksheet = FakeWorksheet(title, sheet_id=len(self._worksheets))
        self._worksheets.append(worksheet)
        return worksheet

    def worksheet(self, title):
        for worksheet in self._worksheets:
            if worksheet.title == title:
                return worksheet
        raise KeyError(title)


class _ErrorResponse:
    status_code = 503
    text = "backend unavailable"

    def json(self):
        return {"error": {"code": 503, "message": self.text, "status": "UNAVAILABLE"}}


def api_error() -> gspread.exceptions.APIError:
    """A transient Sheets API failure, as gspread raises it."""
    return gspread.exceptions.APIError(_ErrorResponse())


class TickingClock:
    """Each call returns a time one minute later than the previous one."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 10, 0, 0)):
        self._next = start

    def __call__(self) -> datetime:
        current = self._next
        self._next += timedelta(minutes=1)
        return current


def run(coro):
    """Drive a store coroutine to completion."""
    return asyncio.run(coro)


@pytest.fixture
def sheets_settings():
    return GoogleSheetsSettings(spreadsheet_id="test-spreadsheet", _env_file=None)


@pytest.fixture
def ledger():
    return FakeWorksheet("Sheet1", sheet_id=0)


@pytest.fixture
def spreadsheet(ledger):
    return FakeSpreadsheet(ledger)


@pytest.fixture
def sheets_client(sheets_settings, spreadsheet):
    return GoogleSheetsClient(sheets_settings, spreadsheet=spreadsheet)


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def transaction_storage(sheets_client, id_factory, clock):
    return GoogleSheetsTransactionStorage(
        sheets_client,
        SheetLocator(sheets_client),
        clock=clock,
        id_factory=id_factory,
    )


@pytest.fixture
def savings_storage(sheets_client, clock):
    return GoogleSheetsSavingsStorage(
        sheets_client,
        SheetLocator(sheets_client),
        clock=clock,
    )


@pytest.fixture
def no_retry_wait(monkeypatch):
    """Keep the transport retry policy but skip its backoff sleeps."""
    for method in (
        GoogleSheetsClient._open,
        GoogleSheetsClient.worksheets,
        GoogleSheetsClient.read_range,
        GoogleSheetsClient.write_range,
        GoogleSheetsClient.write_cells,
    ):
        monkeypatch.setattr(method.retry, "wait", wait_none())

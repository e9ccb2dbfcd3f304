"""
Lazy identifier backfill.

The spreadsheet is edited by hand as well as through the API, and rows
written before identifiers existed have a blank identifier cell. Instead of a
one-off migration script, every read repairs whatever it finds:

    rows, pending = backfill_identifiers(raw_rows, id_column=8)

`rows` is a patched copy of the input; `pending` lists the cells that must be
written back for the sheet to match. Running it again over the patched rows
yields no pending writes.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Callable

from gspread.utils import rowcol_to_a1

from expense_tracker.services.storage.codec import ID_HEADER


def new_identifier() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class CellWrite:
    """A single cell to write back. Row and column are 1-based."""

    row: int
    col: int
    value: str

    @property
    def a1(self) -> str:
        return rowcol_to_a1(self.row, self.col)

    def as_batch_entry(self) -> dict:
        """Shape expected by gspread's Worksheet.batch_update."""
        return {"range": self.a1, "values": [[self.value]]}


def is_blank_row(row: list[Any]) -> bool:
    return not any(str(cell).strip() for cell in row if cell is not None)


def backfill_identifiers(
    rows: list[list[Any]],
    id_column: int,
    id_factory: Callable[[], str] = new_identifier,
    header_label: str = ID_HEADER,
) -> tuple[list[list[str]], list[CellWrite]]:
    """
    Stamp missing identifiers into a header-plus-rows block.

    Args:
        rows: Raw values starting at row 1 (the header)
        id_column: 0-based index of the identifier column
        id_factory: Generates a fresh identifier
        header_label: Label written into a blank header identifier cell

    Returns:
        (patched_rows, pending_writes). Fully blank rows are left alone.
    """
    patched: list[list[str]] = []
    pending: list[CellWrite] = []

    for index, raw in enumerate(rows):
        row = ["" if cell is None else str(cell) for cell in raw]
        row_number = index + 1

        if index == 0:
            label = header_label
        elif is_blank_row(row):
            patched.append(row)
            continue
        else:
            label = None

        if len(row) <= id_column:
            row.extend([""] * (id_column + 1 - len(row)))

        if not row[id_column].strip():
            value = label if label is not None else id_factory()
            row[id_column] = value
            pending.append(CellWrite(row=row_number, col=id_column + 1, value=value))

        patched.append(row)

    return patched, pending

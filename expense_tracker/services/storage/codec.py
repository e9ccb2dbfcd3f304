"""
Row Codec

Maps records to fixed-width rows of cell text and back. Pure and stateless.

Decoding never raises on a legacy or hand-edited row: short rows are padded,
blank numbers read as zero and blank optional fields read as None.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import structlog

from expense_tracker.models.records import (
    SavingsGoal,
    Transaction,
    TransactionKind,
)

logger = structlog.get_logger(__name__)

ID_HEADER = "ID"

# Column order is fixed; the identifier is last so that rows written before
# identifiers existed still line up.
TRANSACTION_COLUMNS = [
    "Timestamp",
    "Type",
    "Category",
    "Description",
    "Amount",
    "Payment Mode",
    "Date",
    "Remarks",
    ID_HEADER,
]

SAVINGS_COLUMNS = [
    ID_HEADER,
    "Name",
    "Target",
    "Current",
    "Last Updated",
    "Target Date",
]

_CURRENCY_SYMBOLS = "₹$€£"


def parse_decimal(value: Any) -> Decimal:
    """Parse a numeric cell. Blank or unreadable text becomes zero."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    text = str(value or "").strip().lstrip(_CURRENCY_SYMBOLS).replace(",", "").strip()
    if not text:
        return Decimal("0")
    try:
        number = Decimal(text)
    except InvalidOperation:
        logger.warning("unparseable_number", value=text)
        return Decimal("0")
    if not number.is_finite():
        logger.warning("unparseable_number", value=text)
        return Decimal("0")
    return number


def format_decimal(value: Decimal) -> str:
    return str(value)


def _optional(text: str) -> Optional[str]:
    return text or None


class RowCodec:
    """Base codec: fixed column list plus the position of the identifier."""

    columns: list[str] = []
    id_column: int = 0

    @property
    def width(self) -> int:
        return len(self.columns)

    @property
    def last_column_letter(self) -> str:
        return chr(ord("A") + self.width - 1)

    @property
    def id_column_letter(self) -> str:
        return chr(ord("A") + self.id_column)

    def header(self) -> list[str]:
        return list(self.columns)

    def pad(self, row: list[Any]) -> list[str]:
        """Return the row as exactly `width` strings."""
        cells = ["" if cell is None else str(cell).strip() for cell in row[: self.width]]
        return cells + [""] * (self.width - len(cells))

    def encode(self, record: Any) -> list[str]:
        raise NotImplementedError

    def decode(self, row: list[Any]) -> Any:
        raise NotImplementedError


class TransactionCodec(RowCodec):
    columns = TRANSACTION_COLUMNS
    id_column = 8

    def encode(self, record: Transaction) -> list[str]:
        return [
            record.timestamp,
            record.kind.value,
            record.category,
            record.description or "",
            format_decimal(record.amount),
            record.payment_mode,
            record.date,
            record.remarks or "",
            record.id,
        ]

    def decode(self, row: list[Any]) -> Transaction:
        cells = self.pad(row)
        kind = TransactionKind.parse(cells[1])
        if kind is None:
            if cells[1]:
                logger.warning("unknown_transaction_type", value=cells[1], id=cells[8])
            kind = TransactionKind.EXPENSE
        return Transaction(
            id=cells[8],
            timestamp=cells[0],
            kind=kind,
            category=cells[2],
            description=_optional(cells[3]),
            amount=parse_decimal(cells[4]),
            payment_mode=cells[5],
            date=cells[6],
            remarks=_optional(cells[7]),
        )


class SavingsGoalCodec(RowCodec):
    columns = SAVINGS_COLUMNS
    id_column = 0

    def encode(self, record: SavingsGoal) -> list[str]:
        return [
            record.id,
            record.name,
            format_decimal(record.target),
            format_decimal(record.current),
            record.last_updated,
            record.target_date or "",
        ]

    def decode(self, row: list[Any]) -> SavingsGoal:
        cells = self.pad(row)
        return SavingsGoal(
            id=cells[0],
            name=cells[1],
            target=parse_decimal(cells[2]),
            current=parse_decimal(cells[3]),
            last_updated=cells[4],
            target_date=_optional(cells[5]),
        )

"""
Record Models for Expense Tracker

Two collections live in the spreadsheet: transactions and savings goals.
Each has a stored model (what a row decodes to) and request models (what the
API accepts). Stored models accept partially filled rows, since the sheet is
also edited by hand; request models are strict.

JSON field names are camelCase (the browser client's contract) via aliases;
Python attributes are snake_case.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)


def normalize_identifier(value: Any) -> str:
    """
    Canonical text form of a record identifier.

    Spreadsheet cells are untyped text, while API callers may send numbers.
    Every identifier crossing the store boundary goes through here so that
    comparisons inside the store are plain string equality.
    """
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _validate_iso_date(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ValueError(f"Expected a YYYY-MM-DD date, got {value!r}")
    return value


Identifier = Annotated[str, BeforeValidator(normalize_identifier)]

# Decimals travel as JSON numbers; the client does arithmetic on them
Amount = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


class TransactionKind(str, Enum):
    """Direction of money for a transaction."""
    EXPENSE = "Expense"
    INCOME = "Income"

    @classmethod
    def parse(cls, value: Any) -> Optional["TransactionKind"]:
        """Case-insensitive lookup. Returns None for blank or unknown text."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None


class _RecordModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(_RecordModel):
    """
    A transaction as stored in the ledger tab.

    Legacy rows may be partially filled, so only the identifier is required.
    """
    id: Identifier = Field(..., min_length=1)
    timestamp: str = Field(default="", description="When the row was inserted")
    kind: TransactionKind = Field(default=TransactionKind.EXPENSE, alias="type")
    category: str = ""
    description: Optional[str] = None
    amount: Amount = Decimal("0")
    payment_mode: str = Field(default="", alias="paymentMode")
    date: str = Field(default="", description="Calendar date of the transaction")
    remarks: Optional[str] = None


class TransactionCreate(_RecordModel):
    """Request body for a new transaction. Identifier and timestamp are assigned by the store."""
    kind: TransactionKind = Field(default=TransactionKind.EXPENSE, alias="type")
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    amount: Amount = Field(..., gt=0)
    payment_mode: str = Field(default="UPI", min_length=1, max_length=50, alias="paymentMode")
    date: str
    remarks: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("kind", mode="before")
    @classmethod
    def parse_kind(cls, v: Any) -> Any:
        return TransactionKind.parse(v) or v

    @field_validator("description", "remarks", mode="before")
    @classmethod
    def blank_is_absent(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("date")
    @classmethod
    def iso_date(cls, v: str) -> str:
        return _validate_iso_date(v.strip())

    @model_validator(mode="after")
    def expense_needs_description(self) -> "TransactionCreate":
        if self.kind == TransactionKind.EXPENSE and not self.description:
            raise ValueError("Description is required for expenses")
        return self


# =============================================================================
# SAVINGS GOALS
# =============================================================================

class SavingsGoal(_RecordModel):
    """A savings goal as stored in the savings tab."""
    id: Identifier = Field(..., min_length=1)
    name: str = ""
    target: Amount = Decimal("0")
    current: Amount = Decimal("0")
    last_updated: str = Field(default="", alias="lastUpdated")
    target_date: Optional[str] = Field(default=None, alias="targetDate")


class SavingsGoalCreate(_RecordModel):
    """
    Request body for a new savings goal.

    The caller assigns the identifier. Keeping current <= target is the
    caller's job; only the lower bound is checked here.
    """
    id: Identifier = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    target: Amount = Field(..., gt=0)
    current: Amount = Field(default=Decimal("0"), ge=0)
    target_date: Optional[str] = Field(default=None, alias="targetDate")

    @field_validator("target_date", mode="before")
    @classmethod
    def blank_is_absent(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("target_date")
    @classmethod
    def iso_date(cls, v: Optional[str]) -> Optional[str]:
        return _validate_iso_date(v)


class SavingsGoalPatch(_RecordModel):
    """
    Partial update of a savings goal.

    Only the fields present in the request are applied; sending
    targetDate as null or "" clears it. Any id in the body is ignored.

    The client sends back the whole goal it listed, including values typed
    into the sheet by hand. Parsing here only checks types; the value rules
    apply to fields that differ from the stored goal (see changes_from).
    """
    name: Optional[str] = None
    target: Optional[Amount] = None
    current: Optional[Amount] = None
    target_date: Optional[str] = Field(default=None, alias="targetDate")

    @field_validator("target_date", mode="before")
    @classmethod
    def blank_is_absent(cls, v: Any) -> Any:
        return _blank_to_none(v)

    def changes(self) -> dict[str, Any]:
        """Fields explicitly sent by the caller, keyed by attribute name.

        An explicit null only clears targetDate; for the other fields it is
        treated as absent.
        """
        sent = self.model_dump(exclude_unset=True)
        return {
            key: value
            for key, value in sent.items()
            if value is not None or key == "target_date"
        }

    def changes_from(self, goal: SavingsGoal) -> dict[str, Any]:
        """
        Sent fields whose value differs from the stored goal, validated.

        Raises:
            ValueError: Naming every changed field with an invalid value
        """
        changed = {
            key: value
            for key, value in self.changes().items()
            if getattr(goal, key) != value
        }

        errors = []
        if "name" in changed and not 1 <= len(changed["name"]) <= 200:
            errors.append("name: must be 1 to 200 characters")
        if "target" in changed and changed["target"] <= 0:
            errors.append("target: must be greater than 0")
        if "current" in changed and changed["current"] < 0:
            errors.append("current: must not be negative")
        if "target_date" in changed:
            try:
                _validate_iso_date(changed["target_date"])
            except ValueError as e:
                errors.append(f"targetDate: {e}")
        if errors:
            raise ValueError("; ".join(errors))
        return changed

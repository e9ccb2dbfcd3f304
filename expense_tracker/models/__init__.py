"""
Data Models Package

Pydantic models for the two record collections kept in the spreadsheet.
"""

from expense_tracker.models.records import (
    SavingsGoal,
    SavingsGoalCreate,
    SavingsGoalPatch,
    Transaction,
    TransactionCreate,
    TransactionKind,
    normalize_identifier,
)

__all__ = [
    "SavingsGoal",
    "SavingsGoalCreate",
    "SavingsGoalPatch",
    "Transaction",
    "TransactionCreate",
    "TransactionKind",
    "normalize_identifier",
]

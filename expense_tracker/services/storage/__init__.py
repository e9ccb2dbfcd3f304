"""
Storage Services Package

Spreadsheet-backed record store for transactions and savings goals.
The abstract interfaces keep callers independent of Google Sheets.
"""

from expense_tracker.services.storage.interface import (
    CredentialError,
    DuplicateError,
    InvalidRecordError,
    NotFoundError,
    SavingsStorageInterface,
    StoreError,
    TransactionStorageInterface,
)
from expense_tracker.services.storage.credentials import CredentialResolver
from expense_tracker.services.storage.google_sheets import (
    Collection,
    GoogleSheetsClient,
    GoogleSheetsSavingsStorage,
    GoogleSheetsTransactionStorage,
    SheetLocator,
)
from expense_tracker.services.storage.factory import create_storage

__all__ = [
    # Interfaces
    "SavingsStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "CredentialError",
    "DuplicateError",
    "InvalidRecordError",
    "NotFoundError",
    "StoreError",
    # Google Sheets implementation
    "Collection",
    "CredentialResolver",
    "GoogleSheetsClient",
    "GoogleSheetsSavingsStorage",
    "GoogleSheetsTransactionStorage",
    "SheetLocator",
    "create_storage",
]
